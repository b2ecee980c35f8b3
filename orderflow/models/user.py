"""
Order Workflow Service
User directory model.

Models:
    - User: account with a role and, for employees, a supervising agent

Roles are a closed set (``Role``). An ``Actor`` is the resolved,
authenticated user handed explicitly to every engine call.
"""

import enum
from dataclasses import dataclass

from orderflow.models import db
from orderflow.models.base import iso_or_now, new_id, utcnow


class Role(str, enum.Enum):
    ADMIN = "admin"
    AGENT = "agent"
    EMPLOYEE = "employee"


USER_ROLES = frozenset(r.value for r in Role)


class User(db.Model):
    """
    Directory account.

    ``agent_id`` is only meaningful for employees and must point at a user
    whose role is ``agent`` (enforced in the user service). The role never
    changes after creation.
    """

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    role = db.Column(db.String(20), nullable=False, index=True, comment="admin | agent | employee")
    agent_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
        comment="Supervising agent (employees only)",
    )
    skills = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("role IN ('admin','agent','employee')", name="ck_user_role"),
    )

    agent = db.relationship("User", remote_side=[id], foreign_keys=[agent_id])

    @property
    def role_enum(self):
        return Role(self.role)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "agent_id": self.agent_id,
            "skills": self.skills or [],
            "is_active": self.is_active,
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.role}:{self.email}>"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, resolved once at the request boundary."""

    id: str
    name: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, name=user.name, role=Role(user.role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_agent(self) -> bool:
        return self.role is Role.AGENT

    @property
    def is_employee(self) -> bool:
        return self.role is Role.EMPLOYEE
