"""
Order number generator.

Format: ORD-{6 trailing digits of epoch millis}-{3-digit zero-padded random}
(e.g. ORD-482913-007). Collisions are unlikely but possible; the unique
index on orders.order_number is the final guard, and
``next_order_number`` re-rolls a few times against existing rows.
"""

import random
import time

from orderflow.core.exceptions import ConflictError
from orderflow.models import db
from orderflow.models.order import Order

MAX_ATTEMPTS = 5


def generate_order_number(now_ms: int | None = None, suffix: int | None = None) -> str:
    """Build an order number from a millisecond timestamp and a random suffix."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = random.randint(0, 999)
    return f"ORD-{str(now_ms)[-6:]}-{suffix:03d}"


def next_order_number() -> str:
    """Return an order number not yet present in the orders table."""
    for _ in range(MAX_ATTEMPTS):
        candidate = generate_order_number()
        exists = db.session.query(Order.id).filter_by(order_number=candidate).first()
        if exists is None:
            return candidate
    raise ConflictError("Could not generate a unique order number, retry the request")
