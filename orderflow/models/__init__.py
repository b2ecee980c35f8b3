"""
Order Workflow Service
SQLAlchemy instance shared by every model module.

Usage:
    from orderflow.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
