"""
Database models package.

Exports all SQLAlchemy models for use across the application.
"""

from .base import Base
from .submission import Submission

__all__ = [
    "Base",
    "Submission",
]
