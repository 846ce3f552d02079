"""
SQLAlchemy async database module.

Re-exports the engine factory and the models the service reads and writes.
"""

from services.api.db.engine import create_engine, create_session_factory
from services.api.db.models import Base, UserPreferenceRow

__all__ = [
    "create_engine",
    "create_session_factory",
    "Base",
    "UserPreferenceRow",
]
