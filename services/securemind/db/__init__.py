"""SecureMind database module."""

from .models import Base
from .session import (
    get_db,
    get_db_health,
    get_db_read,
    get_db_read_health,
    get_read_session_factory,
    init_db,
)

__all__ = [
    "Base",
    "get_db",
    "get_db_health",
    "get_db_read",
    "get_db_read_health",
    "get_read_session_factory",
    "init_db",
]
