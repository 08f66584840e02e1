# tokenvault Core Module
from .config import Settings, get_settings, settings, validate_security_settings
from .database import Base, check_db_connection, get_engine, get_session_maker, init_db
from .logging import get_logger, setup_logging

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "validate_security_settings",
    "setup_logging",
    "get_logger",
    "Base",
    "get_engine",
    "get_session_maker",
    "init_db",
    "check_db_connection",
]
