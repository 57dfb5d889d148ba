"""
Session store factory.
"""

from ..config import Settings, get_settings
from .file_store import FileSessionStore
from .sql_store import SQLSessionStore
from .store import BaseSessionStore


def create_session_store(settings: Settings | None = None) -> BaseSessionStore:
    """Create the session store selected by ``settings.session_backend``."""
    settings = settings or get_settings()

    if settings.session_backend == "sqlite":
        return SQLSessionStore(settings.database_url)
    elif settings.session_backend == "file":
        return FileSessionStore(settings.sessions_dir)
    else:
        raise ValueError(f"Unknown session backend: {settings.session_backend}")
