from .config import get_credentials, settings
from .database import get_db, init_db

__all__ = ["settings", "get_credentials", "get_db", "init_db"]
