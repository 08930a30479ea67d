from deepsite.storage.models import ChatTurn
from deepsite.storage.sqlite_store import SQLiteStore

__all__ = ["ChatTurn", "SQLiteStore"]
