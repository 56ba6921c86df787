from .sqlite_client import SQLiteClient

__all__ = ["SQLiteClient"]
