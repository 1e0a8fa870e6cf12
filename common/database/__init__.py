"""
Database module - async MongoDB access using Motor.

Usage:
    from common.database import MongoDB, storage_errors, to_object_id

    store = MongoDB()
    await store.connect(uri, database_name)
    sessions = store.db["sessions"]
"""

from common.database.mongodb import MongoDB
from common.database.errors import storage_errors
from common.database.ids import to_object_id

__all__ = [
    "MongoDB",
    "storage_errors",
    "to_object_id",
]
