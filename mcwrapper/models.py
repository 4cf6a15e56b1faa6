"""
Database models for the wrapper.

Uses Peewee ORM with SQLite. Stores the history of world backups, both the
successful ones and the failed attempts with their error text.
"""

import os
from datetime import datetime

from peewee import (
    AutoField,
    BooleanField,
    CharField,
    DatabaseProxy,
    DateTimeField,
    Model,
    SqliteDatabase,
    TextField,
)

from .config import config

database = DatabaseProxy()


def initialize_db(db_path=None):
    """Initialize database connection and create tables."""
    db_path = str(db_path or config.db_path)
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    db = SqliteDatabase(
        db_path,
        pragmas={
            "journal_mode": "wal",
            "cache_size": -64 * 1000,
            "busy_timeout": 5000,
        },
        check_same_thread=False,
    )
    database.initialize(db)
    database.create_tables([BackupRecord], safe=True)


class BaseModel(Model):
    """Base model with common configuration."""

    class Meta:
        database = database


class BackupRecord(BaseModel):
    """One world backup attempt."""

    id = AutoField()
    path = CharField(null=True)  # Archive path, set when the archive was written
    success = BooleanField(default=False)
    error = TextField(null=True)
    created_at = DateTimeField(default=datetime.now, index=True)

    class Meta:
        table_name = "backups"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "success": self.success,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
