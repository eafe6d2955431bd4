import os

from peewee import SqliteDatabase

DB_PATH = os.getenv("CIRCULATION_DB", "data/library.db")

db = SqliteDatabase(
    DB_PATH,
    pragmas={
        "journal_mode": "wal",
        "foreign_keys": 1,
    },
)
