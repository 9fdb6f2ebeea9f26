"""Database adapters."""

from taskcred.adapters.db.memory import InMemoryDatabase
from taskcred.adapters.db.mongo import MongoDatabase

__all__ = ["InMemoryDatabase", "MongoDatabase"]
