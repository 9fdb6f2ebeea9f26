"""Migrate legacy task visibility to isPublic/visibleTo.

Older task documents carry a ``visibility`` field with ``public``,
``private`` or ``team``. Public tasks become ``isPublic: true``; private
and team tasks become restricted to their owner (or to nobody when
unowned). The legacy field is removed. Safe to run more than once.

Run via: python -m taskcred.jobs.migrate_visibility
"""

import asyncio
from typing import Any

import structlog

from taskcred.adapters.db.mongo import TASKS_COLLECTION, MongoDatabase
from taskcred.entrypoints.api.deps import settings

logger = structlog.get_logger()

PUBLIC = "public"


def migrated_fields(doc: dict[str, Any]) -> dict[str, Any]:
    """New visibility fields for a legacy task document."""
    if doc.get("visibility") == PUBLIC:
        return {"isPublic": True, "visibleTo": []}
    owner = doc.get("owner")
    return {"isPublic": False, "visibleTo": [owner] if owner is not None else []}


async def migrate(db: Any) -> int:
    """Rewrite every task that still has the legacy field.

    Args:
        db: Motor database handle.

    Returns:
        Number of migrated tasks.
    """
    collection = db[TASKS_COLLECTION]
    migrated = 0
    async for doc in collection.find({"visibility": {"$exists": True}}):
        await collection.update_one(
            {"_id": doc["_id"]},
            {"$set": migrated_fields(doc), "$unset": {"visibility": ""}},
        )
        migrated += 1
    return migrated


async def main() -> None:
    """Run the visibility migration."""
    db = MongoDatabase(settings.mongo_uri, settings.mongo_database)
    await db.connect()

    try:
        count = await migrate(db.db)
        logger.info(f"Migrated visibility of {count} tasks")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
