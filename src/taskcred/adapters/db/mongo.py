"""MongoDB adapter using motor.

Accounts live in the ``users`` collection and tasks in ``tasks``; attachment
bytes are kept in a GridFS bucket keyed by task id. Documents use the
camelCase field names of the public API. References to accounts (task
owner, ``visibleTo``, history performers) are stored as ObjectIds.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Any

import structlog
from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorDatabase,
    AsyncIOMotorGridFSBucket,
)
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from taskcred.core.domain_types import (
    Account,
    ApprovalStatus,
    AttachmentInfo,
    HistoryAction,
    HistoryEntry,
    PublicVisibility,
    RestrictedVisibility,
    Role,
    Task,
    TaskStatus,
)
from taskcred.core.exceptions import ValidationError
from taskcred.core.interfaces import StoredFile

logger = structlog.get_logger()

ACCOUNTS_COLLECTION = "users"
TASKS_COLLECTION = "tasks"
ATTACHMENTS_BUCKET = "attachments"


def to_object_id(value: str) -> ObjectId | None:
    """Parse an id string, None if it is not a valid ObjectId."""
    return ObjectId(value) if ObjectId.is_valid(value) else None


def _ref(value: str | None) -> ObjectId | str | None:
    """Store account references as ObjectIds where possible."""
    if value is None:
        return None
    return to_object_id(value) or value


def _str(value: Any) -> str | None:
    return None if value is None else str(value)


# ----------------------------------------------------------------------
# Document mapping
# ----------------------------------------------------------------------


def account_to_document(account: Account) -> dict[str, Any]:
    """Full document for an account, including credits and sessions."""
    return {
        "_id": _ref(account.id),
        **_account_fields(account),
        "credits": account.credits,
        "sessionTokenHashes": sorted(account.session_token_hashes),
    }


def _account_fields(account: Account) -> dict[str, Any]:
    return {
        "name": account.name,
        "email": account.email,
        "passwordHash": account.password_hash,
        "role": account.role.value,
        "approvalStatus": account.approval_status.value,
        "emailVerified": account.email_verified,
        "verificationTokenHash": account.verification_token_hash,
        "verificationExpiresAt": account.verification_expires_at,
        "resetTokenHash": account.reset_token_hash,
        "resetExpiresAt": account.reset_expires_at,
        "createdAt": account.created_at,
    }


def account_from_document(doc: dict[str, Any]) -> Account:
    """Build an Account from a ``users`` document."""
    return Account(
        id=str(doc["_id"]),
        name=doc["name"],
        email=doc["email"],
        password_hash=doc["passwordHash"],
        role=Role(doc.get("role", Role.USER.value)),
        approval_status=ApprovalStatus(doc.get("approvalStatus", ApprovalStatus.PENDING.value)),
        email_verified=doc.get("emailVerified", False),
        credits=doc.get("credits", 0),
        session_token_hashes=frozenset(doc.get("sessionTokenHashes", [])),
        verification_token_hash=doc.get("verificationTokenHash"),
        verification_expires_at=doc.get("verificationExpiresAt"),
        reset_token_hash=doc.get("resetTokenHash"),
        reset_expires_at=doc.get("resetExpiresAt"),
        created_at=doc["createdAt"],
    )


def task_to_document(task: Task) -> dict[str, Any]:
    """Document for a task."""
    attachment = None
    if task.attachment:
        attachment = {
            "filename": task.attachment.filename,
            "contentType": task.attachment.content_type,
            "size": task.attachment.size,
        }
    return {
        "_id": _ref(task.id),
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "owner": _ref(task.owner_id),
        "dueDate": task.due_date,
        "isPublic": task.is_public,
        "visibleTo": [_ref(account_id) for account_id in task.visible_to],
        "history": [
            {
                "action": entry.action.value,
                "timestamp": entry.timestamp,
                "performedBy": _ref(entry.performed_by),
                "assignedTo": _ref(entry.assigned_to),
            }
            for entry in task.history
        ],
        "priority": task.priority,
        "attachment": attachment,
        "lastDueDateNotification": task.last_reminded_at,
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
    }


def task_from_document(doc: dict[str, Any]) -> Task:
    """Build a Task from a ``tasks`` document."""
    if doc.get("isPublic", True):
        visibility: PublicVisibility | RestrictedVisibility = PublicVisibility()
    else:
        visibility = RestrictedVisibility(
            account_ids=frozenset(str(v) for v in doc.get("visibleTo", []))
        )

    attachment = None
    if doc.get("attachment"):
        attachment = AttachmentInfo(
            filename=doc["attachment"]["filename"],
            content_type=doc["attachment"]["contentType"],
            size=doc["attachment"]["size"],
        )

    return Task(
        id=str(doc["_id"]),
        title=doc["title"],
        description=doc["description"],
        status=TaskStatus(doc.get("status", TaskStatus.PENDING.value)),
        owner_id=_str(doc.get("owner")),
        due_date=doc.get("dueDate"),
        visibility=visibility,
        history=tuple(
            HistoryEntry(
                action=HistoryAction(entry["action"]),
                timestamp=entry["timestamp"],
                performed_by=_str(entry.get("performedBy")),
                assigned_to=_str(entry.get("assignedTo")),
            )
            for entry in doc.get("history", [])
        ),
        priority=doc.get("priority"),
        attachment=attachment,
        last_reminded_at=doc.get("lastDueDateNotification"),
        created_at=doc["createdAt"],
        updated_at=doc.get("updatedAt", doc["createdAt"]),
    )


# ----------------------------------------------------------------------
# Repositories
# ----------------------------------------------------------------------


class MongoAccountRepository:
    """Account repository backed by the ``users`` collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[ACCOUNTS_COLLECTION]

    def next_id(self) -> str:
        return str(ObjectId())

    async def _find_one(self, query: dict[str, Any]) -> Account | None:
        doc = await self._collection.find_one(query)
        return account_from_document(doc) if doc else None

    async def get_by_id(self, account_id: str) -> Account | None:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def get_by_email(self, email: str) -> Account | None:
        return await self._find_one({"email": email.lower()})

    async def get_by_verification_token(self, token_hash: str) -> Account | None:
        return await self._find_one({"verificationTokenHash": token_hash})

    async def get_by_reset_token(self, token_hash: str) -> Account | None:
        return await self._find_one({"resetTokenHash": token_hash})

    async def create(self, account: Account) -> Account:
        try:
            await self._collection.insert_one(account_to_document(account))
        except DuplicateKeyError:
            raise ValidationError("An account with this email already exists") from None
        return account

    async def save(self, account: Account) -> Account:
        doc = await self._collection.find_one_and_update(
            {"_id": _ref(account.id)},
            {"$set": _account_fields(account)},
            return_document=ReturnDocument.AFTER,
        )
        return account_from_document(doc) if doc else account

    async def delete(self, account_id: str) -> Account | None:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        doc = await self._collection.find_one_and_delete({"_id": oid})
        return account_from_document(doc) if doc else None

    async def adjust_credits(self, account_id: str, delta: int) -> Account | None:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        doc = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$inc": {"credits": delta}},
            return_document=ReturnDocument.AFTER,
        )
        return account_from_document(doc) if doc else None

    async def add_session(self, account_id: str, token_hash: str) -> None:
        await self._collection.update_one(
            {"_id": _ref(account_id)}, {"$addToSet": {"sessionTokenHashes": token_hash}}
        )

    async def remove_session(self, account_id: str, token_hash: str) -> None:
        await self._collection.update_one(
            {"_id": _ref(account_id)}, {"$pull": {"sessionTokenHashes": token_hash}}
        )

    async def clear_sessions(self, account_id: str) -> None:
        await self._collection.update_one(
            {"_id": _ref(account_id)}, {"$set": {"sessionTokenHashes": []}}
        )

    async def list_accounts(
        self,
        role: Role | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Account]:
        query: dict[str, Any] = {}
        if role is not None:
            query["role"] = role.value
        if approval_status is not None:
            query["approvalStatus"] = approval_status.value
        cursor = self._collection.find(query).sort("createdAt", ASCENDING)
        return [account_from_document(doc) async for doc in cursor]

    async def leaderboard(self, limit: int | None = None) -> list[Account]:
        cursor = self._collection.find({"approvalStatus": ApprovalStatus.APPROVED.value}).sort(
            [("credits", DESCENDING), ("name", ASCENDING)]
        )
        if limit is not None:
            cursor = cursor.limit(limit)
        return [account_from_document(doc) async for doc in cursor]

    async def count_ahead_of(self, credits: int) -> int:
        return await self._collection.count_documents(
            {"approvalStatus": ApprovalStatus.APPROVED.value, "credits": {"$gt": credits}}
        )

    async def purge_expired_tokens(self, now: datetime) -> int:
        verification = await self._collection.update_many(
            {"verificationExpiresAt": {"$lt": now}},
            {"$set": {"verificationTokenHash": None, "verificationExpiresAt": None}},
        )
        reset = await self._collection.update_many(
            {"resetExpiresAt": {"$lt": now}},
            {"$set": {"resetTokenHash": None, "resetExpiresAt": None}},
        )
        return verification.modified_count + reset.modified_count


class MongoTaskRepository:
    """Task repository backed by the ``tasks`` collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[TASKS_COLLECTION]

    def next_id(self) -> str:
        return str(ObjectId())

    async def get(self, task_id: str) -> Task | None:
        oid = to_object_id(task_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid})
        return task_from_document(doc) if doc else None

    async def create(self, task: Task) -> Task:
        await self._collection.insert_one(task_to_document(task))
        return task

    async def save(self, task: Task) -> Task:
        await self._collection.replace_one({"_id": _ref(task.id)}, task_to_document(task))
        return task

    async def delete(self, task_id: str) -> bool:
        oid = to_object_id(task_id)
        if oid is None:
            return False
        result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def _find(self, query: dict[str, Any]) -> list[Task]:
        cursor = self._collection.find(query).sort("createdAt", DESCENDING)
        return [task_from_document(doc) async for doc in cursor]

    async def list_all(self) -> list[Task]:
        return await self._find({})

    async def list_visible_to(self, account_id: str) -> list[Task]:
        ref = _ref(account_id)
        return await self._find(
            {"$or": [{"owner": ref}, {"isPublic": True}, {"visibleTo": ref}]}
        )

    async def list_due_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Collection[TaskStatus],
    ) -> list[Task]:
        return await self._find(
            {
                "dueDate": {"$gte": start, "$lte": end},
                "status": {"$in": [s.value for s in statuses]},
            }
        )

    async def mark_reminded(self, task_id: str, at: datetime) -> None:
        await self._collection.update_one(
            {"_id": _ref(task_id)}, {"$set": {"lastDueDateNotification": at}}
        )


class MongoFileStore:
    """Attachment store backed by a GridFS bucket."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name=ATTACHMENTS_BUCKET)

    async def put(self, task_id: str, filename: str, content_type: str, data: bytes) -> None:
        await self.delete(task_id)
        await self._bucket.upload_from_stream(
            filename,
            data,
            metadata={"taskId": task_id, "contentType": content_type},
        )

    async def get(self, task_id: str) -> StoredFile | None:
        cursor = self._bucket.find({"metadata.taskId": task_id}).sort("uploadDate", DESCENDING)
        async for grid_out in cursor.limit(1):
            data = await grid_out.read()
            return StoredFile(
                filename=grid_out.filename,
                content_type=grid_out.metadata.get("contentType", "application/octet-stream"),
                data=data,
            )
        return None

    async def delete(self, task_id: str) -> None:
        cursor = self._bucket.find({"metadata.taskId": task_id})
        async for grid_out in cursor:
            await self._bucket.delete(grid_out._id)


class MongoDatabase:
    """Connection holder exposing the MongoDB-backed repositories."""

    def __init__(self, uri: str, database: str) -> None:
        """Initialize the database wrapper.

        Args:
            uri: MongoDB connection string.
            database: Database name.
        """
        self.uri = uri
        self.database = database
        self.client: AsyncIOMotorClient | None = None
        self.db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Open the client and ensure indexes exist."""
        self.client = AsyncIOMotorClient(self.uri, tz_aware=True)
        self.db = self.client[self.database]

        await self.db[ACCOUNTS_COLLECTION].create_index("email", unique=True)
        await self.db[ACCOUNTS_COLLECTION].create_index(
            [("approvalStatus", ASCENDING), ("credits", DESCENDING)]
        )
        await self.db[TASKS_COLLECTION].create_index("owner")
        await self.db[TASKS_COLLECTION].create_index(
            [("status", ASCENDING), ("dueDate", ASCENDING)]
        )

        self.accounts = MongoAccountRepository(self.db)
        self.tasks = MongoTaskRepository(self.db)
        self.files = MongoFileStore(self.db)
        logger.info("mongo_connected", database=self.database)

    async def close(self) -> None:
        """Close the client."""
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.info("mongo_closed", database=self.database)
