"""Dependency injection and application lifespan management."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

from fastapi import Request

from taskcred.adapters.db.memory import InMemoryDatabase
from taskcred.adapters.db.mongo import MongoDatabase
from taskcred.adapters.notifications.email import EmailConfig, EmailNotifier, LoggingNotifier
from taskcred.core.auth.service import AuthService
from taskcred.core.interfaces import Notifier
from taskcred.services.accounts import AccountService
from taskcred.services.reminders import ReminderService, run_reminder_loop
from taskcred.services.tasks import TaskService

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.storage = os.getenv("TASKCRED_STORAGE", "mongo")
        self.mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.mongo_database = os.getenv("MONGO_DATABASE", "taskcred")
        self.org_email_domain = os.getenv("ORG_EMAIL_DOMAIN", "icterra.com")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

        # SMTP; without a host, e-mails are only logged
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER") or None
        self.smtp_password = os.getenv("SMTP_PASSWORD") or None
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL", "taskcred@example.com")
        self.smtp_use_tls = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

        # Reminder sweep
        self.reminder_interval_seconds = int(os.getenv("REMINDER_INTERVAL_SECONDS", "3600"))
        self.reminder_window_hours = int(os.getenv("REMINDER_WINDOW_HOURS", "24"))

        self.max_attachment_bytes = int(
            os.getenv("MAX_ATTACHMENT_BYTES", str(10 * 1024 * 1024))
        )


settings = Settings()


def build_database(config: Settings) -> MongoDatabase | InMemoryDatabase:
    """Pick the storage backend."""
    if config.storage == "memory":
        return InMemoryDatabase()
    return MongoDatabase(config.mongo_uri, config.mongo_database)


def build_notifier(config: Settings) -> Notifier:
    """SMTP notifier when configured, otherwise a logging one."""
    if not config.smtp_host:
        logger.warning("SMTP_HOST not set, e-mails will only be logged")
        return LoggingNotifier()
    return EmailNotifier(
        EmailConfig(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            smtp_user=config.smtp_user,
            smtp_password=config.smtp_password,
            from_email=config.smtp_from_email,
            use_tls=config.smtp_use_tls,
            frontend_url=config.frontend_url,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Database connection setup
    - Notifier and service construction
    - The periodic due-date reminder sweep
    """
    db = build_database(settings)
    await db.connect()

    notifier = build_notifier(settings)

    app.state.db = db
    app.state.notifier = notifier
    app.state.auth_service = AuthService(
        db.accounts, notifier, email_domain=settings.org_email_domain
    )
    app.state.account_service = AccountService(db.accounts)
    app.state.task_service = TaskService(
        db.tasks,
        db.accounts,
        db.files,
        max_attachment_bytes=settings.max_attachment_bytes,
    )
    reminders = ReminderService(
        db.tasks,
        db.accounts,
        notifier,
        window=timedelta(hours=settings.reminder_window_hours),
    )
    app.state.reminder_service = reminders

    reminder_task = asyncio.create_task(
        run_reminder_loop(reminders, settings.reminder_interval_seconds)
    )
    logger.info(f"taskcred started with {settings.storage} storage")

    yield

    reminder_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await reminder_task

    await db.close()


def get_auth_service(request: Request) -> AuthService:
    """Get the auth service from app state."""
    service: AuthService = request.app.state.auth_service
    return service


def get_account_service(request: Request) -> AccountService:
    """Get the account service from app state."""
    service: AccountService = request.app.state.account_service
    return service


def get_task_service(request: Request) -> TaskService:
    """Get the task service from app state."""
    service: TaskService = request.app.state.task_service
    return service
