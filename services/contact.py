from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from app.schemas import ContactChannel, ContactMessage, ContactMessageIn
from datastore.tables import Database

logger = logging.getLogger(__name__)

SUPPORT_ADDRESS = "support@airwatch.local"


class ContactService:
    def __init__(self, database: Database) -> None:
        self.database = database

    def submit(self, payload: ContactMessageIn) -> ContactMessage:
        message = ContactMessage(
            **payload.model_dump(),
            id=str(uuid4()),
            created_at=datetime.now(timezone.utc),
        )
        self.database.contact_messages.put_item(message)
        if message.type is ContactChannel.email:
            # No mail transport is configured; the log line is the hand-off.
            logger.info(
                "Forwarding contact message to %s",
                SUPPORT_ADDRESS,
                extra={"email": message.email},
            )
        return message

    def list_messages(self) -> list[ContactMessage]:
        return sorted(
            self.database.contact_messages.scan(),
            key=lambda item: item.created_at,
            reverse=True,
        )
