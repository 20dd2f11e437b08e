"""
MongoDB implementation of the conversation repository.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from support_relay.domains import (
    Conversation,
    ConversationStatus,
    ConversationTransitionRecord,
    OPERATOR_HELD_STATUSES,
    utcnow,
)
from support_relay.interfaces.providers.data_storage import DataStorageProvider
from support_relay.interfaces.repositories import ConversationRepository
from support_relay.repositories.documents import to_document


class MongoConversationRepository(ConversationRepository):
    """MongoDB implementation of the ConversationRepository interface."""

    def __init__(self, db_adapter: DataStorageProvider):
        """Initialize the repository with a database adapter.

        Args:
            db_adapter: MongoDB adapter instance
        """
        self.db = db_adapter
        self.collection = "conversations"

        # Ensure collection exists
        self.db.create_collection(self.collection)

        # Create indexes for common queries
        self.db.create_index(self.collection, [("id", 1)], unique=True)
        self.db.create_index(self.collection, [("customer_id", 1), ("created_at", -1)])
        self.db.create_index(self.collection, [("status", 1), ("assigned_operator", 1)])
        self.db.create_index(self.collection, [("status", 1), ("resolved_at", 1)])

    def create(self, conversation: Conversation) -> str:
        """Create a new conversation and return its ID."""
        self.db.insert_one(self.collection, to_document(conversation))
        return conversation.id

    def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        doc = self.db.find_one(self.collection, {"id": conversation_id})
        if not doc:
            return None
        return Conversation.model_validate(doc)

    def get_latest_for_customer(self, customer_id: str) -> Optional[Conversation]:
        doc = self.db.find_one(
            self.collection,
            {"customer_id": customer_id},
            sort=[("created_at", -1)],
        )
        if not doc:
            return None
        return Conversation.model_validate(doc)

    def compare_and_set(
        self,
        conversation_id: str,
        expected_status: ConversationStatus,
        updates: Dict[str, Any],
        record: ConversationTransitionRecord,
    ) -> bool:
        """Write a status change only if nobody changed the status meanwhile."""
        return self.db.update_one(
            self.collection,
            {"id": conversation_id, "status": expected_status.value},
            {
                "$set": to_document({**updates, "updated_at": utcnow()}),
                "$push": {"history": to_document(record)},
            },
        )

    def record_message(
        self, conversation_id: str, from_customer: bool, at: datetime, count: int = 1
    ) -> bool:
        field = (
            "last_customer_message_at"
            if from_customer
            else "last_operator_or_assistant_message_at"
        )
        return self.db.update_one(
            self.collection,
            {"id": conversation_id},
            {
                "$set": to_document({
                    "last_message_at": at,
                    field: at,
                    "updated_at": utcnow(),
                }),
                "$inc": {"message_count": count},
            },
        )

    def update(self, conversation_id: str, updates: Dict[str, Any]) -> bool:
        """Update fields that are not governed by the state machine."""
        if "status" in updates or "history" in updates:
            raise ValueError("Status changes must go through compare_and_set")
        return self.db.update_one(
            self.collection,
            {"id": conversation_id},
            {"$set": to_document({**updates, "updated_at": utcnow()})},
        )

    def find_by_status(
        self, statuses: List[ConversationStatus], limit: int = 0
    ) -> List[Conversation]:
        docs = self.db.find(
            self.collection,
            {"status": {"$in": [s.value for s in statuses]}},
            sort=[("updated_at", 1)],
            limit=limit,
        )
        return [Conversation.model_validate(doc) for doc in docs]

    def find_resolved_before(self, cutoff: datetime) -> List[Conversation]:
        docs = self.db.find(
            self.collection,
            {
                "status": ConversationStatus.RESOLVED.value,
                "resolved_at": {"$lt": to_document(cutoff)},
            },
        )
        return [Conversation.model_validate(doc) for doc in docs]

    def count_held_by_operator(self, operator_id: str) -> int:
        return self.db.count_documents(
            self.collection,
            {
                "assigned_operator": operator_id,
                "status": {"$in": sorted(s.value for s in OPERATOR_HELD_STATUSES)},
            },
        )
