"""
MongoDB implementation of the ticket repository.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from support_relay.domains import (
    StatusHistoryEntry,
    Ticket,
    TicketNote,
    TicketStatus,
    utcnow,
)
from support_relay.interfaces.providers.data_storage import DataStorageProvider
from support_relay.interfaces.repositories import TicketRepository
from support_relay.repositories.documents import to_document


class MongoTicketRepository(TicketRepository):
    """MongoDB implementation of the TicketRepository interface."""

    def __init__(self, db_adapter: DataStorageProvider):
        """Initialize the repository with a database adapter.

        Args:
            db_adapter: MongoDB adapter instance
        """
        self.db = db_adapter
        self.collection = "tickets"

        # Ensure collection exists
        self.db.create_collection(self.collection)

        # Create indexes for common queries
        self.db.create_index(self.collection, [("id", 1)], unique=True)
        self.db.create_index(self.collection, [("ticket_id", 1)], unique=True)
        self.db.create_index(self.collection, [("customer_id", 1), ("created_at", -1)])
        self.db.create_index(self.collection, [("conversation_id", 1)])
        self.db.create_index(self.collection, [("status", 1), ("updated_at", -1)])
        self.db.create_index(self.collection, [("status", 1), ("resolution.resolved_at", -1)])

    def create(self, ticket: Ticket) -> str:
        """Create a new ticket and return its internal ID."""
        self.db.insert_one(self.collection, to_document(ticket))
        return ticket.id

    def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get a ticket by internal ID, falling back to the human-readable ID."""
        doc = self.db.find_one(self.collection, {"id": ticket_id})
        if not doc:
            doc = self.db.find_one(
                self.collection,
                {"ticket_id": {"$regex": f"^{re.escape(ticket_id)}$", "$options": "i"}},
            )
        if not doc:
            return None
        return Ticket.model_validate(doc)

    def compare_and_set(
        self,
        ticket_id: str,
        expected_status: TicketStatus,
        updates: Dict[str, Any],
        entry: StatusHistoryEntry,
        unset: Optional[List[str]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> bool:
        """Write a status change only if nobody changed the status meanwhile."""
        operation: Dict[str, Any] = {
            "$set": to_document({**updates, "updated_at": utcnow()}),
            "$push": {"status_history": to_document(entry)},
        }
        if unset:
            operation["$unset"] = {field: "" for field in unset}
        if increments:
            operation["$inc"] = dict(increments)
        return self.db.update_one(
            self.collection,
            {"id": ticket_id, "status": expected_status.value},
            operation,
        )

    def update(self, ticket_id: str, updates: Dict[str, Any]) -> bool:
        """Update fields that are not governed by the state machine."""
        if "status" in updates or "status_history" in updates:
            raise ValueError("Status changes must go through compare_and_set")
        return self.db.update_one(
            self.collection,
            {"id": ticket_id},
            {"$set": to_document({**updates, "updated_at": utcnow()})},
        )

    def add_note(self, ticket_id: str, note: TicketNote) -> bool:
        """Add a note to a ticket."""
        return self.db.update_one(
            self.collection,
            {"id": ticket_id},
            {
                "$push": {"notes": to_document(note)},
                "$set": to_document({"updated_at": utcnow()}),
            },
        )

    def find(self, query: Dict, sort_by: Optional[str] = None, limit: int = 0) -> List[Ticket]:
        """Find tickets matching query."""
        sort_option = None
        if sort_by:
            # Determine sort direction
            direction = -1 if sort_by.startswith("-") else 1
            field = sort_by[1:] if sort_by.startswith("-") else sort_by
            sort_option = [(field, direction)]

        docs = self.db.find(self.collection, to_document(query),
                            sort=sort_option, limit=limit)

        return [Ticket.model_validate(doc) for doc in docs]

    def find_resolved_since(
        self, cutoff: datetime, statuses: List[TicketStatus], linked_only: bool = True
    ) -> List[Ticket]:
        query: Dict[str, Any] = {
            "status": {"$in": [s.value for s in statuses]},
            "resolution.resolved_at": {"$gte": to_document(cutoff)},
        }
        if linked_only:
            query["conversation_id"] = {"$ne": None}
        docs = self.db.find(
            self.collection, query, sort=[("resolution.resolved_at", -1)])
        return [Ticket.model_validate(doc) for doc in docs]

    def count(self, query: Dict) -> int:
        """Count tickets matching query."""
        return self.db.count_documents(self.collection, to_document(query))
