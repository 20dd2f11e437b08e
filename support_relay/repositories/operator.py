"""
MongoDB implementation of the operator directory.
"""
from typing import List, Optional

from support_relay.domains import Operator
from support_relay.interfaces.providers.data_storage import DataStorageProvider
from support_relay.interfaces.repositories import OperatorRepository
from support_relay.repositories.documents import to_document


class MongoOperatorRepository(OperatorRepository):
    """MongoDB implementation of OperatorRepository."""

    def __init__(self, db_adapter: DataStorageProvider):
        self.db = db_adapter
        self.collection = "operators"

        self.db.create_collection(self.collection)
        self.db.create_index(self.collection, [("id", 1)], unique=True)
        self.db.create_index(self.collection, [("available", 1)])

    def get(self, operator_id: str) -> Optional[Operator]:
        doc = self.db.find_one(self.collection, {"id": operator_id})
        if not doc:
            return None
        return Operator.model_validate(doc)

    def save(self, operator: Operator) -> bool:
        return self.db.update_one(
            self.collection,
            {"id": operator.id},
            {"$set": to_document(operator)},
            upsert=True,
        )

    def list_available(self) -> List[Operator]:
        docs = self.db.find(self.collection, {"available": True}, sort=[("id", 1)])
        return [Operator.model_validate(doc) for doc in docs]
