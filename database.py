"""
MongoDB access.

The ledger only ever needs equality-filtered reads of a whole collection and
single-document writes by id, so that is all Repository offers. Ids are
generated here as strings and stored in `_id`; documents come back with the
key renamed to `id`.
"""
import logging
import os
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "project_ledger")


def connect(url: Optional[str] = DATABASE_URL,
            name: str = DATABASE_NAME) -> Optional[Database]:
    if not url:
        logger.warning("DATABASE_URL not set, running without a database")
        return None
    # MongoClient connects lazily; failures surface on first query
    client = MongoClient(url, serverSelectionTimeoutMS=5000)
    return client[name]


db = connect()


def _to_document(data: Any) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


def _from_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _query(filters: Dict[str, Any]) -> Dict[str, Any]:
    query = {}
    for field, value in filters.items():
        if field == "id":
            field = "_id"
        if isinstance(value, (list, tuple, set)):
            value = {"$in": list(value)}
        query[field] = value
    return query


class Repository:
    def __init__(self, database: Database):
        self.database = database

    def find(self, collection: str, **filters) -> List[Dict[str, Any]]:
        """All documents whose fields equal the given values (lists match any)."""
        return [_from_document(d) for d in self.database[collection].find(_query(filters))]

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        doc = self.database[collection].find_one({"_id": record_id})
        return _from_document(doc) if doc else None

    def insert(self, collection: str, data: Any) -> str:
        doc = _to_document(data)
        doc.pop("id", None)
        doc["_id"] = uuid.uuid4().hex
        self.database[collection].insert_one(doc)
        logger.info("Inserted %s/%s", collection, doc["_id"])
        return doc["_id"]

    def update(self, collection: str, record_id: str, data: Any) -> bool:
        doc = _to_document(data)
        doc.pop("id", None)
        result = self.database[collection].update_one({"_id": record_id}, {"$set": doc})
        logger.info("Updated %s/%s (matched=%s)", collection, record_id, result.matched_count)
        return result.matched_count > 0

    def delete(self, collection: str, record_id: str) -> bool:
        result = self.database[collection].delete_one({"_id": record_id})
        logger.info("Deleted %s/%s (deleted=%s)", collection, record_id, result.deleted_count)
        return result.deleted_count > 0

    def collection_names(self) -> List[str]:
        return self.database.list_collection_names()
