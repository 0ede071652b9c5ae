"""
MongoDB access for EcoTrack

One collection per entity type.  Collection names match the ones the
Mongoose models wrote to, so existing data stays readable:

    users, challenges, userchallenges, tips, events

The ``Database`` handle is built once per application and reaches the
route handlers through a FastAPI dependency.  All datetimes are stored as
naive UTC, which is what pymongo hands back by default.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from config import Settings

logger = logging.getLogger(__name__)

USERS = "users"
CHALLENGES = "challenges"
USER_CHALLENGES = "userchallenges"
TIPS = "tips"
EVENTS = "events"

NEWEST_FIRST: List[Tuple[str, int]] = [("createdAt", -1)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    return value


def serialize(value: Any) -> Any:
    """Turn ObjectIds into hex strings so documents can leave the API."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


class Database:
    """Connection handle plus the handful of store operations the API uses."""

    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.name = name
        self.db = client[name]

    @classmethod
    def connect(cls, settings: Settings) -> "Database":
        client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=settings.db_timeout_ms)
        return cls(client, settings.db_name)

    def __getitem__(self, collection_name: str) -> Collection:
        return self.db[collection_name]

    def init(self) -> bool:
        """Check connectivity and make sure the unique indexes exist.

        Failure is logged and reported through the return value; the
        service keeps running and individual requests fail instead.
        """
        try:
            self.client.server_info()
            self.db[USERS].create_index("email", unique=True)
        except PyMongoError as e:
            logger.error("MongoDB Connection Error: %s", e)
            return False
        logger.info("MongoDB Connected Successfully (database %s)", self.name)
        return True

    def close(self) -> None:
        self.client.close()

    # Repository operations

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> Dict[str, Any]:
        """Insert a document with fresh timestamps and return it as stored."""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = dict(data)
        data_dict = _normalize(data_dict)
        now = utcnow()
        data_dict["createdAt"] = now
        data_dict["updatedAt"] = now
        result = self.db[collection_name].insert_one(data_dict)
        return self.db[collection_name].find_one({"_id": result.inserted_id}) or {**data_dict, "_id": result.inserted_id}

    def find_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_by_id(self, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.db[collection_name].find_one({"_id": ObjectId(doc_id)})

    def update_by_id(self, collection_name: str, doc_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge ``fields`` into the document and bump ``updatedAt``.

        Returns the updated document, or None when the id matches nothing.
        """
        changes = _normalize(dict(fields))
        changes["updatedAt"] = utcnow()
        return self.db[collection_name].find_one_and_update(
            {"_id": ObjectId(doc_id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

    def delete_by_id(self, collection_name: str, doc_id: str) -> bool:
        result = self.db[collection_name].delete_one({"_id": ObjectId(doc_id)})
        return result.deleted_count > 0

    def populate(self, docs: Iterable[Dict[str, Any]], field: str, collection_name: str) -> List[Dict[str, Any]]:
        """Replace the reference stored in ``field`` with the referenced document.

        All references are resolved with a single ``$in`` query.  A
        reference whose target no longer exists is replaced by None.
        """
        docs = list(docs)
        ids = {doc[field] for doc in docs if isinstance(doc.get(field), ObjectId)}
        related = {}
        if ids:
            related = {d["_id"]: d for d in self.db[collection_name].find({"_id": {"$in": list(ids)}})}
        for doc in docs:
            doc[field] = related.get(doc.get(field))
        return docs
