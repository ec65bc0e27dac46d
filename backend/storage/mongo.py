"""
MongoDB session store. The session id is used as the document _id.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection

from storage.base import SessionStore
from utils.config import config

logger = logging.getLogger(__name__)


def _to_mongo(document: Dict[str, Any]) -> Dict[str, Any]:
    payload = dict(document)
    payload["_id"] = payload["id"]
    return payload


def _from_mongo(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    payload = dict(document)
    payload.pop("_id", None)
    return payload


class MongoSessionStore(SessionStore):
    """Store backed by a single MongoDB collection."""

    def __init__(self, collection: Collection, max_update_attempts: Optional[int] = None):
        super().__init__(max_update_attempts)
        self.collection = collection

    @classmethod
    def from_config(cls) -> "MongoSessionStore":
        if not config.storage.mongodb_uri:
            raise RuntimeError("MONGODB_URI is required for the mongo session store")
        client = MongoClient(config.storage.mongodb_uri, serverSelectionTimeoutMS=5000)
        collection = client.get_database(config.storage.database)[config.storage.collection]
        collection.create_index([("owner", 1), ("createdAt", DESCENDING)])
        logger.info(f"MongoDB session store ready: {config.storage.database}.{config.storage.collection}")
        return cls(collection)

    def _insert(self, document: Dict[str, Any]) -> None:
        self.collection.insert_one(_to_mongo(document))

    def _fetch(self, session_id: str) -> Optional[Dict[str, Any]]:
        return _from_mongo(self.collection.find_one({"_id": session_id}))

    def _replace(self, document: Dict[str, Any], expected_version: int) -> bool:
        result = self.collection.replace_one(
            {"_id": document["id"], "version": expected_version},
            _to_mongo(document),
        )
        return result.matched_count == 1

    def _fetch_owned(self, owner: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"owner": owner}).sort("createdAt", DESCENDING)
        return [_from_mongo(d) for d in cursor]
