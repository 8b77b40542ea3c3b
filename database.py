"""
MongoDB access.

`db` is None unless DATABASE_URL and DATABASE_NAME are both set; callers check
for that before touching a collection.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient

logger = logging.getLogger(__name__)

PROGRESS_COLLECTION = "decision_tree_progress"

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None
if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info("Using MongoDB database %s", DATABASE_NAME)


def create_document(collection_name: str, data: Dict[str, Any]) -> str:
    if db is None:
        raise RuntimeError("Database not configured")
    doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    return str(db[collection_name].insert_one(doc).inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    if db is None:
        raise RuntimeError("Database not configured")
    cursor = db[collection_name].find(filter_dict or {}).sort("createdAt", -1)
    if limit:
        cursor = cursor.limit(limit)
    out = []
    for d in cursor:
        d["id"] = str(d.pop("_id"))
        out.append(d)
    return out


class MongoProgressStore:
    """Progress snapshots keyed by decision_tree.progress_key, one document per key."""

    def __init__(self, collection):
        self.collection = collection

    def save(self, key: str, data: Dict[str, Any]) -> None:
        doc = {**data, "_id": key, "updatedAt": datetime.now(timezone.utc)}
        self.collection.replace_one({"_id": key}, doc, upsert=True)

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one({"_id": key})
        if not doc:
            return None
        doc.pop("_id", None)
        doc.pop("updatedAt", None)
        return doc
