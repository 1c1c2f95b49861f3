"""
Database Helper Functions

MongoDB helper functions used by the claim, game and leaderboard code.
Every write that has to be race-free goes through a single
find_one_and_update with the precondition in the filter.
"""

import logging
from pymongo import MongoClient, ReturnDocument, ASCENDING, DESCENDING
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List, Tuple
from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(
        config.DATABASE_URL,
        serverSelectionTimeoutMS=config.MONGO_TIMEOUT_MS,
        connectTimeoutMS=config.MONGO_TIMEOUT_MS,
        socketTimeoutMS=config.MONGO_TIMEOUT_MS,
    )
    db = _client[config.DATABASE_NAME]


class DatabaseUnavailable(RuntimeError):
    pass


def utcnow() -> datetime:
    """Current UTC time as BSON stores it: naive, millisecond precision."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# Helper: ensure dict

def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return data.copy()


def _collection(collection_name: str):
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db[collection_name]


def _public(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return None
    if '_id' in doc:
        doc['id'] = str(doc.pop('_id'))
    return doc


def ensure_indexes() -> None:
    if db is None:
        logger.warning("Skipping index creation, database not configured")
        return
    db["user"].create_index([("address", ASCENDING)], unique=True)
    db["user"].create_index([("points", DESCENDING), ("created_at", ASCENDING), ("address", ASCENDING)])
    db["gameresult"].create_index([("address", ASCENDING), ("created_at", DESCENDING)])


def create_document(collection_name: str, data: Union[BaseModel, dict], now: Optional[datetime] = None) -> str:
    """Insert a single document with timestamp"""
    data_dict = _to_dict(data)
    now = now or utcnow()
    data_dict['created_at'] = now
    data_dict['updated_at'] = now

    result = _collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: dict = None,
    limit: int = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    projection: Optional[dict] = None,
):
    """Get documents from collection"""
    cursor = _collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [_public(d) for d in cursor]


def find_one(collection_name: str, filter_dict: dict) -> Optional[Dict[str, Any]]:
    return _public(_collection(collection_name).find_one(filter_dict))


def count_documents(collection_name: str, filter_dict: dict) -> int:
    return _collection(collection_name).count_documents(filter_dict)


def modify_document(collection_name: str, filter_dict: dict, update: dict, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Apply update operators to the first document matching filter_dict.

    Returns the updated document, or None when nothing matched (either the
    document is missing or its precondition no longer holds).
    """
    update = dict(update)
    update["$set"] = {**update.get("$set", {}), "updated_at": now or utcnow()}
    doc = _collection(collection_name).find_one_and_update(filter_dict, update, return_document=ReturnDocument.AFTER)
    return _public(doc)


def update_document(collection_name: str, filter_dict: dict, update_dict: dict, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Update a document and return the updated version"""
    return modify_document(collection_name, filter_dict, {"$set": update_dict}, now=now)


def increment_field(
    collection_name: str,
    filter_dict: dict,
    inc_dict: dict,
    add_to_set: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    update: Dict[str, Any] = {"$inc": inc_dict}
    if add_to_set:
        update["$addToSet"] = add_to_set
    return modify_document(collection_name, filter_dict, update, now=now)
