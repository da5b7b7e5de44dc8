"""
MongoDB access helpers.

`db` is None when DATABASE_URL is not configured; request handlers go through
`get_db()` so that the missing database surfaces as a 500 and tests can swap
in another database object.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson.objectid import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient

import config

client = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db = client[config.DATABASE_NAME] if client is not None else None


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_obj_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id format")


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a stored document into a JSON-friendly dict with a string `id`."""
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(database, collection_name: str, data: Union[BaseModel, dict],
                    doc_id: Optional[str] = None) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict["createdAt"] = stamp
    data_dict["updatedAt"] = stamp
    if doc_id is not None:
        data_dict["_id"] = doc_id
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, newest_first: bool = False) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort("createdAt", -1)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]
