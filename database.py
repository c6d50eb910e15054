"""
MongoDB access.

The client is created only when DATABASE_URL and DATABASE_NAME are set;
otherwise `db` stays None and endpoints needing storage answer 503.
"""
import os
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from errors import InvalidIdentifier
from logging_config import get_logger

logger = get_logger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info("mongo_client_created", database=DATABASE_NAME)
else:
    logger.warning("mongo_not_configured")


def ensure_indexes(database: Database) -> None:
    # One cart per customer; concurrent first-time adds rely on this to collide
    database["cart"].create_index("customer_id", unique=True)


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database is not configured")
    return db


def to_object_id(value: str, name: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value):
        raise InvalidIdentifier(name)
    return ObjectId(value)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(mode="python")
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: dict = None, limit: int = None):
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
