"""
Key-value persistence for the order ledger.

Both backends store opaque string values under string keys:
- JsonFileStore: one local JSON file holding {key: value}
- MongoStore: one document per key in a MongoDB collection
"""
import os
from typing import Any, Dict, Optional, Protocol

import orjson
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from logging_config import get_logger
from settings import Settings

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class JsonFileStore:
    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "rb") as f:
            raw = f.read()
        if not raw.strip():
            return {}
        data = orjson.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"store file {self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else orjson.dumps(value).decode("utf-8")

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except ValueError as e:
            logger.warning("Store file %s is unreadable, rewriting it: %s", self.path, e)
            data = {}
        data[key] = value
        d = os.path.dirname(self.path)
        if d:
            os.makedirs(d, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "wb") as f:
                f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            os.replace(tmp_path, self.path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def describe(self) -> str:
        return f"file:{self.path}"


class MongoStore:
    def __init__(self, collection: Collection):
        self.collection = collection

    def get(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"_id": key})
        if not doc:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)

    def describe(self) -> str:
        return f"mongo:{self.collection.full_name}"


def get_database(settings: Settings) -> Optional[Database]:
    if not settings.DATABASE_URL or not settings.DATABASE_NAME:
        return None
    client = MongoClient(settings.DATABASE_URL)
    return client[settings.DATABASE_NAME]


def build_store(settings: Settings) -> KeyValueStore:
    backend = settings.STORE_BACKEND.strip().lower()
    if backend == "mongo":
        db = get_database(settings)
        if db is None:
            raise ValueError("STORE_BACKEND=mongo requires DATABASE_URL and DATABASE_NAME")
        logger.info("Using MongoDB store %s.%s", settings.DATABASE_NAME, settings.STORE_COLLECTION)
        return MongoStore(db[settings.STORE_COLLECTION])
    if backend == "file":
        logger.info("Using JSON file store at %s", settings.STORE_FILE)
        return JsonFileStore(settings.STORE_FILE)
    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
