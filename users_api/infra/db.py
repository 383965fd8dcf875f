"""
模块职能：
- 读取 MONGO_URL / MONGO_DB，创建共享的 MongoClient（连接池由宿主持有）
- MongoDatabase：文档存储抽象（insert/find/update/remove/count/index/drop），
  仓储层只依赖这组方法，查询条件统一用 dict 表示
- get_database()：进程内单例，供 main 装配资源

错误映射：
- pymongo.errors.PyMongoError → StorageError（消息原样透传）
- 单条查找/更新/删除未命中 → NotFoundError("not found")
"""
import os
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from users_api.core.errors import NotFoundError, StorageError

MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "users_api")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

Query = Dict[str, Any]

_client: Optional[MongoClient] = None


def parse_sort(sort: str) -> List[tuple]:
    """"-_id,username" → [("_id", DESCENDING), ("username", ASCENDING)]"""
    keys = []
    for part in (sort or "").split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            keys.append((part[1:], DESCENDING))
        else:
            keys.append((part, ASCENDING))
    return keys


class MongoDatabase:
    def __init__(self, db):
        self._db = db

    @property
    def name(self) -> str:
        return self._db.name

    def collection(self, name: str):
        return self._db[name]

    def insert(self, collection: str, document: dict):
        try:
            return self._db[collection].insert_one(document).inserted_id
        except PyMongoError as e:
            raise StorageError(str(e))

    def find_one(self, collection: str, query: Query) -> dict:
        try:
            doc = self._db[collection].find_one(query)
        except PyMongoError as e:
            raise StorageError(str(e))
        if doc is None:
            raise NotFoundError()
        return doc

    def find_all(self, collection: str, query: Optional[Query] = None,
                 limit: int = 0, sort: str = "") -> List[dict]:
        try:
            cursor = self._db[collection].find(query or {})
            keys = parse_sort(sort)
            if keys:
                cursor = cursor.sort(keys)
            if limit > 0:
                cursor = cursor.limit(limit)
            return list(cursor)
        except PyMongoError as e:
            raise StorageError(str(e))

    def exists(self, collection: str, query: Query) -> bool:
        try:
            return self._db[collection].find_one(query, {"_id": 1}) is not None
        except PyMongoError as e:
            raise StorageError(str(e))

    def count(self, collection: str, query: Optional[Query] = None) -> int:
        try:
            return self._db[collection].count_documents(query or {})
        except PyMongoError as e:
            raise StorageError(str(e))

    def update(self, collection: str, query: Query, update: Query) -> dict:
        """应用 update 并返回更新后的文档。"""
        try:
            doc = self._db[collection].find_one_and_update(
                query, update, return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageError(str(e))
        if doc is None:
            raise NotFoundError()
        return doc

    def remove_one(self, collection: str, query: Query):
        try:
            res = self._db[collection].delete_one(query)
        except PyMongoError as e:
            raise StorageError(str(e))
        if res.deleted_count == 0:
            raise NotFoundError()

    def remove_all(self, collection: str, query: Query) -> int:
        try:
            return self._db[collection].delete_many(query).deleted_count
        except PyMongoError as e:
            raise StorageError(str(e))

    def ensure_index(self, collection: str, keys: List[tuple], **kwargs) -> str:
        try:
            return self._db[collection].create_index(keys, **kwargs)
        except PyMongoError as e:
            raise StorageError(str(e))

    def drop_collection(self, collection: str):
        try:
            self._db.drop_collection(collection)
        except PyMongoError as e:
            raise StorageError(str(e))


def get_client() -> MongoClient:
    # MongoClient 惰性连接：构造时不会访问网络
    global _client
    if _client is None:
        _client = MongoClient(MONGO_URL, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS, tz_aware=True)
    return _client


def get_database() -> MongoDatabase:
    return MongoDatabase(get_client()[MONGO_DB])
