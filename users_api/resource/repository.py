"""
模块职能：
- users 集合的全部读写：创建、点查、存在性探测、过滤/计数（游标分页）、部分更新、删除。
- UserRepositoryFactory：宿主可替换仓储实现（new(database) → repository）。

约定：
- id 必须是 24 位十六进制字符串，否则 InvalidIdError
- 返回的 User 均由文档重新构造（按值传递，不与存储共享引用）
- 排序只允许 "_id" / "-_id"，保证分页走 _id 索引；其它值静默改为 "-_id"

日志：
- users_text_index_error / users_unique_index_error（建索引失败只记日志，不中断）
"""
import re
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pymongo import ASCENDING, TEXT

from users_api.core.errors import InvalidIdError, NotFoundError, ValidationFailed
from users_api.core.models_user import User
from users_api.infra.db import MongoDatabase, Query
from users_api.infra.logger import emit_error

USERS_COLLECTION = "users"
DEFAULT_SORT = "-_id"
ALLOWED_SORTS = {"_id", "-_id"}
# 口令哈希与确认码不能作为过滤字段
FILTER_FIELDS = {"username", "email", "status"}
GET_USERS_LIMIT = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_object_id_hex(value) -> bool:
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)


def _object_id(value: str) -> ObjectId:
    if not is_object_id_hex(value):
        raise InvalidIdError(value)
    return ObjectId(value)


def build_filter(field: str, query: str) -> Query:
    """有 field → 前缀、忽略大小写的正则；无 field → username/email/status 全文检索。"""
    q: Query = {}
    if not query:
        return q
    if field:
        if field not in FILTER_FIELDS:
            raise ValidationFailed(f"Invalid filter field: `{field}`")
        q[field] = {"$regex": f"^{re.escape(query)}", "$options": "i"}
    else:
        q["$text"] = {"$search": query}
    return q


class UserRepository:
    def __init__(self, db: MongoDatabase):
        self.db = db

    def ensure_indexes(self):
        """幂等；失败只记日志。"""
        for name in ("username", "email"):
            try:
                self.db.ensure_index(USERS_COLLECTION, [(name, ASCENDING)], unique=True, background=True)
            except Exception as e:
                emit_error("users_unique_index_error", field=name, error=str(e))
        self._ensure_text_index()

    def _ensure_text_index(self):
        try:
            self.db.ensure_index(
                USERS_COLLECTION,
                [("username", TEXT), ("email", TEXT), ("status", TEXT)],
                background=True, sparse=True,
            )
        except Exception as e:
            emit_error("users_text_index_error", error=str(e))

    def create_user(self, user: User) -> User:
        """分配新 id 与时间戳后插入；user 对象本身被回填 id/时间戳。"""
        now = _now()
        user.id = str(ObjectId())
        user.created_date = now
        user.last_modified_date = now
        self.db.insert(USERS_COLLECTION, user.to_document())
        return user.model_copy(deep=True)

    def get_users(self) -> List[User]:
        docs = self.db.find_all(USERS_COLLECTION, {}, limit=GET_USERS_LIMIT, sort=DEFAULT_SORT)
        return [User.from_document(d) for d in docs]

    def filter_users(self, field: str = "", query: str = "", last_id: str = "",
                     limit: int = 20, sort: str = "") -> List[User]:
        self._ensure_text_index()

        if sort not in ALLOWED_SORTS:
            sort = DEFAULT_SORT

        q = build_filter(field, query)
        if last_id and is_object_id_hex(last_id):
            op = "$gt" if sort == "_id" else "$lt"
            q["_id"] = {op: ObjectId(last_id)}

        docs = self.db.find_all(USERS_COLLECTION, q, limit=limit, sort=sort)
        return [User.from_document(d) for d in docs]

    def count_users(self, field: str = "", query: str = "") -> int:
        return self.db.count(USERS_COLLECTION, build_filter(field, query))

    def get_user_by_id(self, id: str) -> User:
        oid = _object_id(id)
        try:
            doc = self.db.find_one(USERS_COLLECTION, {"_id": oid})
        except NotFoundError:
            raise NotFoundError("User not found")
        return User.from_document(doc)

    def get_user_by_username(self, username: str) -> User:
        try:
            doc = self.db.find_one(USERS_COLLECTION, {"username": username})
        except NotFoundError:
            raise NotFoundError("User not found")
        return User.from_document(doc)

    def user_exists_by_username(self, username: str) -> bool:
        return self.db.exists(USERS_COLLECTION, {"username": username})

    def user_exists_by_email(self, email: str) -> bool:
        return self.db.exists(USERS_COLLECTION, {"email": email})

    def update_user(self, id: str, patch: User) -> User:
        """只合并非空字段（email/username/status/roles），并刷新 lastModifiedDate。"""
        oid = _object_id(id)
        update = {"lastModifiedDate": _now()}
        if patch.email:
            update["email"] = patch.email
        if patch.username:
            update["username"] = patch.username
        if patch.status:
            update["status"] = patch.status
        if patch.roles:
            update["roles"] = list(patch.roles)

        try:
            doc = self.db.update(USERS_COLLECTION, {"_id": oid}, {"$set": update})
        except NotFoundError:
            raise NotFoundError("User not found")
        return User.from_document(doc)

    def update_password(self, id: str, password_hash: str) -> User:
        oid = _object_id(id)
        if not password_hash:
            raise ValidationFailed("Password is required")
        try:
            doc = self.db.update(USERS_COLLECTION, {"_id": oid},
                                 {"$set": {"password": password_hash, "lastModifiedDate": _now()}})
        except NotFoundError:
            raise NotFoundError("User not found")
        return User.from_document(doc)

    def delete_user(self, id: str):
        oid = _object_id(id)
        try:
            self.db.remove_one(USERS_COLLECTION, {"_id": oid})
        except NotFoundError:
            raise NotFoundError("User not found")

    def delete_users(self, ids: Optional[List[str]]) -> int:
        object_ids = [ObjectId(i) for i in (ids or []) if is_object_id_hex(i)]
        if not object_ids:
            return 0
        return self.db.remove_all(USERS_COLLECTION, {"_id": {"$in": object_ids}})

    def delete_all_users(self):
        self.db.drop_collection(USERS_COLLECTION)
        # drop 会一并删掉索引
        self.ensure_indexes()


class UserRepositoryFactory:
    def new(self, db: MongoDatabase) -> UserRepository:
        return UserRepository(db)
