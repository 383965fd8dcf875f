# users_api/core/models_user.py
""""定义 UserRole（admin|user）与 User 实体：
id/username/email/password(哈希)/confirmationCode/roles/status/createdDate/lastModifiedDate。

User 在仓储与控制器之间按值传递：from_document() 每次构造新对象，
public() 生成对外 JSON（不含口令哈希与确认码）。"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field

from users_api.core import security
from users_api.core.state_machine import UserStatus, is_known_status


class UserRole(str, Enum):
    admin = "admin"
    user = "user"


# 文档字段名（与 JSON 输出一致，_id 除外）
DOC_FIELDS = {
    "username": "username",
    "email": "email",
    "password": "password",
    "confirmation_code": "confirmationCode",
    "roles": "roles",
    "status": "status",
    "created_date": "createdDate",
    "last_modified_date": "lastModifiedDate",
}


class User(BaseModel):
    id: Optional[str] = None
    username: str = ""
    email: str = ""
    password: str = ""
    confirmation_code: str = ""
    roles: List[str] = Field(default_factory=list)
    status: str = ""
    created_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None

    def has_role(self, role) -> bool:
        return getattr(role, "value", role) in self.roles

    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def set_password(self, plain: str):
        self.password = security.hash_password(plain) if plain else ""

    def verify_password(self, plain: str) -> bool:
        return security.verify_password(plain, self.password)

    def generate_confirmation_code(self) -> str:
        self.confirmation_code = security.generate_confirmation_code()
        return self.confirmation_code

    def is_code_verified(self, code: str) -> bool:
        return security.codes_match(code, self.confirmation_code)

    def is_valid(self) -> bool:
        if not self.username.strip() or not self.password:
            return False
        if "@" not in self.email or self.email.startswith("@") or self.email.endswith("@"):
            return False
        return is_known_status(self.status)

    def to_document(self) -> dict:
        doc = {key: getattr(self, attr) for attr, key in DOC_FIELDS.items()}
        if self.id:
            doc["_id"] = ObjectId(self.id)
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> "User":
        data = {attr: doc.get(key) for attr, key in DOC_FIELDS.items() if doc.get(key) is not None}
        data["roles"] = list(doc.get("roles") or [])
        if doc.get("_id") is not None:
            data["id"] = str(doc["_id"])
        return cls(**data)

    def public(self) -> dict:
        return {
            "id": self.id or "",
            "username": self.username,
            "email": self.email,
            "roles": list(self.roles),
            "status": self.status,
            "createdDate": self.created_date,
            "lastModifiedDate": self.last_modified_date,
        }
