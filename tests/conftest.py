# tests/conftest.py
# 测试环境变量要在导入 users_api 之前设置
import os

os.environ["LOG_TO_FILE"] = "false"   # 测试别落盘，减少噪音
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SEND_CONFIRMATION_EMAIL"] = "false"

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from users_api.infra.db import MongoDatabase  # noqa: E402
from users_api.main import create_application  # noqa: E402
from users_api.resource.repository import UserRepository  # noqa: E402
from users_api.resource.resource import ControllerHooks  # noqa: E402


class HookRecorder:
    """记录钩子收到的 payload；fail_create/fail_confirm 为真时让钩子抛错。"""

    def __init__(self):
        self.created = []
        self.confirmed = []
        self.fail_create = False
        self.fail_confirm = False

    def post_create_user(self, resource, request, payload):
        self.created.append(payload.user)
        if self.fail_create:
            raise RuntimeError("mail server unavailable")

    def post_confirm_user(self, resource, request, payload):
        self.confirmed.append(payload.user)
        if self.fail_confirm:
            raise RuntimeError("welcome mail failed")

    def hooks(self) -> ControllerHooks:
        return ControllerHooks(
            post_create_user=self.post_create_user,
            post_confirm_user=self.post_confirm_user,
        )


@pytest.fixture()
def database():
    return MongoDatabase(mongomock.MongoClient()["users_api_test"])


@pytest.fixture()
def repo(database):
    r = UserRepository(database)
    r.ensure_indexes()
    return r


@pytest.fixture()
def recorder():
    return HookRecorder()


@pytest.fixture()
def client(database, recorder):
    app = create_application(database=database, hooks=recorder.hooks())
    with TestClient(app) as c:
        yield c
