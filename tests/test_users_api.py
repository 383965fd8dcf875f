# tests/test_users_api.py
# users 资源的 HTTP 行为：注册 → 确认 → 查询/更新/删除，以及各端点的访问控制
from bson import ObjectId

from scripts.seed_admin import run as seed_admin
from users_api.core.models_user import User
from users_api.resource.repository import GET_USERS_LIMIT, UserRepository

PASSWORD = "s3cret-pass"


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _login(client, username: str, password: str) -> str:
    r = client.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def _admin_token(client, database) -> str:
    seed_admin(database)
    return _login(client, "admin", "admin")


def _register(client, name: str, **extra) -> dict:
    user = {"username": name, "email": f"{name}@example.com", "password": PASSWORD, **extra}
    r = client.post("/api/users", json={"user": user})
    assert r.status_code == 201, r.text
    return r.json()["user"]


def _active_member(client, recorder, name: str):
    u = _register(client, name)
    code = recorder.created[-1].confirmation_code
    r = client.get(f"/api/users/{u['id']}/confirm", params={"code": code})
    assert r.status_code == 200, r.text
    return u["id"], _login(client, name, PASSWORD)


# ---------- create ----------

def test_create_user_is_pending_without_roles(client, recorder, database):
    r = client.post("/api/users", json={"user": {
        "username": "alice", "email": "alice@example.com", "password": PASSWORD,
        "status": "active", "roles": ["admin"],
    }})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User created"

    user = body["user"]
    assert user["status"] == "pending"
    assert user["roles"] == []
    assert len(user["id"]) == 24
    assert "password" not in user
    assert "confirmationCode" not in user

    # 钩子拿到确认码；确认码与口令不同，口令只存哈希
    created = recorder.created[-1]
    assert created.id == user["id"]
    assert created.confirmation_code and created.confirmation_code != PASSWORD
    stored = UserRepository(database).get_user_by_id(user["id"])
    assert stored.password != PASSWORD
    assert stored.verify_password(PASSWORD)


def test_create_rejects_duplicate_username_and_email(client):
    _register(client, "bob")

    r = client.post("/api/users", json={"user": {
        "username": "bob", "email": "other@example.com", "password": PASSWORD}})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Username already exists"}

    r = client.post("/api/users", json={"user": {
        "username": "bobby", "email": "bob@example.com", "password": PASSWORD}})
    assert r.status_code == 400
    assert r.json()["message"] == "User with email address already exists"


def test_create_rejects_incomplete_user(client):
    for user in (
        {"username": "carol", "password": PASSWORD},
        {"username": "carol", "email": "carol@example.com"},
        {"email": "carol@example.com", "password": PASSWORD},
        {"username": "carol", "email": "not-an-email", "password": PASSWORD},
    ):
        r = client.post("/api/users", json={"user": user})
        assert r.status_code == 400, user
        assert r.json()["message"] == "Invalid user object"


def test_create_rejects_malformed_body(client):
    r = client.post("/api/users", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"].startswith("Request body parse error")


def test_create_hook_failure_keeps_record(client, recorder, database):
    recorder.fail_create = True
    r = client.post("/api/users", json={"user": {
        "username": "dave", "email": "dave@example.com", "password": PASSWORD}})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "mail server unavailable"}
    # 记录已经落库，不回滚
    assert UserRepository(database).user_exists_by_username("dave")


def test_create_acl_member_denied_admin_allowed(client, recorder, database):
    _, member = _active_member(client, recorder, "erin")
    r = client.post("/api/users", headers=_auth(member), json={"user": {
        "username": "x1", "email": "x1@example.com", "password": PASSWORD}})
    assert r.status_code == 403
    assert r.json()["success"] is False

    admin = _admin_token(client, database)
    r = client.post("/api/users", headers=_auth(admin), json={"user": {
        "username": "x1", "email": "x1@example.com", "password": PASSWORD}})
    assert r.status_code == 201, r.text
    assert r.json()["user"]["status"] == "pending"


# ---------- confirm ----------

def test_confirm_activates_and_grants_user_role(client, recorder):
    u = _register(client, "frank")
    code = recorder.created[-1].confirmation_code

    r = client.get(f"/api/users/{u['id']}/confirm", params={"code": code})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "User confirmed"
    assert body["code"] == code
    assert body["user"]["status"] == "active"
    assert body["user"]["roles"] == ["user"]
    assert recorder.confirmed[-1].status == "active"

    r = client.get(f"/api/users/{u['id']}/confirm", params={"code": code})
    assert r.status_code == 400
    assert "not pending" in r.json()["message"]


def test_confirm_wrong_code_keeps_pending(client, recorder):
    u = _register(client, "gina")

    for code in ("wrong", ""):
        r = client.get(f"/api/users/{u['id']}/confirm", params={"code": code})
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid code"

    r = client.get(f"/api/users/{u['id']}")
    assert r.json()["user"]["status"] == "pending"
    assert r.json()["user"]["roles"] == []


def test_confirm_unknown_or_malformed_id(client):
    r = client.get("/api/users/bad-id/confirm", params={"code": "x"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid ObjectId: `bad-id`"

    r = client.get(f"/api/users/{ObjectId()}/confirm", params={"code": "x"})
    assert r.status_code == 400
    assert r.json()["message"] == "User not found"


def test_confirm_hook_failure_after_commit(client, recorder):
    u = _register(client, "hank")
    code = recorder.created[-1].confirmation_code
    recorder.fail_confirm = True

    r = client.get(f"/api/users/{u['id']}/confirm", params={"code": code})
    assert r.status_code == 400
    assert r.json()["message"] == "welcome mail failed"
    assert client.get(f"/api/users/{u['id']}").json()["user"]["status"] == "active"


# ---------- get / list / count ----------

def test_get_user_anonymous(client):
    u = _register(client, "ivy")
    r = client.get(f"/api/users/{u['id']}")
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "ivy"
    assert r.json()["message"] == "User retrieved"

    r = client.get(f"/api/users/{ObjectId()}")
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "User not found"}


def test_list_and_count_require_admin(client, recorder, database):
    assert client.get("/api/users").status_code == 403
    assert client.get("/api/users/count").status_code == 403

    _, member = _active_member(client, recorder, "jack")
    assert client.get("/api/users", headers=_auth(member)).status_code == 403
    assert client.get("/api/users/count", headers=_auth(member)).status_code == 403

    admin = _admin_token(client, database)
    r = client.get("/api/users", headers=_auth(admin))
    assert r.status_code == 200, r.text
    assert {u["username"] for u in r.json()["users"]} == {"jack", "admin"}

    r = client.get("/api/users/count", headers=_auth(admin))
    assert r.json() == {"success": True, "message": "Users count retrieved", "count": 2}


def test_list_pagination_and_filter(client, database):
    admin = _admin_token(client, database)
    for i in range(4):
        _register(client, f"page{i}")

    r = client.get("/api/users", headers=_auth(admin), params={"per_page": 2})
    first = r.json()
    assert [u["username"] for u in first["users"]] == ["page3", "page2"]
    assert first["last_id"] == first["users"][-1]["id"]

    r = client.get("/api/users", headers=_auth(admin),
                   params={"per_page": 2, "last_id": first["last_id"]})
    second = r.json()
    assert [u["username"] for u in second["users"]] == ["page1", "page0"]

    r = client.get("/api/users", headers=_auth(admin),
                   params={"per_page": 2, "last_id": second["last_id"], "field": "username", "q": "page"})
    assert r.json()["users"] == []
    assert r.json()["last_id"] == ""

    r = client.get("/api/users/count", headers=_auth(admin), params={"field": "username", "q": "PAGE"})
    assert r.json()["count"] == 4


def test_list_per_page_is_capped(client, database):
    admin = _admin_token(client, database)
    repo = UserRepository(database)
    for i in range(GET_USERS_LIMIT + 5):
        repo.create_user(User(username=f"bulk{i}", email=f"bulk{i}@example.com",
                              password="hash", status="pending"))

    r = client.get("/api/users", headers=_auth(admin), params={"per_page": 100000})
    assert r.status_code == 200
    assert len(r.json()["users"]) == GET_USERS_LIMIT


def test_list_rejects_secret_filter_fields(client, database):
    admin = _admin_token(client, database)
    for field in ("password", "confirmationCode"):
        r = client.get("/api/users", headers=_auth(admin), params={"field": field, "q": "a"})
        assert r.status_code == 400
        assert r.json()["message"] == f"Invalid filter field: `{field}`"


# ---------- update ----------

def test_user_updates_own_email_only(client, recorder):
    uid, token = _active_member(client, recorder, "kate")
    r = client.put(f"/api/users/{uid}", headers=_auth(token),
                   json={"user": {"email": "kate@new.example.com"}})
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["email"] == "kate@new.example.com"
    assert user["username"] == "kate"
    assert user["roles"] == ["user"]
    assert user["status"] == "active"


def test_user_cannot_grant_themselves_roles_or_status(client, recorder):
    uid, token = _active_member(client, recorder, "kurt")

    r = client.put(f"/api/users/{uid}", headers=_auth(token), json={"user": {"roles": ["admin"]}})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Only admins may change roles or status"}

    r = client.put(f"/api/users/{uid}", headers=_auth(token), json={"user": {"status": "disabled"}})
    assert r.status_code == 400

    # 提权失败后仍然只是普通用户
    assert client.get("/api/users", headers=_auth(token)).status_code == 403
    user = client.get(f"/api/users/{uid}").json()["user"]
    assert user["roles"] == ["user"]
    assert user["status"] == "active"


def test_user_cannot_update_someone_else(client, recorder):
    _, token = _active_member(client, recorder, "leo")
    other = _register(client, "mia")
    r = client.put(f"/api/users/{other['id']}", headers=_auth(token), json={"user": {"email": "x@example.com"}})
    assert r.status_code == 403

    r = client.put(f"/api/users/{ObjectId()}", headers=_auth(token), json={"user": {"email": "x@example.com"}})
    assert r.status_code == 403
    assert r.json()["message"] == "Invalid user"

    assert client.put(f"/api/users/{other['id']}", json={"user": {"email": "x@example.com"}}).status_code == 403


def test_admin_updates_status_and_roles(client, database):
    admin = _admin_token(client, database)
    u = _register(client, "nina")
    r = client.put(f"/api/users/{u['id']}", headers=_auth(admin),
                   json={"user": {"status": "active", "roles": ["user", "admin"]}})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["roles"] == ["user", "admin"]
    assert r.json()["user"]["email"] == "nina@example.com"

    r = client.put(f"/api/users/{u['id']}", headers=_auth(admin), json={"user": {"status": "bogus"}})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid status: `bogus`"

    r = client.put(f"/api/users/{ObjectId()}", headers=_auth(admin), json={"user": {"email": "z@example.com"}})
    assert r.status_code == 400
    assert r.json()["message"] == "User not found"


def test_batch_update_only_supports_delete(client, database):
    admin = _admin_token(client, database)
    a = _register(client, "olga")
    b = _register(client, "pete")

    assert client.put("/api/users", json={"action": "delete", "ids": [a["id"]]}).status_code == 403

    r = client.put("/api/users", headers=_auth(admin), json={"action": "promote", "ids": [a["id"]]})
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Invalid action", "action": "promote", "ids": [a["id"]]}

    r = client.put("/api/users", headers=_auth(admin), json={"action": "delete", "ids": []})
    assert r.status_code == 200
    assert r.json()["success"] is True

    r = client.put("/api/users", headers=_auth(admin),
                   json={"action": "delete", "ids": [a["id"], "junk", b["id"]]})
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "User list updated"
    assert client.get(f"/api/users/{a['id']}").status_code == 400
    assert client.get(f"/api/users/{b['id']}").status_code == 400


# ---------- delete ----------

def test_delete_user_admin_only(client, recorder, database):
    uid, member = _active_member(client, recorder, "quinn")
    assert client.delete(f"/api/users/{uid}").status_code == 403
    assert client.delete(f"/api/users/{uid}", headers=_auth(member)).status_code == 403

    admin = _admin_token(client, database)
    r = client.delete(f"/api/users/{uid}", headers=_auth(admin))
    assert r.json() == {"success": True, "message": "User deleted"}
    assert client.get(f"/api/users/{uid}").status_code == 400

    r = client.delete("/api/users/bad", headers=_auth(admin))
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid ObjectId: `bad`"


def test_delete_all_users(client, database):
    assert client.delete("/api/users").status_code == 403
    admin = _admin_token(client, database)
    _register(client, "rita")

    r = client.delete("/api/users", headers=_auth(admin))
    assert r.json() == {"success": True, "message": "All users deleted"}
    assert UserRepository(database).count_users() == 0


# ---------- versioning ----------

def test_api_version_from_accept_header(client):
    u = _register(client, "sam")
    r = client.get(f"/api/users/{u['id']}", headers={"Accept": "application/json;version=0.0"})
    assert r.status_code == 200

    r = client.get(f"/api/users/{u['id']}", headers={"Accept": "application/json; version=9.9"})
    assert r.status_code == 400
    assert r.json()["message"] == "Unsupported API version: 9.9"


# ---------- end to end ----------

def test_e2e_create_confirm_get(client, recorder):
    r = client.post("/api/users", json={"user": {
        "username": "tom", "email": "tom@example.com", "password": PASSWORD}})
    assert r.status_code == 201, r.text
    uid = r.json()["user"]["id"]
    code = recorder.created[-1].confirmation_code

    r = client.get(f"/api/users/{uid}/confirm?code={code}")
    assert r.status_code == 200, r.text

    r = client.get(f"/api/users/{uid}")
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["status"] == "active"
    assert user["roles"] == ["user"]
