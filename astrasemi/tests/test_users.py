"""
Admin user management tests.
"""

from astrasemi.tests.factories import make_user


def test_create_and_list_users(admin_client):
    resp = admin_client.post("/api/admin/users", json={"username": " Dave ", "password": "pw12345"})
    assert resp.status_code == 201
    created = resp.json()
    assert created["username"] == "dave"
    assert created["role"] == "USER"
    assert created["isActive"] is True
    assert created["reputation"] == 0

    admin = admin_client.post("/api/admin/users", json={"username": "root2", "password": "pw", "role": "ADMIN"})
    assert admin.json()["role"] == "ADMIN"

    users = admin_client.get("/api/admin/users").json()
    assert [u["username"] for u in users][:2] == ["root2", "dave"]


def test_duplicate_username(admin_client):
    make_user("dave")
    resp = admin_client.post("/api/admin/users", json={"username": "DAVE", "password": "pw"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Username already exists"}


def test_create_requires_fields(admin_client):
    resp = admin_client.post("/api/admin/users", json={"username": "dave"})
    assert resp.status_code == 400


def test_update_user(admin_client):
    user_id = make_user("erin")

    assert admin_client.patch(f"/api/admin/users/{user_id}", json={}).status_code == 400
    assert admin_client.patch("/api/admin/users/missing", json={"isActive": False}).status_code == 404

    promoted = admin_client.patch(f"/api/admin/users/{user_id}", json={"role": "ADMIN"})
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"
