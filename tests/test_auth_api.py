from backend.security import create_access_token


def _register(client, **overrides):
    body = {"username": "meera", "password": "secret123", "email": "meera@greenfield.edu",
            "role": "student", "class": "9B", "fullName": "Meera Shah"}
    body.update(overrides)
    return client.post("/auth/register", json=body)


def test_register_and_login(client, db):
    resp = _register(client)
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["username"] == "meera"
    assert user["class"] == "9B"
    assert "password" not in user
    assert db["users"].find_one({"username": "meera"})["password"] != "secret123"

    resp = client.post("/auth/login", json={"username": "meera", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["fullName"] == "Meera Shah"


def test_login_rejects_bad_password(client):
    _register(client)
    resp = client.post("/auth/login", json={"username": "meera", "password": "wrong-pass"})
    assert resp.status_code == 401


def test_student_registration_requires_class(client):
    body = {"username": "noclass", "password": "secret123", "email": "nc@greenfield.edu", "role": "student"}
    resp = client.post("/auth/register", json=body)
    assert resp.status_code == 400


def test_short_password_and_bad_email_are_rejected(client):
    assert _register(client, password="123").status_code == 400
    assert _register(client, email="not-an-email").status_code == 400


def test_duplicate_username_is_rejected(client):
    assert _register(client).status_code == 201
    assert _register(client, email="other@greenfield.edu").status_code == 400


def test_only_one_admin_may_register(client):
    first = _register(client, username="head", role="admin", email="head@greenfield.edu")
    assert first.status_code == 201
    second = _register(client, username="deputy", role="admin", email="deputy@greenfield.edu")
    assert second.status_code == 403


def test_protected_routes_require_token(client):
    assert client.get("/api/results").status_code == 401
    assert client.get("/api/results", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/api/results", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_role_dashboards(client, admin, teacher, student):
    assert client.get("/api/student", headers=student["headers"]).json() == {"message": "Welcome Student"}
    assert client.get("/api/student", headers=admin["headers"]).status_code == 200
    assert client.get("/api/student", headers=teacher["headers"]).status_code == 403
    assert client.get("/api/admin", headers=admin["headers"]).json() == {"message": "Welcome Admin"}
    assert client.get("/api/students/count", headers=admin["headers"]).json() == {"count": 1}


def test_profile_update_changes_only_given_fields(client, db, student):
    resp = client.put("/auth/profile", json={"fullName": "Asha R. Rao", "email": "asha.rao@greenfield.edu"},
                      headers=student["headers"])
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["fullName"] == "Asha R. Rao"
    assert user["email"] == "asha.rao@greenfield.edu"
    assert user["username"] == "asha"
    assert "password" not in user
    assert db["users"].find_one({"_id": student["_id"]})["class"] == "10A"


def test_profile_update_rejects_taken_username(client, student, other_student):
    resp = client.put("/auth/profile", json={"username": "ravi"}, headers=student["headers"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "Duplicate Entry"


def test_profile_update_validates_email(client, student):
    resp = client.put("/auth/profile", json={"email": "not-an-email"}, headers=student["headers"])
    assert resp.status_code == 400


def test_token_with_non_objectid_subject_is_rejected(client, settings):
    token = create_access_token(settings, subject="not-an-object-id", role="admin", username="ghost")
    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
