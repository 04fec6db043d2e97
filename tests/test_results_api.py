from bson import ObjectId


def _result_payload(student, **overrides):
    payload = {
        "student": str(student["_id"]),
        "subject": "Mathematics",
        "examType": "midterm",
        "examName": "Midterm 1",
        "marksObtained": 45,
        "totalMarks": 50,
        "examDate": "2025-03-14T09:00:00Z",
    }
    payload.update(overrides)
    return payload


def test_create_result_derives_percentage_and_grade(client, db, teacher, student):
    resp = client.post("/api/results", json=_result_payload(student), headers=teacher["headers"])
    assert resp.status_code == 201
    body = resp.json()["result"]
    assert body["percentage"] == 90
    assert body["grade"] == "A+"
    assert body["student"]["fullName"] == "Asha Rao"
    assert body["addedBy"]["username"] == "teacher"

    stored = db["results"].find_one({"_id": ObjectId(body["_id"])})
    assert stored["percentage"] == 90
    assert stored["grade"] == "A+"
    assert stored["student"] == student["_id"]


def test_update_result_rederives_grade(client, db, teacher, student):
    created = client.post("/api/results", json=_result_payload(student), headers=teacher["headers"]).json()
    result_id = created["result"]["_id"]

    resp = client.put(f"/api/results/{result_id}", json={"marksObtained": 30, "student": "ignored"},
                      headers=teacher["headers"])
    assert resp.status_code == 200
    assert resp.json()["result"]["percentage"] == 60
    assert resp.json()["result"]["grade"] == "B"

    stored = db["results"].find_one({"_id": ObjectId(result_id)})
    assert stored["grade"] == "B"
    assert stored["student"] == student["_id"]


def test_students_cannot_create_results(client, student):
    resp = client.post("/api/results", json=_result_payload(student), headers=student["headers"])
    assert resp.status_code == 403


def test_student_sees_only_own_results(client, teacher, student, other_student):
    client.post("/api/results", json=_result_payload(student), headers=teacher["headers"])
    other = client.post("/api/results", json=_result_payload(other_student, marksObtained=10),
                        headers=teacher["headers"]).json()["result"]

    resp = client.get("/api/results", headers=student["headers"])
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert len(results) == 1
    assert results[0]["student"]["_id"] == str(student["_id"])

    resp = client.get(f"/api/results/{other['_id']}", headers=student["headers"])
    assert resp.status_code == 403

    resp = client.get("/api/results", params={"student": str(other_student["_id"])}, headers=teacher["headers"])
    assert [r["grade"] for r in resp.json()["results"]] == ["F"]


def test_invalid_marks_are_rejected(client, teacher, student):
    resp = client.post("/api/results", json=_result_payload(student, totalMarks=0), headers=teacher["headers"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "Bad Request"


def test_delete_result_is_admin_only(client, admin, teacher, student):
    result_id = client.post("/api/results", json=_result_payload(student),
                            headers=teacher["headers"]).json()["result"]["_id"]

    assert client.delete(f"/api/results/{result_id}", headers=teacher["headers"]).status_code == 403
    assert client.delete(f"/api/results/{result_id}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/api/results/{result_id}", headers=admin["headers"]).status_code == 404


def test_malformed_id_is_bad_request(client, admin):
    resp = client.get("/api/results/not-an-id", headers=admin["headers"])
    assert resp.status_code == 400
