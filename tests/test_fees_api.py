from bson import ObjectId


def test_fee_paid_in_full(client, db, admin, student):
    resp = client.post(
        "/api/fees",
        json={"studentId": str(student["_id"]), "totalFees": 1000, "paidFees": 1000, "month": "March"},
        headers=admin["headers"],
    )
    assert resp.status_code == 201
    fee = resp.json()
    assert fee["status"] == "Paid"
    assert fee["pendingFees"] == 0
    assert fee["student"]["fullName"] == "Asha Rao"

    stored = db["fees"].find_one({"_id": ObjectId(fee["_id"])})
    assert stored["status"] == "Paid"
    assert stored["pendingFees"] == 0


def test_caller_cannot_set_derived_fee_fields(client, admin, student):
    resp = client.post(
        "/api/fees",
        json={"studentId": str(student["_id"]), "totalFees": 800, "pendingFees": 0, "status": "Paid"},
        headers=admin["headers"],
    )
    fee = resp.json()
    assert fee["status"] == "Pending"
    assert fee["pendingFees"] == 800


def test_fee_upsert_reuses_month_record(client, db, admin, student):
    body = {"studentId": str(student["_id"]), "totalFees": 1000, "month": "April"}
    first = client.post("/api/fees", json=body, headers=admin["headers"]).json()
    second = client.post("/api/fees", json={**body, "paidFees": 400}, headers=admin["headers"]).json()

    assert first["_id"] == second["_id"]
    assert second["status"] == "Partial"
    assert second["pendingFees"] == 600
    assert db["fees"].count_documents({}) == 1


def test_payments_rederive_status(client, admin, student):
    fee = client.post(
        "/api/fees",
        json={"studentId": str(student["_id"]), "totalFees": 1000, "month": "May"},
        headers=admin["headers"],
    ).json()
    assert fee["status"] == "Pending"

    resp = client.post(f"/api/fees/{fee['_id']}/payment", json={"amount": 400}, headers=admin["headers"])
    assert resp.status_code == 200
    fee = resp.json()
    assert (fee["paidFees"], fee["pendingFees"], fee["status"]) == (400, 600, "Partial")
    assert fee["paymentHistory"][0]["paymentMethod"] == "Cash"
    assert fee["paymentHistory"][0]["receiptNumber"].startswith("RCP-")

    fee = client.post(f"/api/fees/{fee['_id']}/payment", json={"amount": 800, "paymentMethod": "Card"},
                      headers=admin["headers"]).json()
    assert (fee["paidFees"], fee["pendingFees"], fee["status"]) == (1200, -200, "Paid")
    assert len(fee["paymentHistory"]) == 2


def test_payment_validation(client, admin, student):
    fee = client.post(
        "/api/fees",
        json={"studentId": str(student["_id"]), "totalFees": 100},
        headers=admin["headers"],
    ).json()
    assert client.post(f"/api/fees/{fee['_id']}/payment", json={"amount": 0},
                       headers=admin["headers"]).status_code == 400
    assert client.post(f"/api/fees/{ObjectId()}/payment", json={"amount": 10},
                       headers=admin["headers"]).status_code == 404


def test_fee_listing_and_totals(client, admin, student):
    for month, paid in (("January", 300), ("February", 200)):
        client.post(
            "/api/fees",
            json={"studentId": str(student["_id"]), "totalFees": 500, "paidFees": paid, "month": month},
            headers=admin["headers"],
        )

    listing = client.get("/api/fees", headers=admin["headers"]).json()
    assert {row["month"] for row in listing} == {"January", "February"}
    assert all(row["studentName"] == "Asha Rao" for row in listing)

    assert client.get("/api/fees/total", headers=admin["headers"]).json() == {"total": 500}
    assert client.get("/api/fees/total", headers=student["headers"]).status_code == 403


def test_student_fee_lookup_is_limited_to_self(client, admin, student, other_student):
    client.post("/api/fees", json={"studentId": str(student["_id"]), "totalFees": 100}, headers=admin["headers"])

    own = client.get(f"/api/fees/student/{student['_id']}", headers=student["headers"])
    assert own.status_code == 200
    assert len(own.json()) == 1
    other = client.get(f"/api/fees/student/{other_student['_id']}", headers=student["headers"])
    assert other.status_code == 403
