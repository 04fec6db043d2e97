from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_documents, serialize, to_datetime
from schemas import MONTHS, AttendanceMark

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles
from .reports import month_bounds

router = APIRouter(prefix="/api/attendance", tags=["Attendance"], dependencies=[Depends(get_current_user)])


@router.post("/mark")
def mark_attendance(
    payload: AttendanceMark,
    current_user: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    student = parse_object_id(payload.student, "student id")
    day = to_datetime(payload.day)
    now = datetime.utcnow()
    fields = {"status": payload.status, "markedBy": current_user.object_id, "updatedAt": now}
    if payload.class_name:
        fields["class"] = payload.class_name
    if payload.remarks is not None:
        fields["remarks"] = payload.remarks

    record = db["attendance"].find_one_and_update(
        {"student": student, "date": day},
        {"$set": fields, "$setOnInsert": {"createdAt": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return {"message": "Attendance marked successfully", "attendance": serialize(record)}


@router.get("/student/{student_id}")
def student_attendance(
    student_id: str,
    month: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1900, le=3000),
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    if current_user.role == "student" and current_user.id != student_id:
        raise HTTPException(status_code=403, detail="Access denied to other student's attendance")

    filt = {"student": parse_object_id(student_id, "student id")}
    if month:
        if month not in MONTHS:
            raise HTTPException(status_code=400, detail="Invalid month")
        start, end = month_bounds(month, year or datetime.utcnow().year)
        filt["date"] = {"$gte": start, "$lte": end}

    records = get_documents(db, "attendance", filt, sort=[("date", -1)])
    statuses = [r.get("status") for r in records]
    summary = {
        "total": len(records),
        "present": statuses.count("present"),
        "absent": statuses.count("absent"),
        "late": statuses.count("late"),
    }
    return {"records": serialize(records), "summary": summary}
