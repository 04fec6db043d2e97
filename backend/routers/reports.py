import logging
from calendar import monthrange
from datetime import datetime
from typing import Optional, Tuple

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_documents, populate, serialize
from schemas import MONTHS, ReportRequest

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles
from ..store import save_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"], dependencies=[Depends(get_current_user)])

STUDENT_FIELDS = ("username", "email", "fullName", "class", "rollNumber", "section")
STAFF_FIELDS = ("username", "email", "fullName")


def month_bounds(month: str, year: int) -> Tuple[datetime, datetime]:
    index = MONTHS.index(month) + 1
    last_day = monthrange(year, index)[1]
    return datetime(year, index, 1), datetime(year, index, last_day, 23, 59, 59)


def build_report(db: Database, student: ObjectId, month: str, year: int) -> dict:
    """Collect the month's attendance, homework, fee and result figures.

    The four collections are read one after another without a transaction, so
    a concurrent write to any of them may be reflected only partially.
    """
    start, end = month_bounds(month, year)
    window = {"$gte": start, "$lte": end}

    records = get_documents(db, "attendance", {"student": student, "date": window})
    statuses = [r.get("status") for r in records]
    attendance = {
        "totalDays": len(records),
        "presentDays": statuses.count("present"),
        "absentDays": statuses.count("absent"),
        "lateDays": statuses.count("late"),
    }

    user = db["users"].find_one({"_id": student}, {"class": 1}) or {}
    homeworks = get_documents(db, "homeworks", {"class": user.get("class"), "dueDate": window})
    submitted = sum(
        1 for hw in homeworks
        if any(s.get("student") == student for s in hw.get("submissions", []))
    )
    homework = {
        "assigned": len(homeworks),
        "submitted": submitted,
        "pending": len(homeworks) - submitted,
    }

    fee = db["fees"].find_one({"student": student}) or {}
    fees = {
        "totalFees": fee.get("totalFees") or 0,
        "paidFees": fee.get("paidFees") or 0,
        "pendingFees": fee.get("pendingFees") or 0,
        "status": fee.get("status") or "Pending",
    }

    percentages = [r.get("percentage") or 0 for r in
                   get_documents(db, "results", {"student": student, "examDate": window})]
    performance = {
        "averageMarks": sum(percentages) / len(percentages) if percentages else 0,
        "totalExams": len(percentages),
        "highestMarks": max(percentages) if percentages else 0,
        "lowestMarks": min(percentages) if percentages else 0,
    }

    return {
        "student": student,
        "month": month,
        "year": year,
        "academicYear": str(year),
        "attendance": attendance,
        "homework": homework,
        "fees": fees,
        "academicPerformance": performance,
    }


def _populate(db: Database, reports: list) -> None:
    populate(db, reports, "student", STUDENT_FIELDS)
    populate(db, reports, "createdBy", STAFF_FIELDS)


@router.post("")
def create_or_update_report(
    payload: ReportRequest,
    current_user: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    student = parse_object_id(payload.student, "student id")
    report = build_report(db, student, payload.month, payload.year)
    report["remarks"] = payload.remarks
    report["teacherRemarks"] = payload.teacher_remarks
    report["createdBy"] = current_user.object_id

    report = save_report(db, report)
    logger.info("Report for %s %s/%s saved", student, payload.month, payload.year)
    _populate(db, [report])
    return {"message": "Report created/updated successfully", "report": serialize(report)}


@router.get("")
def list_reports(
    student: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[int] = None,
    academicYear: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    filt = {}
    if current_user.role == "student":
        filt["student"] = current_user.object_id
    elif student:
        filt["student"] = parse_object_id(student, "student id")
    if month:
        filt["month"] = month
    if year:
        filt["year"] = year
    if academicYear:
        filt["academicYear"] = academicYear

    reports = get_documents(db, "reports", filt)
    reports.sort(key=lambda r: (r.get("year", 0), MONTHS.index(r["month"]) if r.get("month") in MONTHS else -1),
                 reverse=True)
    _populate(db, reports)
    return {"reports": serialize(reports)}


@router.get("/{report_id}")
def get_report(
    report_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    report = db["reports"].find_one({"_id": parse_object_id(report_id, "report id")})
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    if current_user.role == "student" and str(report.get("student")) != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied to other student's reports")
    _populate(db, [report])
    return {"report": serialize(report)}


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    _: CurrentUser = Depends(require_roles("admin")),
    db: Database = Depends(require_store),
):
    deleted = db["reports"].find_one_and_delete({"_id": parse_object_id(report_id, "report id")})
    if not deleted:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"message": "Report deleted successfully"}
