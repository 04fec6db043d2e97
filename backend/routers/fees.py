import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo.database import Database

from database import get_documents, populate, serialize, to_datetime
from schemas import MONTHS, FeeUpsert, PaymentCreate

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles
from ..store import save_fee

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fees", tags=["Fees"], dependencies=[Depends(get_current_user)])

STUDENT_FIELDS = ("fullName", "rollNumber", "class", "section", "studentId")


def total_collected(db: Database) -> float:
    rows = list(db["fees"].aggregate([{"$group": {"_id": None, "total": {"$sum": "$paidFees"}}}]))
    return rows[0]["total"] if rows else 0


@router.get("")
def list_fees(_: CurrentUser = Depends(require_roles("admin")), db: Database = Depends(require_store)):
    fees = get_documents(db, "fees", sort=[("createdAt", -1)])
    populate(db, fees, "student", STUDENT_FIELDS)
    items = []
    for fee in fees:
        student = fee.get("student") if isinstance(fee.get("student"), dict) else {}
        due = fee.get("dueDate")
        items.append({
            "_id": str(fee["_id"]),
            "studentName": student.get("fullName", "Unknown"),
            "rollNumber": student.get("rollNumber", "N/A"),
            "class": student.get("class", "N/A"),
            "section": student.get("section", ""),
            "totalFees": fee.get("totalFees"),
            "paidFees": fee.get("paidFees"),
            "pendingFees": fee.get("pendingFees"),
            "status": fee.get("status"),
            "dueDate": due.date().isoformat() if isinstance(due, datetime) else "N/A",
            "academicYear": fee.get("academicYear"),
            "month": fee.get("month"),
        })
    return items


@router.get("/total")
def get_total(_: CurrentUser = Depends(require_roles("admin")), db: Database = Depends(require_store)):
    return {"total": total_collected(db)}


@router.get("/student/{student_id}")
def fees_for_student(
    student_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    if current_user.role == "student" and current_user.id != student_id:
        raise HTTPException(status_code=403, detail="Access denied to other student's fees")
    fees = get_documents(db, "fees", {"student": parse_object_id(student_id, "student id")},
                         sort=[("createdAt", -1)])
    populate(db, fees, "student", STUDENT_FIELDS)
    return serialize(fees)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_or_update_fee(
    payload: FeeUpsert,
    _: CurrentUser = Depends(require_roles("admin")),
    db: Database = Depends(require_store),
):
    student = parse_object_id(payload.student_id, "student id")
    now = datetime.utcnow()
    month = payload.month or MONTHS[now.month - 1]

    fee = db["fees"].find_one({"student": student, "month": month})
    if fee:
        fee["totalFees"] = payload.total_fees
        if payload.paid_fees is not None:
            fee["paidFees"] = payload.paid_fees
        if payload.due_date:
            fee["dueDate"] = to_datetime(payload.due_date)
        if payload.academic_year:
            fee["academicYear"] = payload.academic_year
    else:
        fee = {
            "student": student,
            "totalFees": payload.total_fees,
            "paidFees": payload.paid_fees or 0,
            "dueDate": to_datetime(payload.due_date) if payload.due_date else now + timedelta(days=30),
            "paymentHistory": [],
            "month": month,
            "academicYear": payload.academic_year or str(now.year),
        }

    save_fee(db, fee)
    logger.info("Saved fee %s for student %s (%s)", fee["_id"], student, fee["status"])
    populate(db, [fee], "student", STUDENT_FIELDS)
    return serialize(fee)


@router.post("/{fee_id}/payment")
def record_payment(
    fee_id: str,
    payload: PaymentCreate,
    _: CurrentUser = Depends(require_roles("admin")),
    db: Database = Depends(require_store),
):
    fee = db["fees"].find_one({"_id": parse_object_id(fee_id, "fee id")})
    if not fee:
        raise HTTPException(status_code=404, detail="Fee not found")

    now = datetime.utcnow()
    fee.setdefault("paymentHistory", []).append({
        "amount": payload.amount,
        "paymentDate": now,
        "paymentMethod": payload.payment_method or "Cash",
        "receiptNumber": payload.receipt_number or f"RCP-{int(now.timestamp() * 1000)}",
        "notes": payload.notes,
    })
    fee["paidFees"] = (fee.get("paidFees") or 0) + payload.amount

    save_fee(db, fee)
    populate(db, [fee], "student", STUDENT_FIELDS)
    return serialize(fee)
