from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo.database import Database

from database import populate, serialize, to_datetime
from schemas import HomeworkCreate, SubmissionCreate

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles

router = APIRouter(prefix="/api/homework", tags=["Homework"], dependencies=[Depends(get_current_user)])

STAFF_FIELDS = ("username", "email")


def _with_overdue(hw: dict, now: datetime) -> dict:
    due = hw.get("dueDate")
    hw["isOverdue"] = bool(due and due < now and hw.get("status") != "done")
    return hw


@router.post("", status_code=status.HTTP_201_CREATED)
def create_homework(
    payload: HomeworkCreate,
    current_user: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    now = datetime.utcnow()
    due = to_datetime(payload.due_date)
    if due <= now:
        raise HTTPException(status_code=400, detail="Due date must be in the future")

    doc = {
        "title": payload.title,
        "description": payload.description,
        "subject": payload.subject,
        "class": payload.class_name,
        "dueDate": due,
        "assignedBy": current_user.object_id,
        "assignedTo": payload.assigned_to,
        "status": "active",
        "submissions": [],
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["homeworks"].insert_one(doc).inserted_id
    populate(db, [doc], "assignedBy", STAFF_FIELDS)
    return {"message": "Homework created successfully", "homework": serialize(doc)}


@router.get("")
def list_homework(
    class_name: Optional[str] = Query(None, alias="class"),
    subject: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    filt = {"isActive": True}
    if current_user.role == "student":
        user = db["users"].find_one({"_id": current_user.object_id}, {"class": 1}) or {}
        if not user.get("class"):
            return {"homeworks": [], "pagination": {"currentPage": 1, "totalPages": 0,
                                                     "totalItems": 0, "itemsPerPage": limit}}
        filt["class"] = user["class"]
    elif class_name:
        filt["class"] = class_name
    if subject:
        filt["subject"] = subject
    if status:
        filt["status"] = status

    total = db["homeworks"].count_documents(filt)
    docs = list(db["homeworks"].find(filt).sort("dueDate", 1).skip((page - 1) * limit).limit(limit))
    populate(db, docs, "assignedBy", STAFF_FIELDS)
    now = datetime.utcnow()
    return {
        "homeworks": serialize([_with_overdue(hw, now) for hw in docs]),
        "pagination": {
            "currentPage": page,
            "totalPages": (total + limit - 1) // limit,
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


@router.get("/{homework_id}")
def get_homework(homework_id: str, db: Database = Depends(require_store)):
    hw = db["homeworks"].find_one({"_id": parse_object_id(homework_id, "homework id")})
    if not hw or not hw.get("isActive", True):
        raise HTTPException(status_code=404, detail="Homework not found")
    populate(db, [hw], "assignedBy", STAFF_FIELDS)
    return {"homework": serialize(_with_overdue(hw, datetime.utcnow()))}


@router.delete("/{homework_id}")
def delete_homework(
    homework_id: str,
    _: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    hw = db["homeworks"].find_one_and_update(
        {"_id": parse_object_id(homework_id, "homework id")},
        {"$set": {"isActive": False, "updatedAt": datetime.utcnow()}},
    )
    if not hw:
        raise HTTPException(status_code=404, detail="Homework not found")
    return {"message": "Homework deleted successfully"}


@router.post("/{homework_id}/submit", status_code=status.HTTP_201_CREATED)
def submit_homework(
    homework_id: str,
    payload: SubmissionCreate,
    current_user: CurrentUser = Depends(require_roles("student")),
    db: Database = Depends(require_store),
):
    hw = db["homeworks"].find_one({"_id": parse_object_id(homework_id, "homework id")})
    if not hw or not hw.get("isActive", True):
        raise HTTPException(status_code=404, detail="Homework not found")
    student = current_user.object_id
    if any(s.get("student") == student for s in hw.get("submissions", [])):
        raise HTTPException(status_code=400, detail="Homework already submitted")

    submission = {
        "student": student,
        "content": payload.content,
        "attachments": payload.attachments,
        "submittedAt": datetime.utcnow(),
        "status": "submitted",
    }
    db["homeworks"].update_one({"_id": hw["_id"]}, {"$push": {"submissions": submission}})
    return {"message": "Homework submitted successfully", "submission": serialize(submission)}
