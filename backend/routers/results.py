import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo.database import Database

from database import get_documents, populate, serialize, to_datetime
from schemas import ResultCreate, ResultUpdate

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles
from ..store import save_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/results", tags=["Results"], dependencies=[Depends(get_current_user)])

STUDENT_FIELDS = ("username", "email", "fullName", "class", "rollNumber", "section")
STAFF_FIELDS = ("username", "email", "fullName")


def _populate(db: Database, results: list) -> None:
    populate(db, results, "student", STUDENT_FIELDS)
    populate(db, results, "addedBy", STAFF_FIELDS)


def _owner_id(result: dict) -> str:
    student = result.get("student")
    return str(student["_id"] if isinstance(student, dict) else student)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_result(
    payload: ResultCreate,
    current_user: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    now = datetime.utcnow()
    result = {
        "student": parse_object_id(payload.student, "student id"),
        "subject": payload.subject,
        "examType": payload.exam_type,
        "examName": payload.exam_name.strip(),
        "marksObtained": payload.marks_obtained,
        "totalMarks": payload.total_marks,
        "remarks": payload.remarks,
        "examDate": to_datetime(payload.exam_date) if payload.exam_date else now,
        "academicYear": payload.academic_year or str(now.year),
        "semester": payload.semester,
        "addedBy": current_user.object_id,
    }
    save_result(db, result)
    logger.info("Result %s saved: %s%% (%s)", result["_id"], result["percentage"], result["grade"])
    _populate(db, [result])
    return {"message": "Result added successfully", "result": serialize(result)}


@router.get("")
def list_results(
    student: Optional[str] = None,
    subject: Optional[str] = None,
    examType: Optional[str] = None,
    academicYear: Optional[str] = None,
    semester: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    filt = {}
    if current_user.role == "student":
        filt["student"] = current_user.object_id
    elif student:
        filt["student"] = parse_object_id(student, "student id")
    if subject:
        filt["subject"] = subject
    if examType:
        filt["examType"] = examType
    if academicYear:
        filt["academicYear"] = academicYear
    if semester:
        filt["semester"] = semester

    results = get_documents(db, "results", filt, sort=[("examDate", -1)])
    _populate(db, results)
    return {"results": serialize(results)}


@router.get("/{result_id}")
def get_result(
    result_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    result = db["results"].find_one({"_id": parse_object_id(result_id, "result id")})
    if not result:
        raise HTTPException(status_code=404, detail="Result not found")
    if current_user.role == "student" and _owner_id(result) != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied to other student's results")
    _populate(db, [result])
    return {"result": serialize(result)}


@router.put("/{result_id}")
def update_result(
    result_id: str,
    payload: ResultUpdate,
    _: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    result = db["results"].find_one({"_id": parse_object_id(result_id, "result id")})
    if not result:
        raise HTTPException(status_code=404, detail="Result not found")

    changes = payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    if changes.get("examDate"):
        changes["examDate"] = to_datetime(changes["examDate"])
    result.update(changes)

    save_result(db, result)
    _populate(db, [result])
    return {"message": "Result updated successfully", "result": serialize(result)}


@router.delete("/{result_id}")
def delete_result(
    result_id: str,
    _: CurrentUser = Depends(require_roles("admin")),
    db: Database = Depends(require_store),
):
    deleted = db["results"].find_one_and_delete({"_id": parse_object_id(result_id, "result id")})
    if not deleted:
        raise HTTPException(status_code=404, detail="Result not found")
    return {"message": "Result deleted successfully"}
