from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_documents, populate, serialize, to_datetime
from schemas import UpdateCreate, UpdateEdit

from ..guard import require_store
from ..middleware import CurrentUser, get_current_user, parse_object_id, require_roles

router = APIRouter(prefix="/api/updates", tags=["Updates"], dependencies=[Depends(get_current_user)])

STAFF_FIELDS = ("username", "email", "fullName")
FEED_LIMIT = 50


@router.post("", status_code=status.HTTP_201_CREATED)
def create_update(
    payload: UpdateCreate,
    current_user: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    doc = payload.model_dump(by_alias=True, exclude_none=True)
    if payload.date:
        doc["date"] = to_datetime(payload.date)
    now = datetime.utcnow()
    doc.update({"createdBy": current_user.object_id, "isActive": True, "createdAt": now, "updatedAt": now})
    doc["_id"] = db["updates"].insert_one(doc).inserted_id
    populate(db, [doc], "createdBy", STAFF_FIELDS)
    return {"message": "Update created successfully", "update": serialize(doc)}


@router.get("")
def list_updates(
    type: Optional[str] = None,
    targetAudience: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    filt = {"isActive": True}
    if current_user.role == "student":
        filt["$or"] = [
            {"targetClass": "all"},
            {"targetClass": current_user.class_name},
            {"targetAudience": "all"},
            {"targetAudience": "student"},
        ]
    if type:
        filt["type"] = type
    if targetAudience:
        filt["targetAudience"] = targetAudience

    updates = get_documents(db, "updates", filt, sort=[("createdAt", -1)], limit=FEED_LIMIT)
    populate(db, updates, "createdBy", STAFF_FIELDS)
    return {"updates": serialize(updates)}


@router.get("/{update_id}")
def get_update(update_id: str, db: Database = Depends(require_store)):
    doc = db["updates"].find_one({"_id": parse_object_id(update_id, "update id")})
    if not doc or not doc.get("isActive"):
        raise HTTPException(status_code=404, detail="Update not found")
    populate(db, [doc], "createdBy", STAFF_FIELDS)
    return {"update": serialize(doc)}


@router.put("/{update_id}")
def edit_update(
    update_id: str,
    payload: UpdateEdit,
    _: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    changes = payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    if changes.get("date"):
        changes["date"] = to_datetime(changes["date"])
    changes["updatedAt"] = datetime.utcnow()
    doc = db["updates"].find_one_and_update(
        {"_id": parse_object_id(update_id, "update id")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Update not found")
    populate(db, [doc], "createdBy", STAFF_FIELDS)
    return {"message": "Update updated successfully", "update": serialize(doc)}


@router.delete("/{update_id}")
def delete_update(
    update_id: str,
    _: CurrentUser = Depends(require_roles("admin", "teacher")),
    db: Database = Depends(require_store),
):
    doc = db["updates"].find_one_and_update(
        {"_id": parse_object_id(update_id, "update id")},
        {"$set": {"isActive": False, "updatedAt": datetime.utcnow()}},
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Update not found")
    return {"message": "Update deleted successfully"}
