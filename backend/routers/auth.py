import logging
from datetime import datetime

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, status
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, serialize
from schemas import LoginRequest, ProfileUpdate, RegisterRequest

from ..config import Settings
from ..guard import require_store
from ..middleware import CurrentUser, get_app_settings, get_current_user
from ..security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

PRIVATE_FIELDS = ("password", "resetPasswordToken", "resetPasswordExpires")


def public_profile(user: dict) -> dict:
    return serialize({k: v for k, v in user.items() if k not in PRIVATE_FIELDS})


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Database = Depends(require_store)):
    if payload.role == "admin" and db["users"].count_documents({"role": "admin"}) >= 1:
        raise HTTPException(
            status_code=403,
            detail="Only one admin is allowed in the system. Admin registration is disabled.",
        )
    if payload.role == "student" and not payload.class_name:
        raise HTTPException(status_code=400, detail="Class is required for student registration")
    if db["users"].find_one({"username": payload.username}):
        raise HTTPException(status_code=400, detail="This username is already registered")

    data = payload.model_dump(by_alias=True, exclude_none=True)
    data["password"] = hash_password(payload.password)
    uid = create_document(db, "users", data)
    logger.info("Registered %s user %s", payload.role, payload.username)

    user = db["users"].find_one({"_id": ObjectId(uid)})
    return {"message": "User registered successfully", "user": public_profile(user)}


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Database = Depends(require_store),
    settings: Settings = Depends(get_app_settings),
):
    user = db["users"].find_one({"username": payload.username})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_access_token(
        settings,
        subject=str(user["_id"]),
        role=user.get("role", "student"),
        username=user["username"],
        class_name=user.get("class"),
    )
    return {"message": "Login successful", "token": token, "user": public_profile(user)}


@router.get("/me")
def me(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(require_store)):
    user = db["users"].find_one({"_id": current_user.object_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": public_profile(user)}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(require_store),
):
    changes = payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    changes["updatedAt"] = datetime.utcnow()
    user = db["users"].find_one_and_update(
        {"_id": current_user.object_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Profile updated for %s", user["username"])
    return {"message": "Profile updated successfully", "user": public_profile(user)}
