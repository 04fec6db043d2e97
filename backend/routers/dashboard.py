from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..guard import require_store
from ..middleware import CurrentUser, require_roles
from .fees import total_collected

router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get("/student")
def student_dashboard(_: CurrentUser = Depends(require_roles("student", "admin"))):
    return {"message": "Welcome Student"}


@router.get("/admin")
def admin_dashboard(_: CurrentUser = Depends(require_roles("admin"))):
    return {"message": "Welcome Admin"}


@router.get("/students/count")
def student_count(_: CurrentUser = Depends(require_roles("admin")), db: Database = Depends(require_store)):
    return {"count": db["users"].count_documents({"role": "student"})}


@router.get("/fees/total")
def fee_total(_: CurrentUser = Depends(require_roles("admin")), db: Database = Depends(require_store)):
    return {"total": total_collected(db)}
