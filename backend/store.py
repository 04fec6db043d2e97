"""Full-document saves for records that carry derived fields."""

from datetime import datetime
from typing import Any, Callable, Dict

from pymongo import ReturnDocument
from pymongo.database import Database

from .derived import derive_fee, derive_report, derive_result


def _save(db: Database, collection_name: str, doc: Dict[str, Any],
          derive: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Dict[str, Any]:
    derive(doc)
    now = datetime.utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    if "_id" in doc:
        db[collection_name].replace_one({"_id": doc["_id"]}, doc)
    else:
        doc["_id"] = db[collection_name].insert_one(doc).inserted_id
    return doc


def save_fee(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    return _save(db, "fees", doc, derive_fee)


def save_result(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    return _save(db, "results", doc, derive_result)


def save_report(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    """Upsert the single report of (student, month, year)."""
    derive_report(doc)
    now = datetime.utcnow()
    doc.pop("_id", None)
    doc.pop("createdAt", None)
    doc["updatedAt"] = now
    key = {"student": doc["student"], "month": doc["month"], "year": doc["year"]}
    return db["reports"].find_one_and_update(
        key,
        {"$set": doc, "$setOnInsert": {"createdAt": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
