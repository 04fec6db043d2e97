"""
Derived fields recomputed before every write of a fee, result or report.

Each function takes the document about to be persisted, overwrites its derived
fields from the source fields and returns the same document. None of them
raise: a missing or zero denominator degrades to the default value.
"""

from typing import Any, Dict

GRADE_BREAKPOINTS = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C+"),
    (40, "C"),
    (33, "D"),
)


def fee_status(total: float, paid: float) -> str:
    if paid == 0:
        return "Pending"
    if paid >= total:
        return "Paid"
    return "Partial"


def derive_fee(doc: Dict[str, Any]) -> Dict[str, Any]:
    # Overpayment leaves a negative pending balance (credit).
    total = doc.get("totalFees") or 0
    paid = doc.get("paidFees") or 0
    doc["pendingFees"] = total - paid
    doc["status"] = fee_status(total, paid)
    return doc


def grade_for(percentage: float) -> str:
    for threshold, grade in GRADE_BREAKPOINTS:
        if percentage >= threshold:
            return grade
    return "F"


def derive_result(doc: Dict[str, Any]) -> Dict[str, Any]:
    obtained = doc.get("marksObtained")
    total = doc.get("totalMarks")
    if obtained is None or total is None or not total:
        return doc
    doc["percentage"] = obtained / total * 100
    doc["grade"] = grade_for(doc["percentage"])
    return doc


def _rate(part: float, whole: float) -> float:
    if not whole:
        return 0
    return part / whole * 100


def derive_report(doc: Dict[str, Any]) -> Dict[str, Any]:
    attendance = doc.setdefault("attendance", {})
    attendance["attendancePercentage"] = _rate(attendance.get("presentDays") or 0,
                                               attendance.get("totalDays") or 0)

    homework = doc.setdefault("homework", {})
    homework["completionRate"] = _rate(homework.get("submitted") or 0, homework.get("assigned") or 0)
    return doc
