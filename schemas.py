"""
Request Schemas for the School Management API

Payloads are validated with these Pydantic models before anything touches
MongoDB. Field names are snake_case in Python and camelCase on the wire and
in the stored documents:
- users -> RegisterRequest, ProfileUpdate
- fees -> FeeUpsert, PaymentCreate
- results -> ResultCreate, ResultUpdate
- reports -> ReportRequest
- updates -> UpdateCreate, UpdateEdit
- homeworks -> HomeworkCreate, SubmissionCreate
- attendance -> AttendanceMark

Derived fields (pendingFees, status, percentage, grade, attendancePercentage,
completionRate) are deliberately absent: they are never accepted from callers.
"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal["admin", "teacher", "student"]

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
Month = Literal[
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

Subject = Literal[
    "Mathematics", "English", "Science", "Physics", "Chemistry", "Biology",
    "History", "Geography", "Computer Science", "Art", "Music", "Physical Education",
    "Social Studies", "Economics", "Business Studies", "Psychology", "Sociology",
    "Political Science", "Environmental Science", "Literature", "Philosophy",
]
ExamType = Literal["quiz", "midterm", "final", "assignment", "project", "test"]
Semester = Literal["1st", "2nd", "3rd", "4th", "Annual"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Auth
class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=1, description="Unique login name")
    password: str = Field(..., min_length=6, description="Plain password, hashed before storage")
    email: EmailStr = Field(..., description="Contact email")
    role: Role = Field("student", description="User role")
    class_name: Optional[str] = Field(None, alias="class", description="Class, required for students")
    full_name: Optional[str] = Field(None, description="Display name")
    roll_number: Optional[int] = Field(None, description="Roll number within the class")
    section: Optional[str] = None
    student_id: Optional[str] = Field(None, description="School issued student id")


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, min_length=1)


# Fees
class FeeUpsert(CamelModel):
    student_id: str = Field(..., description="Student user id")
    total_fees: float = Field(..., gt=0)
    paid_fees: Optional[float] = Field(None, ge=0)
    due_date: Optional[datetime] = None
    month: Optional[Month] = None
    academic_year: Optional[str] = None


class PaymentCreate(CamelModel):
    amount: float = Field(..., gt=0, description="Amount paid")
    payment_method: str = "Cash"
    receipt_number: Optional[str] = None
    notes: str = ""


# Results
class ResultCreate(CamelModel):
    student: str = Field(..., description="Student user id")
    subject: Subject
    exam_type: ExamType
    exam_name: str = Field(..., min_length=1)
    marks_obtained: float = Field(..., ge=0)
    total_marks: float = Field(..., ge=1)
    remarks: Optional[str] = None
    exam_date: Optional[datetime] = None
    semester: Semester = "1st"
    academic_year: Optional[str] = None


class ResultUpdate(CamelModel):
    subject: Optional[Subject] = None
    exam_type: Optional[ExamType] = None
    exam_name: Optional[str] = Field(None, min_length=1)
    marks_obtained: Optional[float] = Field(None, ge=0)
    total_marks: Optional[float] = Field(None, ge=1)
    remarks: Optional[str] = None
    exam_date: Optional[datetime] = None
    semester: Optional[Semester] = None
    academic_year: Optional[str] = None


# Reports
class ReportRequest(CamelModel):
    student: str = Field(..., description="Student user id")
    month: Month
    year: int = Field(..., ge=1900, le=3000)
    remarks: Optional[str] = None
    teacher_remarks: Optional[str] = None


# Updates (announcements)
class UpdateCreate(CamelModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: Literal["announcement", "test", "class-off", "general"] = "general"
    target_audience: Literal["all", "student", "teacher", "admin"] = "all"
    target_class: str = "all"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    date: Optional[datetime] = None


class UpdateEdit(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    message: Optional[str] = Field(None, min_length=1)
    type: Optional[Literal["announcement", "test", "class-off", "general"]] = None
    target_audience: Optional[Literal["all", "student", "teacher", "admin"]] = None
    target_class: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = None
    date: Optional[datetime] = None
    is_active: Optional[bool] = None


# Homework
class HomeworkCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    class_name: str = Field(..., alias="class", min_length=1)
    due_date: datetime
    assigned_to: str = "all"


class SubmissionCreate(CamelModel):
    content: str = ""
    attachments: List[str] = Field(default_factory=list)


# Attendance
class AttendanceMark(CamelModel):
    student: str = Field(..., description="Student user id")
    day: date = Field(..., alias="date")
    status: Literal["present", "absent", "late"] = "present"
    class_name: Optional[str] = Field(None, alias="class")
    remarks: Optional[str] = None
