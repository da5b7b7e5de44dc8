"""
Database Schemas for the Family Guidance App

Each document model maps to a MongoDB collection (experts, families, children,
reports). Fields are snake_case in Python and camelCase in the stored
documents and the JSON API.
"""
from datetime import date
from typing import Dict, List, Optional, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, EmailStr
from pydantic.alias_generators import to_camel

RoleType = Literal["admin", "expert", "family"]
SchoolType = Literal["devlet", "özel"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Identity

class UserIdentity(CamelModel):
    uid: str
    email: Optional[str] = None
    role: Optional[RoleType] = Field(None, description="Custom role claim")


# Experts

class Education(CamelModel):
    name: str = ""
    institution: str = ""
    date: str = ""


class Expert(CamelModel):
    """
    Experts collection schema
    Collection: "experts", _id = identity uid
    """
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: EmailStr = Field(..., description="Login email")
    birth_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    start_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    status: str = "active"
    families: Dict[str, dict] = Field(default_factory=dict, description="familyId -> family snapshot")
    children: List[str] = Field(default_factory=list, description="Child ids")


class ExpertCreate(CamelModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    birth_date: Optional[str] = None
    start_date: Optional[str] = None


class ExpertProfileUpdate(CamelModel):
    user_id: Optional[str] = Field(None, description="Only admins may update another expert")
    is_cap: bool = Field(False, alias="isCAP")
    cap_university: str = ""
    cap_department: str = ""
    cap_level: str = ""
    is_yandal: bool = Field(False, alias="isYANDAL")
    yandal_university: str = ""
    yandal_department: str = ""
    yandal_level: str = ""
    is_acikogretim: bool = False
    acikogretim_university: str = ""
    acikogretim_department: str = ""
    acikogretim_level: str = ""
    active_institution: str = ""
    city: str = ""
    district: str = ""
    foreign_language: str = ""
    educations: List[Education] = Field(default_factory=list)
    photo_url: str = Field("", alias="photoURL")


# Families

class Address(CamelModel):
    full_address: str = ""
    district: str = ""
    city: str = ""


class Parent(CamelModel):
    name: str = ""
    phone: str = ""


class Parents(CamelModel):
    mother: Parent = Field(default_factory=Parent)
    father: Parent = Field(default_factory=Parent)


class ChildSnapshot(CamelModel):
    """Child as embedded in a family document."""
    id: str = Field(default_factory=lambda: uuid4().hex)
    full_name: str = ""
    birth_date: str = ""
    gender: Optional[str] = None
    special_conditions: str = ""
    education_status: str = ""
    health_status: str = ""


class Family(CamelModel):
    """
    Families collection schema
    Collection: "families", _id = identity uid
    """
    family_name: str = Field(..., description="Family name")
    email: EmailStr = Field(..., description="Login email")
    phone: Optional[str] = None
    photo_url: str = Field("", alias="photoURL")
    address: Address = Field(default_factory=Address)
    parents: Parents = Field(default_factory=Parents)
    children: List[ChildSnapshot] = Field(default_factory=list)
    notes: str = ""
    active: bool = True
    status: str = "active"
    assigned_experts: Dict[str, dict] = Field(default_factory=dict, description="expertId -> expert snapshot")
    meetings: List[dict] = Field(default_factory=list, description="List of {reportId, date}")


class FamilyCreate(CamelModel):
    family_name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    photo_url: str = Field("", alias="photoURL")
    address: Address = Field(default_factory=Address)
    parents: Parents = Field(default_factory=Parents)
    children: List[ChildSnapshot] = Field(default_factory=list)
    notes: str = ""


class EmergencyContact(CamelModel):
    first_name: str = ""
    last_name: str = ""
    phone: str = ""


class FamilyProfileUpdate(CamelModel):
    user_id: Optional[str] = None
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)


# Children

class Child(CamelModel):
    """
    Children collection schema
    Collection: "children"
    """
    name: str = ""
    birth_date: str = ""
    school_name: str = ""
    school_type: SchoolType = "devlet"
    special_education: bool = False
    family_note: str = ""
    admin_note: str = ""
    expert_note: str = ""
    session_fee: str = ""
    family_id: str = Field(..., description="Owning family uid")
    expert_ids: List[str] = Field(default_factory=list, description="At most one assigned expert")


class ChildCreate(CamelModel):
    name: str = ""
    birth_date: str = ""
    school_name: str = ""
    school_type: SchoolType = "devlet"
    special_education: bool = False
    family_note: str = ""
    admin_note: str = ""
    expert_note: str = ""
    session_fee: str = ""
    family_id: str
    expert_id: Optional[str] = None


class ChildUpdate(CamelModel):
    child_id: str
    expert_id: Optional[str] = None
    old_expert_id: Optional[str] = None
    name: Optional[str] = None
    birth_date: Optional[str] = None
    school_name: Optional[str] = None
    school_type: Optional[SchoolType] = None
    special_education: Optional[bool] = None
    family_note: Optional[str] = None
    admin_note: Optional[str] = None
    expert_note: Optional[str] = None
    session_fee: Optional[str] = None


# Assignments

class AssignFamiliesRequest(CamelModel):
    expert_email: str = Field(..., description="Email of an existing expert")
    family_emails: str = Field(..., description="Comma separated family emails")


# Reports

class Report(CamelModel):
    """
    Reports collection schema
    Collection: "reports"
    """
    expert_id: str
    expert_email: Optional[str] = None
    family_id: str
    family_email: Optional[str] = None
    family_name: Optional[str] = None
    meeting_date: str = Field(..., description="YYYY-MM-DD")
    report_content: str
    payment: float = Field(..., ge=0)
    notes: str = ""
    images: List[str] = Field(default_factory=list)
    approved: bool = False
    family_approved: bool = False
    family_rating: Optional[int] = Field(None, ge=1, le=5)
    family_comment: str = ""


class ReportCreate(CamelModel):
    family_id: str
    meeting_date: date
    report_content: str
    payment: float = Field(..., ge=0)
    notes: str = ""
    images: List[str] = Field(default_factory=list)


class ReportUpdate(CamelModel):
    report_content: Optional[str] = None
    payment: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    family_comment: Optional[str] = None
    family_rating: Optional[int] = Field(None, ge=1, le=5)
    approved: Optional[bool] = None


class FamilyReview(CamelModel):
    approved: bool = True
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


# Roles and sessions (not collections)

class SetRoleRequest(CamelModel):
    uid: str
    role: RoleType


class CheckRoleRequest(CamelModel):
    uid: str


class UserRoleRequest(CamelModel):
    action: Optional[str] = Field(None, description="check or set")
    email: Optional[str] = None
    uid: Optional[str] = None
    role: Optional[RoleType] = None


class LoginRequest(CamelModel):
    email: str
    password: str
