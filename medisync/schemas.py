# medisync/schemas.py
from datetime import datetime, date
from typing import ClassVar, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, EmailStr, model_validator
from pydantic.alias_generators import to_camel

from .models import MedicationCategory, StockStatus


# --- Base Schemas ---
class BaseSchema(BaseModel):
    # JSON speaks camelCase (totalPatients, minStock, ...); Python code uses the field names.
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class PatchSchema(BaseSchema):
    """Partial update.

    Only fields the caller actually sent are applied (``model_fields_set``);
    omitting a field leaves it untouched while sending ``null`` clears it.
    Fields listed in ``required_fields`` can be replaced but never cleared.
    """
    required_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_cleared_required_fields(self):
        for name in self.required_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"'{name}' cannot be cleared")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# --- User Schemas ---
class UserCreate(BaseSchema):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    # Hashing happens before the store is reached
    password_hash: str = Field(..., min_length=1)

class User(BaseSchema):
    id: int
    username: str
    email: str
    name: str
    created_at: datetime
    password_hash: str = Field(..., exclude=True, repr=False)


# --- Patient Schemas ---
class PatientBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    date_of_birth: Optional[date] = None
    medical_history: Optional[str] = None

class PatientCreate(PatientBase):
    pass

class PatientUpdate(PatchSchema):
    required_fields: ClassVar[Tuple[str, ...]] = ("name",)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    date_of_birth: Optional[date] = None
    medical_history: Optional[str] = None

class Patient(BaseSchema):
    id: int
    user_id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    medical_history: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# --- Medication Schemas ---
class MedicationBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    brand: Optional[str] = Field(None, max_length=255)
    category: MedicationCategory
    quantity: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    expiration_date: date
    notes: Optional[str] = None

class MedicationCreate(MedicationBase):
    pass

class MedicationUpdate(PatchSchema):
    required_fields: ClassVar[Tuple[str, ...]] = ("name", "category", "quantity", "min_stock", "expiration_date")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    brand: Optional[str] = Field(None, max_length=255)
    category: Optional[MedicationCategory] = None
    quantity: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    expiration_date: Optional[date] = None
    notes: Optional[str] = None

class Medication(BaseSchema):
    id: int
    user_id: int
    name: str
    brand: Optional[str] = None
    category: str
    quantity: int
    min_stock: int
    expiration_date: date
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Derived on read, never stored
    status: Optional[StockStatus] = None


# --- Treatment History Schemas ---
class TreatmentHistoryBase(BaseSchema):
    medication_id: int
    date: datetime
    notes: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)

class TreatmentHistoryCreate(TreatmentHistoryBase):
    patient_id: int

class TreatmentHistoryIn(TreatmentHistoryBase):
    """Request body for POST /patients/{patient_id}/treatments; the patient comes from the path."""
    pass

class TreatmentHistoryUpdate(PatchSchema):
    required_fields: ClassVar[Tuple[str, ...]] = ("patient_id", "medication_id", "date", "photo_urls")

    patient_id: Optional[int] = None
    medication_id: Optional[int] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None
    photo_urls: Optional[List[str]] = None

class TreatmentHistory(BaseSchema):
    id: int
    user_id: int
    patient_id: int
    medication_id: int
    date: datetime
    notes: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

class PhotoUploadRequest(BaseSchema):
    photo_count: int = Field(1, ge=1, le=10)

class PhotoUploadResponse(BaseSchema):
    photo_urls: List[str]


# --- Dashboard Schemas ---
class DashboardStatsResponse(BaseSchema):
    total_patients: int
    total_medications: int
    low_stock_count: int
    expiring_soon_count: int

class DashboardAlertsResponse(BaseSchema):
    low_stock: List[Medication] = []
    expiring_soon: List[Medication] = []

CategoryBreakdown = Dict[str, int]


# --- Consistency Schemas ---
class OrphanedTreatment(BaseSchema):
    treatment_id: int
    patient_id: int
    medication_id: int
    issue: str

class ConsistencyReport(BaseSchema):
    checked_at: datetime
    orphaned_treatments: List[OrphanedTreatment] = []


class MessageResponse(BaseSchema):
    message: str
