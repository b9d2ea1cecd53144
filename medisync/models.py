# medisync/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Date, JSON, Index
)
from .database import Base
import enum


class MedicationCategory(str, enum.Enum):
    antibiotics = "antibiotics"
    pain_relief = "pain-relief"
    heart_medication = "heart-medication"
    diabetes = "diabetes"
    respiratory = "respiratory"
    other = "other"


class StockStatus(str, enum.Enum):
    expiring = "expiring"
    low = "low"
    in_stock = "in-stock"


class DeletePolicy(str, enum.Enum):
    """What happens to treatment records when their patient or medication is deleted."""
    orphan = "orphan"
    cascade = "cascade"
    restrict = "restrict"


# Identity columns carry no autoincrement: ids come from the store's IdentitySequence.

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=False)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False)


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patients_user_created', 'user_id', 'created_at'),
    )

    id = Column(Integer, primary_key=True, autoincrement=False)
    # Referential in the schema only; no FK constraint so deletes never cascade implicitly
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    medical_history = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class Medication(Base):
    __tablename__ = "medications"
    __table_args__ = (
        Index('idx_medications_user_created', 'user_id', 'created_at'),
        Index('idx_medications_expiration', 'expiration_date'),
    )

    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=True)
    # Free text here; membership in MedicationCategory is checked by the API schemas
    category = Column(String(50), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    expiration_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class TreatmentHistory(Base):
    __tablename__ = "treatment_history"
    __table_args__ = (
        Index('idx_treatment_user_patient', 'user_id', 'patient_id'),
    )

    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, nullable=False, index=True)
    patient_id = Column(Integer, nullable=False)
    medication_id = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)
    photo_urls = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
