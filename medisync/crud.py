# medisync/crud.py - owner-scoped record operations over a SQLAlchemy session
from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from datetime import datetime, date, time, timezone
from typing import Optional, List, Dict, Any, Iterable, Union, Mapping
import enum
import logging

from pydantic import BaseModel, TypeAdapter, ValidationError

from . import models, schemas

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass

class InvalidFieldError(StoreError, ValueError):
    """A date or date-time field could not be normalised."""
    pass

class DuplicateUserError(StoreError):
    pass

class ReferenceConflictError(StoreError):
    """Delete refused because treatment records still point at the record."""
    pass


# ==================== FIELD NORMALISATION ====================

_date_adapter = TypeAdapter(date)
_datetime_adapter = TypeAdapter(datetime)

# Never taken from caller input: identity, ownership and bookkeeping columns.
_PROTECTED_FIELDS = {"id", "user_id", "created_at", "updated_at"}

_DATE_FIELDS = {
    models.Patient: ("date_of_birth",),
    models.Medication: ("expiration_date",),
}
_DATETIME_FIELDS = {
    models.TreatmentHistory: ("date",),
}


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Accept a date, a datetime or an ISO date / date-time string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        if isinstance(value, str) and len(value.strip()) > 10:
            return _datetime_adapter.validate_python(value.strip()).date()
        return _date_adapter.validate_python(value)
    except ValidationError as e:
        raise InvalidFieldError(f"Invalid date value: {value!r}") from e


def normalize_datetime(value: Union[date, datetime, str, None]) -> Optional[datetime]:
    """Accept a datetime, a date (midnight) or an ISO string; returns naive UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        return to_naive_utc(_datetime_adapter.validate_python(value))
    except ValidationError as e:
        raise InvalidFieldError(f"Invalid date-time value: {value!r}") from e


def _payload(model, data: Union[BaseModel, Mapping[str, Any]], partial: bool = False) -> Dict[str, Any]:
    """Column values taken from a schema instance or a plain mapping.

    With ``partial`` only the fields the caller set are returned, so omitted
    keys stay untouched on update. No business validation happens here.
    """
    if isinstance(data, BaseModel):
        raw = data.model_dump(exclude_unset=partial)
    else:
        raw = dict(data)

    columns = set(model.__table__.columns.keys())
    values = {}
    for key, value in raw.items():
        if key not in columns or key in _PROTECTED_FIELDS:
            continue
        if isinstance(value, enum.Enum):
            value = value.value
        values[key] = value

    for field in _DATE_FIELDS.get(model, ()):
        if field in values:
            values[field] = normalize_date(values[field])
    for field in _DATETIME_FIELDS.get(model, ()):
        if field in values:
            values[field] = normalize_datetime(values[field])
    if model is models.TreatmentHistory and "photo_urls" in values:
        values["photo_urls"] = list(values["photo_urls"] or [])
    return values


# ==================== USER OPERATIONS ====================

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    """Get user by ID. Users are not owner-scoped."""
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()

def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, user: Union[schemas.UserCreate, Mapping[str, Any]], user_id: int, now: datetime) -> models.User:
    values = _payload(models.User, user)
    db_user = models.User(id=user_id, created_at=now, **values)
    try:
        db.add(db_user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        taken = (
            get_user_by_username(db, values.get("username")) is not None
            or get_user_by_email(db, values.get("email")) is not None
        )
        if taken:
            logger.warning(f"Rejected user {user_id}: username or email already registered")
            raise DuplicateUserError("A user with this username or email already exists") from e
        logger.error(f"Error creating user {user_id}: {str(e)}")
        raise StoreError(f"Database error: {str(e)}") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating user {user_id}: {str(e)}")
        raise StoreError(f"Database error: {str(e)}") from e
    db.refresh(db_user)
    return db_user


# ==================== SCOPED RECORD OPERATIONS ====================

def get_record(db: Session, model, record_id: int, owner_id: int):
    """Point lookup matching both id and owner."""
    return db.query(model).filter(model.id == record_id, model.user_id == owner_id).first()

def list_records(db: Session, model, owner_id: int, *criteria) -> List[Any]:
    """All records of the tenant matching any extra criteria, newest created first."""
    return (
        db.query(model)
        .filter(model.user_id == owner_id, *criteria)
        .order_by(desc(model.created_at), desc(model.id))
        .all()
    )

def insert_record(db: Session, model, data, record_id: int, owner_id: int, now: datetime):
    values = _payload(model, data)
    db_record = model(id=record_id, user_id=owner_id, created_at=now, updated_at=now, **values)
    try:
        db.add(db_record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error inserting {model.__tablename__} {record_id}: {str(e)}")
        raise StoreError(f"Database error: {str(e)}") from e
    db.refresh(db_record)
    return db_record

def update_record(db: Session, model, record_id: int, owner_id: int, data, now: datetime):
    """Merge only the supplied fields over the scoped record; None when absent."""
    db_record = get_record(db, model, record_id, owner_id)
    if not db_record:
        return None

    update_data = _payload(model, data, partial=True)
    for key, value in update_data.items():
        setattr(db_record, key, value)
    db_record.updated_at = now

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating {model.__tablename__} {record_id}: {str(e)}")
        raise StoreError(f"Database error: {str(e)}") from e
    db.refresh(db_record)
    return db_record

def delete_record(db: Session, model, record_id: int, owner_id: int) -> bool:
    db_record = get_record(db, model, record_id, owner_id)
    if not db_record:
        return False
    try:
        db.delete(db_record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting {model.__tablename__} {record_id}: {str(e)}")
        raise StoreError(f"Database error: {str(e)}") from e
    return True


# ==================== PATIENTS ====================

def get_patient(db: Session, patient_id: int, owner_id: int) -> Optional[models.Patient]:
    return get_record(db, models.Patient, patient_id, owner_id)

def get_patients(db: Session, owner_id: int, search: Optional[str] = None) -> List[models.Patient]:
    """Tenant's patients, newest first, optionally filtered by name, email or phone."""
    criteria = []
    if search:
        pattern = f"%{search.strip()}%"
        criteria.append(or_(
            models.Patient.name.ilike(pattern),
            models.Patient.email.ilike(pattern),
            models.Patient.phone.ilike(pattern),
        ))
    return list_records(db, models.Patient, owner_id, *criteria)


# ==================== MEDICATIONS ====================

def get_medication(db: Session, medication_id: int, owner_id: int) -> Optional[models.Medication]:
    return get_record(db, models.Medication, medication_id, owner_id)

def get_medications(
    db: Session, owner_id: int, category: Optional[str] = None, search: Optional[str] = None
) -> List[models.Medication]:
    criteria = []
    if category:
        criteria.append(models.Medication.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        criteria.append(or_(
            models.Medication.name.ilike(pattern),
            models.Medication.brand.ilike(pattern),
            models.Medication.category.ilike(pattern),
        ))
    return list_records(db, models.Medication, owner_id, *criteria)


# ==================== TREATMENT HISTORY ====================

def get_treatment(db: Session, treatment_id: int, owner_id: int) -> Optional[models.TreatmentHistory]:
    return get_record(db, models.TreatmentHistory, treatment_id, owner_id)

def get_treatment_history(db: Session, patient_id: int, owner_id: int) -> List[models.TreatmentHistory]:
    """A patient's treatments, most recent treatment date first."""
    return (
        db.query(models.TreatmentHistory)
        .filter(
            models.TreatmentHistory.patient_id == patient_id,
            models.TreatmentHistory.user_id == owner_id,
        )
        .order_by(desc(models.TreatmentHistory.date), desc(models.TreatmentHistory.id))
        .all()
    )

def get_treatments_referencing(
    db: Session, owner_id: int, patient_id: Optional[int] = None, medication_id: Optional[int] = None
) -> List[models.TreatmentHistory]:
    query = db.query(models.TreatmentHistory).filter(models.TreatmentHistory.user_id == owner_id)
    if patient_id is not None:
        query = query.filter(models.TreatmentHistory.patient_id == patient_id)
    if medication_id is not None:
        query = query.filter(models.TreatmentHistory.medication_id == medication_id)
    return query.order_by(models.TreatmentHistory.id).all()

def delete_treatments(db: Session, treatments: Iterable[models.TreatmentHistory]) -> int:
    """Stage deletion of the given treatments; committed by the caller's next commit."""
    count = 0
    for treatment in treatments:
        db.delete(treatment)
        count += 1
    return count
