# Demo records loaded into every freshly constructed store.
import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from . import models
from .sequence import IdentitySequence

logger = logging.getLogger(__name__)

# bcrypt hash of "demo123"
DEMO_PASSWORD_HASH = "$2b$10$sAJd1LxCiLVd1u4ex0gR3e/SXyuCaU1DEa6qA0yX3WHU29FAsUHxW"

DEMO_USERS = [
    {"id": 1, "username": "demo_doctor", "email": "demo@medisync.com", "name": "Dr. Demo User"},
    {"id": 2, "username": "admin_user", "email": "admin@medisync.com", "name": "Dr. Sarah Admin"},
]

DEMO_PATIENTS = [
    {"id": 1, "user_id": 1, "name": "John Smith", "phone": "+1-555-0123", "email": "john.smith@email.com",
     "date_of_birth": date(1980, 5, 15), "medical_history": "Hypertension, controlled with medication. No known allergies."},
    {"id": 2, "user_id": 1, "name": "Sarah Johnson", "phone": "+1-555-0124", "email": "sarah.j@email.com",
     "date_of_birth": date(1975, 3, 22), "medical_history": "Type 2 diabetes, well-managed. Regular checkups required."},
    {"id": 3, "user_id": 1, "name": "Michael Brown", "phone": "+1-555-0125", "email": "mbrown@email.com",
     "date_of_birth": date(1990, 11, 8), "medical_history": "Asthma, uses inhaler as needed. Allergic to penicillin."},
    {"id": 4, "user_id": 1, "name": "Emily Davis", "phone": "+1-555-0126", "email": "emily.davis@email.com",
     "date_of_birth": date(1985, 7, 30), "medical_history": "Recent surgery recovery. Follow-up in 2 weeks."},
]

DEMO_MEDICATIONS = [
    {"id": 1, "user_id": 1, "name": "Lisinopril 10mg", "brand": "Prinivil", "category": "heart-medication",
     "quantity": 120, "min_stock": 20, "expiration_date": date(2025, 8, 15), "notes": "ACE inhibitor for hypertension"},
    {"id": 2, "user_id": 1, "name": "Metformin 500mg", "brand": "Glucophage", "category": "diabetes",
     "quantity": 90, "min_stock": 15, "expiration_date": date(2025, 6, 20), "notes": "For type 2 diabetes management"},
    {"id": 3, "user_id": 1, "name": "Albuterol Inhaler", "brand": "ProAir HFA", "category": "respiratory",
     "quantity": 5, "min_stock": 2, "expiration_date": date(2025, 1, 10), "notes": "Rescue inhaler for asthma - expiring soon"},
    {"id": 4, "user_id": 1, "name": "Amoxicillin 500mg", "brand": "Amoxil", "category": "antibiotics",
     "quantity": 8, "min_stock": 10, "expiration_date": date(2025, 5, 30), "notes": "Broad-spectrum antibiotic - low stock"},
    {"id": 5, "user_id": 1, "name": "Ibuprofen 200mg", "brand": "Advil", "category": "pain-relief",
     "quantity": 150, "min_stock": 25, "expiration_date": date(2026, 3, 15), "notes": "Over-the-counter pain reliever"},
]


def seed_demo_data(db: Session, sequence: IdentitySequence, now: datetime) -> None:
    """Insert the demo users, patients and medications with fixed ids.

    The identity sequence is moved past every seeded id so records created
    afterwards never collide with them.
    """
    for user in DEMO_USERS:
        db.add(models.User(password_hash=DEMO_PASSWORD_HASH, created_at=now, **user))
        sequence.reserve("user", user["id"])
    for patient in DEMO_PATIENTS:
        db.add(models.Patient(created_at=now, updated_at=now, **patient))
        sequence.reserve("patient", patient["id"])
    for medication in DEMO_MEDICATIONS:
        db.add(models.Medication(created_at=now, updated_at=now, **medication))
        sequence.reserve("medication", medication["id"])
    db.commit()
    logger.info(
        f"Seeded {len(DEMO_USERS)} users, {len(DEMO_PATIENTS)} patients, "
        f"{len(DEMO_MEDICATIONS)} medications"
    )
