# medisync/analytics.py - stock alerts and dashboard figures derived from the medication table
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 30


def days_to_expiry(expiration_date: date, today: date) -> int:
    """Whole calendar days from ``today`` until expiry; negative once expired."""
    return (expiration_date - today).days


def stock_status(medication: Any, today: date, horizon_days: int = DEFAULT_HORIZON_DAYS) -> models.StockStatus:
    """Classify a medication for display.

    Expiring wins over low stock: a medication that is both running out and
    about to expire is reported as expiring.
    """
    if days_to_expiry(medication.expiration_date, today) <= horizon_days:
        return models.StockStatus.expiring
    if is_low_stock(medication):
        return models.StockStatus.low
    return models.StockStatus.in_stock


def is_low_stock(medication: Any) -> bool:
    return medication.quantity <= medication.min_stock


def expiry_cutoff(today: date, horizon_days: int = DEFAULT_HORIZON_DAYS) -> date:
    return today + timedelta(days=horizon_days)


def get_low_stock_medications(db: Session, owner_id: int) -> List[models.Medication]:
    """Tenant medications at or below their minimum stock, in insertion order."""
    return (
        db.query(models.Medication)
        .filter(
            models.Medication.user_id == owner_id,
            models.Medication.quantity <= models.Medication.min_stock,
        )
        .order_by(models.Medication.id)
        .all()
    )


def get_expiring_soon_medications(
    db: Session, owner_id: int, today: date, horizon_days: int = DEFAULT_HORIZON_DAYS
) -> List[models.Medication]:
    """Tenant medications expiring strictly before ``today + horizon_days``.

    Compared at calendar-date granularity, so the time of day never shifts
    a medication across the boundary.
    """
    cutoff = expiry_cutoff(today, horizon_days)
    return (
        db.query(models.Medication)
        .filter(
            models.Medication.user_id == owner_id,
            models.Medication.expiration_date < cutoff,
        )
        .order_by(models.Medication.id)
        .all()
    )


def get_dashboard_stats(
    db: Session, owner_id: int, today: date, horizon_days: int = DEFAULT_HORIZON_DAYS
) -> Dict[str, int]:
    """Counts for the dashboard cards. Recomputed on every call."""
    stats = {}
    stats["total_patients"] = db.query(models.Patient).filter(models.Patient.user_id == owner_id).count()
    stats["total_medications"] = db.query(models.Medication).filter(models.Medication.user_id == owner_id).count()
    stats["low_stock_count"] = len(get_low_stock_medications(db, owner_id))
    stats["expiring_soon_count"] = len(get_expiring_soon_medications(db, owner_id, today, horizon_days))
    return stats


def get_category_breakdown(db: Session, owner_id: int) -> Dict[str, int]:
    rows = db.query(models.Medication.category).filter(models.Medication.user_id == owner_id).all()
    return dict(Counter(category for (category,) in rows))


def run_consistency_checks(db: Session, owner_id: int, checked_at: datetime) -> Dict[str, Any]:
    """Find the tenant's treatments whose patient or medication no longer exists."""
    report = {
        "checked_at": checked_at,
        "orphaned_treatments": [],
    }

    patient_ids = {pid for (pid,) in db.query(models.Patient.id).filter(models.Patient.user_id == owner_id)}
    medication_ids = {mid for (mid,) in db.query(models.Medication.id).filter(models.Medication.user_id == owner_id)}
    treatments = (
        db.query(models.TreatmentHistory)
        .filter(models.TreatmentHistory.user_id == owner_id)
        .order_by(models.TreatmentHistory.id)
        .all()
    )

    for treatment in treatments:
        missing = []
        if treatment.patient_id not in patient_ids:
            missing.append(f"patient {treatment.patient_id}")
        if treatment.medication_id not in medication_ids:
            missing.append(f"medication {treatment.medication_id}")
        if missing:
            report["orphaned_treatments"].append({
                "treatment_id": treatment.id,
                "patient_id": treatment.patient_id,
                "medication_id": treatment.medication_id,
                "issue": f"Treatment references missing {' and '.join(missing)}.",
            })

    if report["orphaned_treatments"]:
        logger.info(f"Consistency check for owner {owner_id}: {len(report['orphaned_treatments'])} orphaned treatments")
    return report
