# medisync/store.py - the single entry point for reading and writing clinical records
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import structlog
from sqlalchemy.orm import Session

from . import analytics, crud, models, schemas
from .crud import ReferenceConflictError
from .database import build_engine, build_session_factory, create_tables
from .seed import seed_demo_data
from .sequence import IdentitySequence

log = structlog.get_logger(__name__)

USER = "user"
PATIENT = "patient"
MEDICATION = "medication"
TREATMENT = "treatment_history"

Clock = Callable[[], datetime]
Payload = Union[schemas.BaseSchema, Mapping[str, Any]]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every stored timestamp takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ClinicStore:
    """Per-tenant record store for users, patients, medications and treatments.

    Construct one per process and hand it to whatever serves requests.
    Every Patient, Medication and TreatmentHistory operation takes the id of
    the owning user and only ever sees that user's records. A missing record
    is reported as ``None`` (get/update) or ``False`` (delete), never raised.

    All operations run under one re-entrant lock. Callers that need several
    operations to happen atomically (look up a patient and a medication,
    then record a treatment) wrap them in ``with store.locked():``.
    """

    def __init__(
        self,
        database_url: str = "sqlite://",
        clock: Optional[Clock] = None,
        delete_policy: Union[models.DeletePolicy, str] = models.DeletePolicy.orphan,
        expiring_horizon_days: int = analytics.DEFAULT_HORIZON_DAYS,
        seed: bool = True,
    ):
        self._clock = clock or utcnow
        self._lock = threading.RLock()
        self._engine = build_engine(database_url)
        create_tables(self._engine)
        self._session_factory = build_session_factory(self._engine)
        self.sequence = IdentitySequence()
        self.delete_policy = models.DeletePolicy(delete_policy)
        self.expiring_horizon_days = expiring_horizon_days

        if seed:
            with self._session() as db:
                seed_demo_data(db, self.sequence, self.now())

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "ClinicStore":
        return cls(
            database_url=settings.database_url,
            clock=clock,
            delete_policy=settings.delete_policy,
            expiring_horizon_days=settings.expiring_horizon_days,
            seed=settings.seed_demo_data,
        )

    # --- plumbing ---

    def now(self) -> datetime:
        return crud.to_naive_utc(self._clock())

    def today(self) -> date:
        return self.now().date()

    @contextmanager
    def locked(self) -> Iterator["ClinicStore"]:
        with self._lock:
            yield self

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._lock:
            db = self._session_factory()
            try:
                yield db
            finally:
                db.close()

    def close(self) -> None:
        self._engine.dispose()

    def _medication_out(self, db_medication: models.Medication) -> schemas.Medication:
        medication = schemas.Medication.model_validate(db_medication)
        medication.status = analytics.stock_status(db_medication, self.today())
        return medication

    # ==================== USERS ====================

    def create_user(self, user: Payload) -> schemas.User:
        with self._session() as db:
            db_user = crud.create_user(db, user, self.sequence.next(USER), self.now())
            log.info("user.created", record_id=db_user.id)
            return schemas.User.model_validate(db_user)

    def get_user(self, user_id: int) -> Optional[schemas.User]:
        with self._session() as db:
            db_user = crud.get_user(db, user_id)
            return schemas.User.model_validate(db_user) if db_user else None

    def get_user_by_email(self, email: str) -> Optional[schemas.User]:
        with self._session() as db:
            db_user = crud.get_user_by_email(db, email)
            return schemas.User.model_validate(db_user) if db_user else None

    def get_user_by_username(self, username: str) -> Optional[schemas.User]:
        with self._session() as db:
            db_user = crud.get_user_by_username(db, username)
            return schemas.User.model_validate(db_user) if db_user else None

    # ==================== PATIENTS ====================

    def list_patients(self, owner_id: int, search: Optional[str] = None) -> List[schemas.Patient]:
        with self._session() as db:
            return [schemas.Patient.model_validate(p) for p in crud.get_patients(db, owner_id, search=search)]

    def get_patient(self, patient_id: int, owner_id: int) -> Optional[schemas.Patient]:
        with self._session() as db:
            db_patient = crud.get_patient(db, patient_id, owner_id)
            return schemas.Patient.model_validate(db_patient) if db_patient else None

    def create_patient(self, owner_id: int, patient: Payload) -> schemas.Patient:
        with self._session() as db:
            db_patient = crud.insert_record(
                db, models.Patient, patient, self.sequence.next(PATIENT), owner_id, self.now()
            )
            log.info("patient.created", owner_id=owner_id, record_id=db_patient.id)
            return schemas.Patient.model_validate(db_patient)

    def update_patient(self, patient_id: int, owner_id: int, changes: Payload) -> Optional[schemas.Patient]:
        with self._session() as db:
            db_patient = crud.update_record(db, models.Patient, patient_id, owner_id, changes, self.now())
            if db_patient is None:
                log.debug("patient.update_missed", owner_id=owner_id, record_id=patient_id)
                return None
            log.info("patient.updated", owner_id=owner_id, record_id=patient_id)
            return schemas.Patient.model_validate(db_patient)

    def delete_patient(self, patient_id: int, owner_id: int) -> bool:
        return self._delete_referenced(models.Patient, PATIENT, patient_id, owner_id, "patient_id")

    # ==================== MEDICATIONS ====================

    def list_medications(
        self,
        owner_id: int,
        category: Optional[str] = None,
        status: Optional[Union[models.StockStatus, str]] = None,
        search: Optional[str] = None,
    ) -> List[schemas.Medication]:
        if isinstance(category, models.MedicationCategory):
            category = category.value
        with self._session() as db:
            medications = [self._medication_out(m) for m in crud.get_medications(db, owner_id, category=category, search=search)]
        if status is not None:
            wanted = models.StockStatus(status)
            medications = [m for m in medications if m.status == wanted]
        return medications

    def get_medication(self, medication_id: int, owner_id: int) -> Optional[schemas.Medication]:
        with self._session() as db:
            db_medication = crud.get_medication(db, medication_id, owner_id)
            return self._medication_out(db_medication) if db_medication else None

    def create_medication(self, owner_id: int, medication: Payload) -> schemas.Medication:
        with self._session() as db:
            db_medication = crud.insert_record(
                db, models.Medication, medication, self.sequence.next(MEDICATION), owner_id, self.now()
            )
            log.info("medication.created", owner_id=owner_id, record_id=db_medication.id)
            return self._medication_out(db_medication)

    def update_medication(self, medication_id: int, owner_id: int, changes: Payload) -> Optional[schemas.Medication]:
        with self._session() as db:
            db_medication = crud.update_record(db, models.Medication, medication_id, owner_id, changes, self.now())
            if db_medication is None:
                log.debug("medication.update_missed", owner_id=owner_id, record_id=medication_id)
                return None
            log.info("medication.updated", owner_id=owner_id, record_id=medication_id)
            return self._medication_out(db_medication)

    def delete_medication(self, medication_id: int, owner_id: int) -> bool:
        return self._delete_referenced(models.Medication, MEDICATION, medication_id, owner_id, "medication_id")

    # ==================== TREATMENT HISTORY ====================

    def list_treatments(self, patient_id: int, owner_id: int) -> List[schemas.TreatmentHistory]:
        with self._session() as db:
            return [
                schemas.TreatmentHistory.model_validate(t)
                for t in crud.get_treatment_history(db, patient_id, owner_id)
            ]

    def get_treatment(self, treatment_id: int, owner_id: int) -> Optional[schemas.TreatmentHistory]:
        with self._session() as db:
            db_treatment = crud.get_treatment(db, treatment_id, owner_id)
            return schemas.TreatmentHistory.model_validate(db_treatment) if db_treatment else None

    def create_treatment(self, owner_id: int, treatment: Payload) -> schemas.TreatmentHistory:
        """Record a treatment. The patient and medication are not re-checked here."""
        with self._session() as db:
            db_treatment = crud.insert_record(
                db, models.TreatmentHistory, treatment, self.sequence.next(TREATMENT), owner_id, self.now()
            )
            log.info("treatment.created", owner_id=owner_id, record_id=db_treatment.id)
            return schemas.TreatmentHistory.model_validate(db_treatment)

    def update_treatment(self, treatment_id: int, owner_id: int, changes: Payload) -> Optional[schemas.TreatmentHistory]:
        with self._session() as db:
            db_treatment = crud.update_record(db, models.TreatmentHistory, treatment_id, owner_id, changes, self.now())
            if db_treatment is None:
                log.debug("treatment.update_missed", owner_id=owner_id, record_id=treatment_id)
                return None
            log.info("treatment.updated", owner_id=owner_id, record_id=treatment_id)
            return schemas.TreatmentHistory.model_validate(db_treatment)

    def delete_treatment(self, treatment_id: int, owner_id: int) -> bool:
        with self._session() as db:
            deleted = crud.delete_record(db, models.TreatmentHistory, treatment_id, owner_id)
        log.info("treatment.deleted" if deleted else "treatment.delete_missed", owner_id=owner_id, record_id=treatment_id)
        return deleted

    def _delete_referenced(self, model, kind: str, record_id: int, owner_id: int, reference: str) -> bool:
        """Delete a patient or medication, applying the delete policy to treatments that point at it."""
        with self._session() as db:
            if crud.get_record(db, model, record_id, owner_id) is None:
                log.debug(f"{kind}.delete_missed", owner_id=owner_id, record_id=record_id)
                return False

            if self.delete_policy is not models.DeletePolicy.orphan:
                referencing = crud.get_treatments_referencing(db, owner_id, **{reference: record_id})
                if referencing and self.delete_policy is models.DeletePolicy.restrict:
                    log.info(f"{kind}.delete_refused", owner_id=owner_id, record_id=record_id, references=len(referencing))
                    raise ReferenceConflictError(
                        f"{kind} {record_id} is still referenced by {len(referencing)} treatment record(s)"
                    )
                if referencing:
                    removed = crud.delete_treatments(db, referencing)
                    log.info("treatment.cascade_deleted", owner_id=owner_id, count=removed, **{reference: record_id})

            deleted = crud.delete_record(db, model, record_id, owner_id)
            log.info(f"{kind}.deleted", owner_id=owner_id, record_id=record_id)
            return deleted

    # ==================== ALERTS & DASHBOARD ====================

    def _horizon(self, horizon_days: Optional[int]) -> int:
        return self.expiring_horizon_days if horizon_days is None else horizon_days

    def low_stock(self, owner_id: int) -> List[schemas.Medication]:
        with self._session() as db:
            return [self._medication_out(m) for m in analytics.get_low_stock_medications(db, owner_id)]

    def expiring_soon(self, owner_id: int, horizon_days: Optional[int] = None) -> List[schemas.Medication]:
        with self._session() as db:
            return [
                self._medication_out(m)
                for m in analytics.get_expiring_soon_medications(db, owner_id, self.today(), self._horizon(horizon_days))
            ]

    def alerts(self, owner_id: int) -> schemas.DashboardAlertsResponse:
        with self._lock:
            return schemas.DashboardAlertsResponse(
                low_stock=self.low_stock(owner_id),
                expiring_soon=self.expiring_soon(owner_id),
            )

    def dashboard_stats(self, owner_id: int) -> schemas.DashboardStatsResponse:
        with self._session() as db:
            stats = analytics.get_dashboard_stats(db, owner_id, self.today(), self.expiring_horizon_days)
        return schemas.DashboardStatsResponse(**stats)

    def category_breakdown(self, owner_id: int) -> Dict[str, int]:
        with self._session() as db:
            return analytics.get_category_breakdown(db, owner_id)

    def consistency_report(self, owner_id: int) -> schemas.ConsistencyReport:
        with self._session() as db:
            report = analytics.run_consistency_checks(db, owner_id, self.now())
        return schemas.ConsistencyReport(**report)
