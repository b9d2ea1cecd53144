# tests/test_store.py
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone, timedelta

import pytest
from pydantic import ValidationError

from medisync import schemas
from medisync.crud import DuplicateUserError, InvalidFieldError, ReferenceConflictError, StoreError
from medisync.models import DeletePolicy
from medisync.store import ClinicStore

DEMO_OWNER = 1
OTHER_OWNER = 2


def _medication(**overrides):
    data = {
        "name": "Cetirizine 10mg",
        "brand": "Zyrtec",
        "category": "other",
        "quantity": 40,
        "min_stock": 10,
        "expiration_date": "2026-01-31",
    }
    data.update(overrides)
    return data


# ==================== SEED ====================

def test_seed_data_matches_demo_tenant(store):
    assert len(store.list_patients(DEMO_OWNER)) == 4
    assert len(store.list_medications(DEMO_OWNER)) == 5
    assert store.list_patients(OTHER_OWNER) == []
    assert store.list_medications(OTHER_OWNER) == []
    assert store.list_treatments(1, DEMO_OWNER) == []


# ==================== USERS ====================

def test_user_lookups(store):
    assert store.get_user(1).username == "demo_doctor"
    assert store.get_user_by_email("admin@medisync.com").id == 2
    assert store.get_user_by_username("admin_user").email == "admin@medisync.com"
    assert store.get_user(99) is None
    assert store.get_user_by_email("nobody@medisync.com") is None


def test_create_user_allocates_next_id(store, clock):
    user = store.create_user(schemas.UserCreate(
        username="dr_new", email="new@medisync.com", name="Dr. New", password_hash="hashed",
    ))
    assert user.id == 3
    assert user.created_at == clock.current
    assert store.get_user_by_email("new@medisync.com").id == 3
    assert "password_hash" not in user.model_dump()


def test_duplicate_user_email_is_rejected(store):
    with pytest.raises(DuplicateUserError):
        store.create_user({
            "username": "someone_else", "email": "demo@medisync.com", "name": "Copy", "password_hash": "x",
        })
    # the failed insert must not poison the store
    assert store.get_user_by_username("someone_else") is None
    assert store.create_user({
        "username": "someone_else", "email": "else@medisync.com", "name": "Else", "password_hash": "x",
    }).id == 4



def test_user_missing_required_field_is_not_a_duplicate(store):
    with pytest.raises(StoreError) as excinfo:
        store.create_user({"username": "nameless", "email": "nameless@clinicmail.com", "password_hash": "h"})
    assert not isinstance(excinfo.value, DuplicateUserError)
    assert store.get_user_by_username("nameless") is None


# ==================== SCOPING ====================

def test_records_are_invisible_to_other_tenants(store):
    patient = store.create_patient(OTHER_OWNER, {"name": "Private Patient"})
    medication = store.create_medication(OTHER_OWNER, _medication())

    assert patient.id not in [p.id for p in store.list_patients(DEMO_OWNER)]
    assert medication.id not in [m.id for m in store.list_medications(DEMO_OWNER)]
    assert store.get_patient(patient.id, DEMO_OWNER) is None
    assert store.get_medication(medication.id, DEMO_OWNER) is None
    assert store.update_patient(patient.id, DEMO_OWNER, {"name": "Hijacked"}) is None
    assert store.delete_patient(patient.id, DEMO_OWNER) is False

    assert store.get_patient(patient.id, OTHER_OWNER).name == "Private Patient"


def test_treatments_are_scoped_to_owner(store):
    treatment = store.create_treatment(DEMO_OWNER, {"patient_id": 1, "medication_id": 1, "date": "2024-12-01"})
    assert store.get_treatment(treatment.id, OTHER_OWNER) is None
    assert store.list_treatments(1, OTHER_OWNER) == []
    assert store.delete_treatment(treatment.id, OTHER_OWNER) is False
    assert store.get_treatment(treatment.id, DEMO_OWNER) is not None


# ==================== ORDERING ====================

def test_patients_listed_newest_first(store, clock):
    p1 = store.create_patient(DEMO_OWNER, schemas.PatientCreate(name="Patient One"))
    clock.advance(minutes=1)
    p2 = store.create_patient(DEMO_OWNER, schemas.PatientCreate(name="Patient Two"))

    listed = store.list_patients(DEMO_OWNER)
    assert [p.id for p in listed[:2]] == [p2.id, p1.id]


def test_same_instant_creations_still_list_newest_first(store):
    p1 = store.create_patient(DEMO_OWNER, {"name": "Patient One"})
    p2 = store.create_patient(DEMO_OWNER, {"name": "Patient Two"})
    assert p1.created_at == p2.created_at
    assert [p.id for p in store.list_patients(DEMO_OWNER)] == [p2.id, p1.id, 4, 3, 2, 1]


def test_patient_search(store):
    assert [p.name for p in store.list_patients(DEMO_OWNER, search="sarah")] == ["Sarah Johnson"]
    assert [p.name for p in store.list_patients(DEMO_OWNER, search="0125")] == ["Michael Brown"]
    assert store.list_patients(OTHER_OWNER, search="sarah") == []


# ==================== PARTIAL UPDATE ====================

def test_partial_update_preserves_omitted_fields(store, clock):
    before = store.get_patient(1, DEMO_OWNER)
    clock.advance(hours=2)

    updated = store.update_patient(1, DEMO_OWNER, schemas.PatientUpdate(phone="555-0000"))

    assert updated.phone == "555-0000"
    assert updated.name == before.name
    assert updated.email == before.email
    assert updated.medical_history == before.medical_history
    assert updated.date_of_birth == before.date_of_birth
    assert updated.created_at == before.created_at
    assert updated.updated_at > before.updated_at
    assert store.get_patient(1, DEMO_OWNER).phone == "555-0000"


def test_explicit_null_clears_optional_field(store):
    cleared = store.update_patient(1, DEMO_OWNER, schemas.PatientUpdate(email=None))
    assert cleared.email is None
    assert cleared.phone == "+1-555-0123"


def test_required_field_cannot_be_cleared():
    with pytest.raises(ValidationError):
        schemas.PatientUpdate(name=None)
    with pytest.raises(ValidationError):
        schemas.MedicationUpdate(quantity=None)


def test_patch_schema_accepts_camel_case_keys():
    patch = schemas.PatientUpdate.model_validate({"medicalHistory": "Updated notes"})
    assert patch.changes() == {"medical_history": "Updated notes"}


def test_owner_cannot_be_changed_by_update(store):
    updated = store.update_patient(1, DEMO_OWNER, {"user_id": OTHER_OWNER, "id": 42, "name": "John A. Smith"})
    assert updated.user_id == DEMO_OWNER
    assert updated.id == 1
    assert updated.name == "John A. Smith"
    assert store.get_patient(1, OTHER_OWNER) is None


def test_update_missing_record_returns_none(store):
    assert store.update_patient(999, DEMO_OWNER, {"name": "Ghost"}) is None
    assert store.update_medication(999, DEMO_OWNER, {"quantity": 1}) is None
    assert store.update_treatment(999, DEMO_OWNER, {"notes": "none"}) is None


def test_medication_partial_update(store, clock):
    clock.advance(days=1)
    updated = store.update_medication(4, DEMO_OWNER, schemas.MedicationUpdate(quantity=50))
    assert updated.quantity == 50
    assert updated.min_stock == 10
    assert updated.name == "Amoxicillin 500mg"
    assert updated.expiration_date == date(2025, 5, 30)
    assert updated.updated_at == clock.current


# ==================== DELETE ====================

def test_delete_is_false_when_absent(store):
    assert store.delete_patient(2, DEMO_OWNER) is True
    assert store.delete_patient(2, DEMO_OWNER) is False
    assert store.delete_patient(12345, DEMO_OWNER) is False
    assert store.delete_medication(12345, DEMO_OWNER) is False
    assert store.delete_treatment(12345, DEMO_OWNER) is False


# ==================== DATE NORMALISATION ====================

def test_date_fields_accept_strings_and_values(store):
    from_string = store.create_patient(DEMO_OWNER, {"name": "Str", "date_of_birth": "1992-04-01"})
    from_datetime_string = store.create_medication(DEMO_OWNER, _medication(expiration_date="2025-02-01T00:00:00.000Z"))
    from_value = store.create_patient(DEMO_OWNER, {"name": "Val", "date_of_birth": date(1992, 4, 1)})

    assert from_string.date_of_birth == date(1992, 4, 1)
    assert from_value.date_of_birth == date(1992, 4, 1)
    assert from_datetime_string.expiration_date == date(2025, 2, 1)


def test_invalid_date_is_rejected(store):
    with pytest.raises(InvalidFieldError):
        store.create_patient(DEMO_OWNER, {"name": "Bad", "date_of_birth": "not-a-date"})
    with pytest.raises(InvalidFieldError):
        store.update_medication(1, DEMO_OWNER, {"expiration_date": "2025-13-45"})


def test_store_does_not_revalidate_business_rules(store):
    medication = store.create_medication(DEMO_OWNER, _medication(category="homeopathy", quantity=-3))
    assert medication.category == "homeopathy"
    assert medication.quantity == -3


# ==================== TREATMENT HISTORY ====================

def test_treatment_defaults_and_ordering(store):
    older = store.create_treatment(DEMO_OWNER, schemas.TreatmentHistoryCreate(
        patient_id=1, medication_id=1, date="2024-11-01T08:00:00",
    ))
    newer = store.create_treatment(DEMO_OWNER, {
        "patient_id": 1, "medication_id": 2, "date": "2024-12-05T15:30:00", "photo_urls": ["a.jpg", "b.jpg"],
    })
    store.create_treatment(DEMO_OWNER, {"patient_id": 2, "medication_id": 1, "date": "2024-12-10"})

    assert older.photo_urls == []
    assert older.notes is None
    assert newer.photo_urls == ["a.jpg", "b.jpg"]
    assert [t.id for t in store.list_treatments(1, DEMO_OWNER)] == [newer.id, older.id]


def test_treatment_dates_are_normalised_to_naive_utc(store):
    aware = datetime(2024, 12, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    treatment = store.create_treatment(DEMO_OWNER, {"patient_id": 1, "medication_id": 1, "date": aware})
    assert treatment.date == datetime(2024, 12, 1, 10, 0)

    from_string = store.create_treatment(DEMO_OWNER, {"patient_id": 1, "medication_id": 1, "date": "2024-12-02T09:00:00Z"})
    assert from_string.date == datetime(2024, 12, 2, 9, 0)


def test_treatment_partial_update(store, clock):
    treatment = store.create_treatment(DEMO_OWNER, {
        "patient_id": 1, "medication_id": 1, "date": "2024-12-01T10:00:00", "notes": "First dose", "photo_urls": ["x.jpg"],
    })
    clock.advance(minutes=5)

    updated = store.update_treatment(treatment.id, DEMO_OWNER, schemas.TreatmentHistoryUpdate(date="2024-12-03"))
    assert updated.date == datetime(2024, 12, 3)
    assert updated.notes == "First dose"
    assert updated.photo_urls == ["x.jpg"]
    assert updated.updated_at > treatment.updated_at

    cleared = store.update_treatment(treatment.id, DEMO_OWNER, {"notes": None, "photo_urls": []})
    assert cleared.notes is None
    assert cleared.photo_urls == []


def test_treatments_do_not_validate_references(store):
    # the HTTP boundary checks references; the store accepts what it is given
    treatment = store.create_treatment(DEMO_OWNER, {"patient_id": 777, "medication_id": 888, "date": "2024-12-01"})
    assert treatment.patient_id == 777


# ==================== DELETE POLICIES ====================

def _store_with_treatment(policy, clock):
    store = ClinicStore(clock=clock, delete_policy=policy)
    treatment = store.create_treatment(DEMO_OWNER, {"patient_id": 1, "medication_id": 3, "date": "2024-12-01"})
    return store, treatment


def test_orphan_policy_leaves_treatments_dangling(clock):
    store, treatment = _store_with_treatment(DeletePolicy.orphan, clock)
    try:
        assert store.delete_patient(1, DEMO_OWNER) is True
        assert store.delete_medication(3, DEMO_OWNER) is True
        assert store.get_treatment(treatment.id, DEMO_OWNER) is not None

        report = store.consistency_report(DEMO_OWNER)
        assert [o.treatment_id for o in report.orphaned_treatments] == [treatment.id]
        assert "patient 1" in report.orphaned_treatments[0].issue
        assert "medication 3" in report.orphaned_treatments[0].issue
    finally:
        store.close()


def test_cascade_policy_removes_referencing_treatments(clock):
    store, treatment = _store_with_treatment("cascade", clock)
    try:
        kept = store.create_treatment(DEMO_OWNER, {"patient_id": 2, "medication_id": 1, "date": "2024-12-02"})
        assert store.delete_patient(1, DEMO_OWNER) is True
        assert store.get_treatment(treatment.id, DEMO_OWNER) is None
        assert store.get_treatment(kept.id, DEMO_OWNER) is not None
        assert store.consistency_report(DEMO_OWNER).orphaned_treatments == []
    finally:
        store.close()


def test_restrict_policy_refuses_referenced_delete(clock):
    store, treatment = _store_with_treatment(DeletePolicy.restrict, clock)
    try:
        with pytest.raises(ReferenceConflictError):
            store.delete_medication(3, DEMO_OWNER)
        assert store.get_medication(3, DEMO_OWNER) is not None

        assert store.delete_treatment(treatment.id, DEMO_OWNER) is True
        assert store.delete_medication(3, DEMO_OWNER) is True
        # unreferenced records delete normally
        assert store.delete_patient(4, DEMO_OWNER) is True
    finally:
        store.close()


# ==================== CONCURRENCY ====================

def test_concurrent_inserts_get_distinct_ids(store):
    def create(i):
        return store.create_patient(DEMO_OWNER, {"name": f"Patient {i}"}).id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(create, range(100)))

    assert len(set(ids)) == 100
    assert min(ids) == 5
    assert len(store.list_patients(DEMO_OWNER)) == 104


def test_concurrent_partial_updates_do_not_lose_fields(store):
    def set_phone(i):
        store.update_patient(1, DEMO_OWNER, {"phone": f"555-{i:04d}"})

    def set_history(i):
        store.update_patient(1, DEMO_OWNER, {"medical_history": f"note {i}"})

    with ThreadPoolExecutor(max_workers=8) as pool:
        for i in range(20):
            pool.submit(set_phone, i)
            pool.submit(set_history, i)

    patient = store.get_patient(1, DEMO_OWNER)
    assert patient.phone.startswith("555-")
    assert patient.medical_history.startswith("note ")
    assert patient.name == "John Smith"
