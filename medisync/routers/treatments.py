# medisync/routers/treatments.py
from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List

from .. import schemas, security
from ..store import ClinicStore

router = APIRouter(
    tags=["Treatment History"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)

PLACEHOLDER_PHOTO_URL = "https://via.placeholder.com/400x300/0066cc/ffffff?text=Treatment+Photo+{index}"


@router.get("/patients/{patient_id}/treatments", response_model=List[schemas.TreatmentHistory])
def get_patient_treatments(
    patient_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    """
    Treatment history for one of the caller's patients, most recent first.
    """
    with store.locked():
        if store.get_patient(patient_id, owner_id) is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        return store.list_treatments(patient_id, owner_id)


@router.post("/patients/{patient_id}/treatments", response_model=schemas.TreatmentHistory, status_code=status.HTTP_201_CREATED)
def create_patient_treatment(
    patient_id: int,
    treatment: schemas.TreatmentHistoryIn,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    """
    Record a treatment. Patient and medication must both belong to the caller;
    the lookups and the insert happen under one store lock.
    """
    with store.locked():
        if store.get_patient(patient_id, owner_id) is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        if store.get_medication(treatment.medication_id, owner_id) is None:
            raise HTTPException(status_code=404, detail="Medication not found")
        payload = schemas.TreatmentHistoryCreate(patient_id=patient_id, **treatment.model_dump())
        return store.create_treatment(owner_id, payload)


@router.post("/treatments/upload-photos", response_model=schemas.PhotoUploadResponse)
def upload_treatment_photos(request: schemas.PhotoUploadRequest):
    """
    Photo storage is not wired up yet; hands back placeholder URLs to attach to a treatment.
    """
    urls = [PLACEHOLDER_PHOTO_URL.format(index=i + 1) for i in range(request.photo_count)]
    return {"photo_urls": urls}


@router.get("/treatments/{treatment_id}", response_model=schemas.TreatmentHistory)
def get_treatment(
    treatment_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    treatment = store.get_treatment(treatment_id, owner_id)
    if treatment is None:
        raise HTTPException(status_code=404, detail="Treatment not found")
    return treatment


@router.patch("/treatments/{treatment_id}", response_model=schemas.TreatmentHistory)
def update_treatment(
    treatment_id: int,
    payload: schemas.TreatmentHistoryUpdate,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    with store.locked():
        changes = payload.changes()
        if "patient_id" in changes and store.get_patient(changes["patient_id"], owner_id) is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        if "medication_id" in changes and store.get_medication(changes["medication_id"], owner_id) is None:
            raise HTTPException(status_code=404, detail="Medication not found")
        updated = store.update_treatment(treatment_id, owner_id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="Treatment not found")
    return updated


@router.delete("/treatments/{treatment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_treatment(
    treatment_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    if not store.delete_treatment(treatment_id, owner_id):
        raise HTTPException(status_code=404, detail="Treatment not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
