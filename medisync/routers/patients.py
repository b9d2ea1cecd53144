# medisync/routers/patients.py
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from .. import schemas, security
from ..store import ClinicStore

router = APIRouter(
    tags=["Patients"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)

@router.get("/patients", response_model=List[schemas.Patient])
def read_all_patients(
    search: Optional[str] = None,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    """
    Retrieve the caller's patients, newest first.
    """
    return store.list_patients(owner_id, search=search)

@router.get("/patients/{patient_id}", response_model=schemas.Patient)
def read_patient_details(
    patient_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    patient = store.get_patient(patient_id, owner_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient

@router.post("/patients", response_model=schemas.Patient, status_code=status.HTTP_201_CREATED)
def create_new_patient(
    patient: schemas.PatientCreate,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    return store.create_patient(owner_id, patient)

@router.put("/patients/{patient_id}", response_model=schemas.Patient)
def update_patient_details(
    patient_id: int,
    payload: schemas.PatientUpdate,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    updated = store.update_patient(patient_id, owner_id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="Patient not found")
    return updated

@router.delete("/patients/{patient_id}", response_model=schemas.MessageResponse)
def delete_patient(
    patient_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    if not store.delete_patient(patient_id, owner_id):
        raise HTTPException(status_code=404, detail="Patient not found")
    return {"message": "Patient deleted successfully"}
