# medisync/routers/medications.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional

from .. import schemas, security
from ..models import MedicationCategory, StockStatus
from ..store import ClinicStore

router = APIRouter(
    tags=["Medications"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)

@router.get("/medications", response_model=List[schemas.Medication])
def read_all_medications(
    category: Optional[MedicationCategory] = None,
    stock_status: Optional[StockStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    """
    Inventory for the caller, newest first, optionally narrowed by category,
    stock status or a name/brand/category search.
    """
    return store.list_medications(owner_id, category=category, status=stock_status, search=search)

@router.get("/medications/{medication_id}", response_model=schemas.Medication)
def read_medication(
    medication_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    medication = store.get_medication(medication_id, owner_id)
    if medication is None:
        raise HTTPException(status_code=404, detail="Medication not found")
    return medication

@router.post("/medications", response_model=schemas.Medication, status_code=status.HTTP_201_CREATED)
def create_new_medication(
    medication: schemas.MedicationCreate,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    return store.create_medication(owner_id, medication)

@router.put("/medications/{medication_id}", response_model=schemas.Medication)
def update_medication(
    medication_id: int,
    payload: schemas.MedicationUpdate,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    updated = store.update_medication(medication_id, owner_id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="Medication not found")
    return updated

@router.delete("/medications/{medication_id}", response_model=schemas.MessageResponse)
def delete_medication(
    medication_id: int,
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    if not store.delete_medication(medication_id, owner_id):
        raise HTTPException(status_code=404, detail="Medication not found")
    return {"message": "Medication deleted successfully"}
