# medisync/routers/health.py
from fastapi import APIRouter, Depends

from .. import schemas, security
from ..store import ClinicStore

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
    dependencies=[Depends(security.get_current_user)],
)

@router.get("/consistency", response_model=schemas.ConsistencyReport)
def check_record_consistency(
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
) -> schemas.ConsistencyReport:
    """
    Lists the caller's treatment records whose patient or medication has been
    deleted. Deletes do not cascade under the default policy, so these are
    expected rather than corrupt; the report is for cleanup.
    """
    return store.consistency_report(owner_id)
