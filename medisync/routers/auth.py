# medisync/routers/auth.py
from fastapi import APIRouter, Depends

from .. import schemas, security

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.get("/me", response_model=schemas.User)
def read_current_user(current_user: schemas.User = Depends(security.get_current_user)):
    """Profile of the calling user; the password hash is never serialised."""
    return current_user
