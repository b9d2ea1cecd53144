# medisync/security.py - request dependencies that resolve the store and the calling tenant
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from . import schemas
from .store import ClinicStore

security_logger = logging.getLogger("security")


def get_store(request: Request) -> ClinicStore:
    """The store constructed at startup and attached to the application."""
    return request.app.state.store


def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    store: ClinicStore = Depends(get_store),
) -> schemas.User:
    """Resolve the already-authenticated caller.

    Session handling sits in front of this service; it forwards the user id
    it authenticated in the ``X-User-Id`` header.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )
    if x_user_id is None:
        raise credentials_exception

    user = store.get_user(x_user_id)
    if user is None:
        security_logger.warning(f"Rejected request for unknown user id {x_user_id}")
        raise credentials_exception
    return user


def get_current_owner(current_user: schemas.User = Depends(get_current_user)) -> int:
    """Owner id used to scope every patient, medication and treatment query."""
    return current_user.id
