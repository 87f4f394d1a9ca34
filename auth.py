"""
Identity handed over by the external sign-in provider.

The provider (not this service) authenticates the user and forwards the
opaque user id and email as request headers. Admin rights come from the
admin_roles collection keyed by that id.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

import databases_sql

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    uid: str
    email: Optional[str] = None


def optional_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Optional[Identity]:
    if not x_user_id:
        return None
    return Identity(uid=x_user_id, email=x_user_email)


def current_identity(identity: Optional[Identity] = Depends(optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Please log in to continue")
    return identity


def require_admin(identity: Identity = Depends(current_identity)) -> Identity:
    if not databases_sql.is_admin(identity.uid):
        logger.warning("User %s denied admin access", identity.uid)
        raise HTTPException(status_code=403, detail="Access Denied: You do not have administrator privileges.")
    return identity
