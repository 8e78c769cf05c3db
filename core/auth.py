import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException

from core.config import settings

logger = logging.getLogger(__name__)

ADMIN_SECRET_HEADER = "X-Admin-Secret"


def verify_admin_secret(credential: Optional[str], admin_secret: Optional[str]) -> bool:
    """Constant-time check of a presented admin credential.

    With no admin secret configured every credential is rejected.
    """
    if not admin_secret:
        logger.warning("ADMIN_SECRET not configured, rejecting admin request")
        return False
    if not credential:
        return False
    return secrets.compare_digest(credential.encode("utf-8"), admin_secret.encode("utf-8"))


def get_admin_secret() -> Optional[str]:
    """Configured admin shared secret, None when unset."""
    return settings.ADMIN_SECRET


async def get_admin_credential(
    x_admin_secret: Optional[str] = Header(default=None, alias=ADMIN_SECRET_HEADER),
) -> Optional[str]:
    """Raw admin credential from the request headers (may be None)."""
    return x_admin_secret


async def require_admin(
    credential: Optional[str] = Depends(get_admin_credential),
    admin_secret: Optional[str] = Depends(get_admin_secret),
) -> None:
    """Dependency that requires a valid admin shared secret."""
    if not verify_admin_secret(credential, admin_secret):
        raise HTTPException(
            status_code=403,
            detail="Forbidden: Admin access required.",
        )
