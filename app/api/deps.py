"""
API Dependencies

Reusable dependencies for API routes: admin authentication and the
receipt store.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from app.core.exceptions import AuthenticationError
from app.core.security import ADMIN_ROLE, decode_access_token
from app.services.receipt_storage import ReceiptStorage, get_receipt_storage


# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/admin/login", auto_error=False)


async def require_admin(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> str:
    """
    Dependency guarding administrative routes.

    Tokens are self-contained JWTs, so no server-side session table is
    consulted and any instance can validate them.

    Returns:
        str: The admin username from the token.

    Raises:
        AuthenticationError: Missing, invalid, expired or non-admin token.
    """
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(token)
    if payload is None or payload.get("role") != ADMIN_ROLE or not payload.get("sub"):
        raise AuthenticationError("Could not validate credentials")

    return payload["sub"]


def get_storage() -> ReceiptStorage:
    return get_receipt_storage()
