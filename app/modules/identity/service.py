"""Claims resolution from bearer tokens."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from app.core.enums import RoleEnum
from app.core.security import bearer_scheme, decode_token
from app.modules.identity.schemas import Claims


def _parse_uuid_list(values: object) -> frozenset[UUID]:
    if not values:
        return frozenset()
    if not isinstance(values, list | tuple):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    try:
        return frozenset(UUID(str(value)) for value in values)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims") from exc


def claims_from_token(token: str) -> Claims:
    """Build explicit claims object from a decoded access token."""
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token subject is missing")

    try:
        user_id = UUID(str(subject))
        role = RoleEnum(payload.get("role", RoleEnum.VISITOR))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims") from exc

    return Claims(
        user_id=user_id,
        role=role,
        studio_ids=_parse_uuid_list(payload.get("studio_ids")),
        sub_profile_ids=_parse_uuid_list(payload.get("sub_profile_ids")),
    )


async def get_optional_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Claims | None:
    """Resolve claims when a bearer token is present."""
    if credentials is None:
        return None
    return claims_from_token(credentials.credentials)


async def get_current_claims(claims: Claims | None = Depends(get_optional_claims)) -> Claims:
    """Resolve claims of the authenticated caller."""
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return claims
