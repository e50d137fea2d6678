import logging
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from hireboard.core.auth import Principal, Role, parse_role
from hireboard.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def get_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication requires bearer token",
        )

    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")

    if not settings.identity_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity service is not configured",
        )

    user = await _fetch_identity_user(
        identity_url=settings.identity_url,
        identity_api_key=settings.identity_api_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    return resolve_principal(user)


def resolve_principal(user: dict[str, Any]) -> Principal:
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    role = _resolve_role(user)
    if role is None:
        logger.warning("identity without usable role user_id=%s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="identity has no role")

    email = user.get("email")
    return Principal(
        user_id=user_id,
        role=role,
        email=email if isinstance(email, str) and email else None,
        name=_resolve_name(user),
    )


async def _fetch_identity_user(
    *,
    identity_url: str,
    identity_api_key: str | None,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {"Authorization": f"Bearer {token}"}
    if identity_api_key:
        headers["apikey"] = identity_api_key
    url = f"{identity_url.rstrip('/')}/auth/v1/user"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification failed",
        )

    return response.json()


def _resolve_role(user: dict[str, Any]) -> Role | None:
    # Roles are only trusted from server-controlled metadata.
    app_metadata = user.get("app_metadata")
    if isinstance(app_metadata, dict):
        return parse_role(app_metadata.get("role"))
    return parse_role(user.get("role"))


def _resolve_name(user: dict[str, Any]) -> str | None:
    for key in ("user_metadata", "app_metadata"):
        metadata = user.get(key)
        if isinstance(metadata, dict):
            name = metadata.get("name")
            if isinstance(name, str) and name.strip():
                return name.strip()
    name = user.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None
