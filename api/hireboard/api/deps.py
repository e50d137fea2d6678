from fastapi import Depends, HTTPException, status

from hireboard.api.errors import to_http_exception
from hireboard.core.auth import Principal, parse_role
from hireboard.core.security import get_principal
from hireboard.services.errors import RepositoryError
from hireboard.services.repository import get_repository


async def get_actor(
    principal: Principal = Depends(get_principal),
    repository=Depends(get_repository),
) -> Principal:
    """Sync the resolved identity into the directory and return it with its stored role."""
    try:
        user = await repository.ensure_user(principal=principal)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc

    role = parse_role(user.get("role"))
    if role is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid user role")

    return Principal(
        user_id=principal.user_id,
        role=role,
        email=principal.email or user.get("email"),
        name=user.get("name") or principal.name,
    )
