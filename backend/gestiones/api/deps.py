"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header, HTTPException, status

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..services.form_service import FormService
from ..services.request_service import RequestService
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """Use the client's X-Correlation-Id or generate a new one"""
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


def parse_roles(raw: Optional[str]) -> list:
    if not raw:
        return []
    return [role.strip() for role in raw.split(",") if role.strip()]


async def get_current_actor_dep(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_roles: Optional[str] = Header(None, alias="X-User-Roles")
) -> ActorContext:
    """
    Actor identity as forwarded by the authenticating gateway

    Raises:
        HTTPException: 401 if X-User-Id is missing
    """
    if not x_user_id or not x_user_id.strip():
        error = AuthenticationError("X-User-Id header is missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error.to_dict()
        )

    return ActorContext(
        user_id=x_user_id.strip(),
        name=(x_user_name or "").strip() or "Usuario",
        roles=parse_roles(x_user_roles),
    )


def get_form_service() -> FormService:
    return FormService()


def get_request_service() -> RequestService:
    return RequestService()
