"""FastAPI dependencies: the service container and the calling user."""

from fastapi import Depends, Header, HTTPException, Request

from checkout.collaborators import AuthContext, StaticAuthContext
from checkout.container import CheckoutServices


def get_services(request: Request) -> CheckoutServices:
    return request.app.state.services


def get_auth_context(x_user_id: str | None = Header(default=None)) -> AuthContext:
    """Development auth: the caller names itself in ``X-User-Id``.

    Deployments replace this through ``app.dependency_overrides``.
    """
    return StaticAuthContext(x_user_id or None)


def require_user(auth: AuthContext = Depends(get_auth_context)) -> str:
    user_id = auth.current_user_id()
    if not user_id:
        raise HTTPException(status_code=401, detail={"code": "unauthenticated", "message": "Sign in required"})
    return user_id
