"""Process-wide handles (built once in main) and guarded auth dependencies."""
from fastapi import Depends, Request

from ...domain.entities import User
from ...domain.errors import RateLimited, RequestDenied
from ...infrastructure.payments import PaymentGatewayProtocol
from ...infrastructure.protection import Decision, RequestGuard
from ...infrastructure.storage import StorageAdapterProtocol
from .authz import require_admin, require_user


def get_guard(request: Request) -> RequestGuard:
    return request.app.state.guard

def get_payments(request: Request) -> PaymentGatewayProtocol:
    return request.app.state.payments

def get_storage(request: Request) -> StorageAdapterProtocol:
    return request.app.state.storage


def enforce(decision: Decision) -> None:
    if decision.is_denied():
        if decision.is_rate_limit():
            raise RateLimited("You have been blocked due to rate limiting")
        raise RequestDenied("Request denied")


def protected_admin(
    request: Request,
    claims: dict = Depends(require_admin),
    guard: RequestGuard = Depends(get_guard),
) -> dict:
    enforce(guard.protect(request, fingerprint=str(claims["uid"])))
    return claims


def protected_user(
    request: Request,
    user: User = Depends(require_user),
    guard: RequestGuard = Depends(get_guard),
) -> User:
    enforce(guard.protect(request, fingerprint=str(user.id)))
    return user
