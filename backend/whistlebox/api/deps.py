from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from whistlebox.core.exceptions import UnauthorizedError
from whistlebox.services.auth import AdminPrincipal, AuthVerifier
from whistlebox.services.complaint_service import ComplaintService

reusable_bearer = HTTPBearer(auto_error=False)


def get_complaint_service(request: Request) -> ComplaintService:
    return request.app.state.complaint_service


def get_auth_verifier(request: Request) -> AuthVerifier:
    return request.app.state.auth_verifier


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer),
    verifier: AuthVerifier = Depends(get_auth_verifier),
) -> AdminPrincipal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("missing bearer credential")
    return await verifier.verify(credentials.credentials)
