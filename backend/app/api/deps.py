# app/api/deps.py
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import TokenService
from app.core.signing import URLSigner
from app.models.user import User, UserRole
from app.services.audit import RequestContext
from app.services.auth_service import AuthService
from app.services.file_service import FileService
from app.services.hls import HlsPackager
from app.services.mailer import Mailer
from app.services.storage import LocalFileStorage
from app.services.upload_service import UploadIngestor

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async for session in request.app.state.db.session_getter():
        yield session


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_signer(request: Request) -> URLSigner:
    return request.app.state.signer


def get_storage(request: Request) -> LocalFileStorage:
    return request.app.state.storage


def get_ingestor(request: Request) -> UploadIngestor:
    return request.app.state.ingestor


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_hls_packager(request: Request) -> HlsPackager:
    return request.app.state.hls


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_auth_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> AuthService:
    state = request.app.state
    return AuthService(session, state.token_service, state.settings.security, state.mailer)


def get_file_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> FileService:
    state = request.app.state
    return FileService(session, state.storage, state.validator, state.signer)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return await auth_service.get_current_user(credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    """The caller when a valid bearer token is present; anonymous otherwise"""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await auth_service.get_current_user(credentials.credentials)
    except AuthenticationError:
        return None


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError("Insufficient permissions")
        return current_user

    return dependency
