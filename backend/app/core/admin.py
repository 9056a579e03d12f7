# app/core/admin.py
from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from fastapi import Request
from app.core.config import Settings
from app.core.database import DatabaseHelper
from app.core.exceptions import TokenError
from app.core.security import TokenService, verify_password
from app.repositories.user_repository import UserRepository
from app.models import AuditLog, File, RefreshToken, User, UserRole

# 1. Admin panel authentication
class AdminAuth(AuthenticationBackend):
    """Only ADMIN users get in; the session keeps a short-lived access token"""

    def __init__(self, secret_key: str, db: DatabaseHelper, token_service: TokenService):
        super().__init__(secret_key=secret_key)
        self.db = db
        self.token_service = token_service

    async def login(self, request: Request) -> bool:
        form = await request.form()
        email = str(form.get("username", "")).strip().lower()
        password = str(form.get("password", ""))

        async with self.db.session_factory() as session:
            user = await UserRepository(session).get_by_email(email)

        if user and user.is_active and user.role == UserRole.ADMIN.value and verify_password(password, user.password_hash):
            token = self.token_service.generate_access_token(user.id, user.email, user.role)
            request.session.update({"token": token})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        token = request.session.get("token")
        if not token:
            return False
        try:
            payload = self.token_service.verify_access_token(token)
        except TokenError:
            return False
        return payload.get("role") == UserRole.ADMIN.value

# 2. Model views

class UserAdmin(ModelView, model=User):
    column_list = [User.id, User.email, User.role, User.is_active, User.is_email_verified, User.created_at]
    column_searchable_list = [User.email]
    column_sortable_list = [User.id, User.created_at]
    form_excluded_columns = [
        User.password_hash,
        User.email_verification_token_hash,
        User.password_reset_token_hash,
        User.refresh_tokens,
        User.files,
    ]
    icon = "fa-solid fa-user"

class FileAdmin(ModelView, model=File):
    column_list = [File.id, File.original_filename, File.category, File.visibility, File.size, File.access_count, File.created_at]
    column_searchable_list = [File.original_filename]
    column_sortable_list = [File.size, File.created_at, File.access_count]
    can_create = False
    icon = "fa-solid fa-file"

class RefreshTokenAdmin(ModelView, model=RefreshToken):
    column_list = [RefreshToken.id, RefreshToken.user_id, RefreshToken.expires_at, RefreshToken.revoked_at, RefreshToken.ip_address]
    column_details_exclude_list = [RefreshToken.token_hash]
    can_create = False
    can_edit = False
    icon = "fa-solid fa-key"

class AuditLogAdmin(ModelView, model=AuditLog):
    column_list = [AuditLog.id, AuditLog.action, AuditLog.entity, AuditLog.user_id, AuditLog.ip_address, AuditLog.created_at]
    column_searchable_list = [AuditLog.action]
    column_sortable_list = [AuditLog.created_at]
    can_create = False
    can_edit = False
    can_delete = False
    icon = "fa-solid fa-clipboard-list"

# 3. Setup
def setup_admin(app, db: DatabaseHelper, settings: Settings, token_service: TokenService) -> Admin:
    authentication_backend = AdminAuth(
        secret_key=settings.security.session_secret,
        db=db,
        token_service=token_service,
    )
    admin = Admin(app, db.engine, authentication_backend=authentication_backend, title=f"{settings.app_name} Admin")

    admin.add_view(UserAdmin)
    admin.add_view(FileAdmin)
    admin.add_view(RefreshTokenAdmin)
    admin.add_view(AuditLogAdmin)
    return admin
