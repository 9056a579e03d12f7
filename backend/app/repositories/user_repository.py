# app/repositories/user_repository.py
from typing import Optional
from datetime import datetime
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.security import TimedToken
from app.core.utils import utc_now
from app.models.user import User, UserRole

class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, case-insensitively"""
        stmt = select(User).where(func.lower(User.email) == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        role: UserRole = UserRole.STUDENT,
        verification: Optional[TimedToken] = None,
    ) -> User:
        db_user = User(
            email=email.lower(),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=UserRole(role).value,
            is_active=True,
            is_email_verified=False,
            email_verification_token_hash=verification.token_hash if verification else None,
            email_verification_token_expires_at=verification.expires_at if verification else None,
            created_at=utc_now(),
            updated_at=utc_now(),
        )
        self.session.add(db_user)
        await self.session.commit()
        await self.session.refresh(db_user)
        return db_user

    async def _update(self, user_id: int, **values) -> User:
        stmt = update(User).where(User.id == user_id).values(
            updated_at=utc_now(), **values
        ).returning(User)
        result = await self.session.execute(stmt)
        user = result.scalar_one()
        await self.session.commit()
        return user

    async def update_last_login(self, user_id: int) -> User:
        return await self._update(user_id, last_login_at=utc_now())

    async def get_by_verification_hash(self, token_hash: str, now: datetime) -> Optional[User]:
        """User whose pending email verification matches and has not expired"""
        stmt = select(User).where(
            User.email_verification_token_hash == token_hash,
            User.email_verification_token_expires_at > now,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_email_verified(self, user_id: int) -> User:
        return await self._update(
            user_id,
            is_email_verified=True,
            email_verified_at=utc_now(),
            email_verification_token_hash=None,
            email_verification_token_expires_at=None,
        )

    async def set_password_reset(self, user_id: int, token: TimedToken) -> User:
        return await self._update(
            user_id,
            password_reset_token_hash=token.token_hash,
            password_reset_token_expires_at=token.expires_at,
        )

    async def get_by_reset_hash(self, token_hash: str, now: datetime) -> Optional[User]:
        stmt = select(User).where(
            User.password_reset_token_hash == token_hash,
            User.password_reset_token_expires_at > now,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_password(self, user_id: int, new_password_hash: str) -> User:
        """Store a new password hash and consume the reset token"""
        return await self._update(
            user_id,
            password_hash=new_password_hash,
            password_reset_token_hash=None,
            password_reset_token_expires_at=None,
        )
