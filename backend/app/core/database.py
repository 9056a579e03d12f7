# app/core/database.py
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from app.core.config import DataBaseConfig
from app.models import Base


class DatabaseHelper:
    def __init__(
            self,
            url: str,
            echo: bool = False,
            pool_size: int = 5,
            max_overflow: int = 10,
    ):
        engine_kwargs = {}
        if not url.startswith("sqlite"):
            engine_kwargs = {"pool_size": pool_size, "max_overflow": max_overflow}
        self.engine: AsyncEngine = create_async_engine(url=url, echo=echo, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DataBaseConfig) -> "DatabaseHelper":
        return cls(
            url=config.DATABASE_URL,
            echo=config.DB_ECHO,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
        )

    async def create_tables(self) -> None:
        """Create all tables; used by tests and local setups without alembic"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        """Close every pooled connection"""
        await self.engine.dispose()

    async def session_getter(self) -> AsyncGenerator[AsyncSession, None]:
        """Session generator for FastAPI dependencies"""
        async with self.session_factory() as session:
            yield session
