from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from invoice_notifier.settings import settings

class Base(DeclarativeBase):
    pass

def create_engine(url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(url, echo=False, pool_pre_ping=True, **kwargs)

def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

async def create_tables(engine: AsyncEngine) -> None:
    # Import models so they are registered on Base.metadata
    from invoice_notifier.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

engine = create_engine(settings.SQLALCHEMY_DATABASE_URI)

AsyncSessionLocal = create_session_factory(engine)
