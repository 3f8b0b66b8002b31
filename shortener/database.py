"""Database engine and session management for the link shortener.

This module provides SQLAlchemy async engine setup, session factories,
and database lifecycle operations using PostgreSQL as the backend.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │ ServiceMgr  │
    │ initialize()│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_     │
    │ engine()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init_db()    │
    │ create_all  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Stores open │
    │ a session   │
    │ per call    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ close_db()   │
    │ (shutdown)  │
    └─────────────┘

How to Use
===========
**Step 1 — Initialize on startup**::
    engine = create_engine(settings)
    await init_db(engine)  # Creates tables

**Step 2 — Hand a session factory to the stores**::
    sessions = create_session_factory(engine)
    links = SqlLinkStore(sessions)

**Step 3 — Cleanup on shutdown**::
    await close_db(engine)

Key Behaviours
===============
- Connection pooling is configured for production workloads.
- Tables are created automatically on application startup.
- Sessions never expire attributes on commit, so returned rows stay readable.
- Engine is properly disposed on application shutdown.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Builds the pooled async engine from settings.
    create_session_factory():  Session factory bound to an engine.
    init_db():  Creates all tables on startup.
    ping_db():  Health probe.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import Settings

__all__ = ["Base", "create_engine", "create_session_factory", "init_db", "ping_db", "close_db"]


class Base(DeclarativeBase):
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Importing the models registers their tables on Base.metadata.
    from shortener import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_db(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
