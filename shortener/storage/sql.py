"""PostgreSQL-backed link and click stores.

This module persists links and clicks through SQLAlchemy's asyncio extension
(asyncpg driver) and implements the same contracts as the in-memory stores,
so the services can switch backends without changes.

Flow Diagram — Link Insert
==========================
::
    ┌─────────────┐
    │ create(link)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Open session│
    │ (per call)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT +    │
    │ COMMIT      │
    └──────┬──────┘
    OK?   │
    ┌─────┴──────────────┐
    │ YES                │ IntegrityError
    ▼                    ▼
┌─────────┐      ┌─────────────────┐
│ Return  │      │ Read constraint │
│ Link+id │      │ name → raise    │
└─────────┘      │ ConstraintViol. │
                 └─────────────────┘

Key Behaviours
===============
- Each call opens a short-lived session from the pooled engine; there is no
  session shared across requests or with the background click writer.
- The unique indexes are the arbiter of code uniqueness; a violation is
  reported with the constraint's name (links_code_key / links_custom_alias_key).
- Any other SQLAlchemy or socket failure surfaces as TransientError.
- Day and month buckets are computed in UTC by the database.

Classes:
    SqlLinkStore:  LinkStore over the links table.
    SqlClickStore:  ClickStore over the clicks table.
"""

import contextlib
import logging
from collections.abc import AsyncIterator

from sqlalchemy import desc, exists, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.contracts import ClickStore, LinkStore
from shortener.errors import ALIAS_CONSTRAINT, CODE_CONSTRAINT, ConstraintViolationError, TransientError
from shortener.models import ClickRecord, LinkRecord
from shortener.schemas import Click, Link

__all__ = ["SqlLinkStore", "SqlClickStore", "violated_constraint"]

logger = logging.getLogger(__name__)


def violated_constraint(exc: IntegrityError) -> str | None:
    """Name of the constraint behind an IntegrityError, when it can be determined.

    asyncpg exposes ``constraint_name`` on its exception, which SQLAlchemy's
    adapter keeps as the ``__cause__`` of ``exc.orig``. Other drivers only put
    the name in the message.
    """
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name

    message = str(orig)
    for name in (CODE_CONSTRAINT, ALIAS_CONSTRAINT):
        if name in message:
            return name
    return None


class _SqlStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                yield session
        except IntegrityError as exc:
            constraint = violated_constraint(exc)
            logger.debug("Integrity error on constraint %s", constraint)
            raise ConstraintViolationError(constraint) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise TransientError(f"database error: {exc}") from exc


class SqlLinkStore(_SqlStore, LinkStore):
    async def create(self, link: Link) -> Link:
        record = LinkRecord(
            code=link.code,
            original_url=link.original_url,
            custom_alias=link.custom_alias,
            created_at=link.created_at,
        )
        async with self._session() as session:
            session.add(record)
            await session.commit()
        return Link.from_record(record)

    async def get_by_code(self, code: str) -> Link | None:
        async with self._session() as session:
            record = await session.scalar(select(LinkRecord).where(LinkRecord.code == code))
        return Link.from_record(record) if record else None

    async def get_by_alias(self, alias: str) -> Link | None:
        async with self._session() as session:
            record = await session.scalar(select(LinkRecord).where(LinkRecord.custom_alias == alias))
        return Link.from_record(record) if record else None

    async def exists(self, code: str) -> bool:
        query = select(exists().where(or_(LinkRecord.code == code, LinkRecord.custom_alias == code)))
        async with self._session() as session:
            return bool(await session.scalar(query))


class SqlClickStore(_SqlStore, ClickStore):
    async def create(self, click: Click) -> Click:
        record = ClickRecord(
            link_id=click.link_id,
            user_agent=click.user_agent,
            ip_address=click.ip_address,
            clicked_at=click.clicked_at,
        )
        async with self._session() as session:
            session.add(record)
            await session.commit()
        return Click.model_validate(record)

    async def count_by_link(self, link_id: int) -> int:
        query = select(func.count()).select_from(ClickRecord).where(ClickRecord.link_id == link_id)
        async with self._session() as session:
            return int(await session.scalar(query) or 0)

    async def group_by_day(self, link_id: int) -> list[tuple[str, int]]:
        return await self._group_by_format(link_id, "YYYY-MM-DD")

    async def group_by_month(self, link_id: int) -> list[tuple[str, int]]:
        return await self._group_by_format(link_id, "YYYY-MM")

    async def _group_by_format(self, link_id: int, pattern: str) -> list[tuple[str, int]]:
        bucket = func.to_char(func.timezone("UTC", ClickRecord.clicked_at), pattern).label("bucket")
        query = (
            select(bucket, func.count().label("count"))
            .where(ClickRecord.link_id == link_id)
            .group_by("bucket")
            .order_by(desc("bucket"))
        )
        async with self._session() as session:
            rows = (await session.execute(query)).all()
        return [(row.bucket, int(row.count)) for row in rows]

    async def group_by_user_agent(self, link_id: int) -> list[tuple[str, int]]:
        query = (
            select(ClickRecord.user_agent, func.count().label("count"))
            .where(
                ClickRecord.link_id == link_id,
                ClickRecord.user_agent.is_not(None),
            )
            .group_by(ClickRecord.user_agent)
            .order_by(desc("count"))
        )
        async with self._session() as session:
            rows = (await session.execute(query)).all()
        return [(row.user_agent, int(row.count)) for row in rows]

    async def recent_by_link(self, link_id: int, limit: int) -> list[Click]:
        query = (
            select(ClickRecord)
            .where(ClickRecord.link_id == link_id)
            .order_by(ClickRecord.clicked_at.desc(), ClickRecord.id.desc())
            .limit(limit)
        )
        async with self._session() as session:
            records = (await session.scalars(query)).all()
        return [Click.model_validate(record) for record in records]
