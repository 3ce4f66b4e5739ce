"""
Domain login tracking.

Records which domain families each user has signed in to, for audit and
analytics. One row per (user, domain) pair; rows are upserted and never
deleted here.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Set

from sqlalchemy import DateTime, Integer, String, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Mapped, mapped_column

from .connection import Base, get_session_factory

logger = logging.getLogger(__name__)

# Strong references to in-flight writes so they are not garbage collected.
_pending_writes: Set["asyncio.Task[None]"] = set()


class DomainLogin(Base):
    __tablename__ = "domain_logins"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    domain: Mapped[str] = mapped_column(String, primary_key=True)
    first_login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    login_count: Mapped[int] = mapped_column(Integer, server_default="1", nullable=False)

    def __repr__(self) -> str:
        return f"<DomainLogin {self.user_id} @ {self.domain} x{self.login_count}>"


def build_upsert(user_id: str, domain: str):
    """
    INSERT a first login, or bump last_login_at and login_count on conflict.
    """
    stmt = insert(DomainLogin).values(
        user_id=user_id,
        domain=domain,
        last_login_at=func.now(),
    )
    return stmt.on_conflict_do_update(
        index_elements=[DomainLogin.user_id, DomainLogin.domain],
        set_={
            "last_login_at": func.now(),
            "login_count": DomainLogin.login_count + 1,
        },
    )


async def upsert_domain_login(user_id: str, domain: str) -> None:
    """
    Record or update a user's login for a domain family.

    Args:
        user_id: Provider user id (token subject)
        domain: Domain family the user signed in on
    """
    async with get_session_factory()() as session:
        await session.execute(build_upsert(user_id, domain))
        await session.commit()


async def list_domain_logins(user_id: str) -> List[DomainLogin]:
    """
    Get every domain family a user has signed in to, most recent first.
    """
    async with get_session_factory()() as session:
        result = await session.execute(
            select(DomainLogin)
            .where(DomainLogin.user_id == user_id)
            .order_by(DomainLogin.last_login_at.desc())
        )
        return list(result.scalars().all())


def _log_write_failure(task: "asyncio.Task[None]") -> None:
    _pending_writes.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Failed to record domain login: %s", exc, exc_info=exc)


def record_domain_login(user_id: str, domain: str) -> None:
    """
    Schedule a domain login upsert without waiting for it.

    Must be called from a running event loop. Failures are logged and never
    reach the caller.
    """
    task = asyncio.get_running_loop().create_task(upsert_domain_login(user_id, domain))
    _pending_writes.add(task)
    task.add_done_callback(_log_write_failure)
