"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession (no sync, no raw SQL).
  • Stores receive async_session_factory and open one short-lived
    session per operation; request handlers never hold a session.
  • Parallel queries (page + COUNT) each get their own session from
    async_session_factory — one AsyncSession is never shared across tasks.
  • The declarative Base is shared across all models so Alembic can
    auto-detect schema changes from a single metadata object.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from romapi.core.config import settings

# ── Engine ──────────────────────────────────────────────────
# pool_pre_ping: drop stale connections before reuse
# echo: SQL logging — only in debug mode
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# ── Session factory ─────────────────────────────────────────
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # avoid lazy-load issues after commit
)


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""
