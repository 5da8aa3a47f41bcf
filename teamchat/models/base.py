"""
SQLAlchemy declarative base for team chat models.

Documents of the original chat model (a team with its members, a message with
its reactions) are stored as a parent row plus child rows. The parent carries
a version counter so that a whole aggregate is written with a single
compare-and-swap.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    """Return current UTC time as a naive datetime (the database stores UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """
    Base class for all team chat SQLAlchemy models.
    """

    pass
