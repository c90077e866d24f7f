# src/marron_forum/models/sequence.py
"""Named monotonic counters."""

from sqlalchemy import DDL, BigInteger, String, event
from sqlalchemy.orm import Mapped, mapped_column

from marron_forum.db.session import Base

USER_NUMBER_SEQUENCE = "user_number"


class CounterSequence(Base):
    """A single row per named counter, advanced with an atomic UPDATE.

    Unlike a database SEQUENCE the increment belongs to the surrounding
    transaction, so a rolled back registration leaves no gap.
    """

    __tablename__ = "counter_sequence"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


# Tables built with create_all start with the same seeded row as the migration.
event.listen(
    CounterSequence.__table__,
    "after_create",
    DDL(f"INSERT INTO counter_sequence (name, value) VALUES ('{USER_NUMBER_SEQUENCE}', 0)"),
)
