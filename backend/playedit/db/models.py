"""
SQLAlchemy ORM models.

Column names match the production schema (user_games.rank_position,
platform_played, ...). Types are the generic SQLAlchemy ones so the same
metadata runs on Postgres and on SQLite in tests; JSON columns become
JSONB on Postgres.

The ranking engine reaches these tables through the record store
(playedit.store.sql), never through ORM relationships.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


JSONVariant = JSON().with_variant(JSONB(), "postgresql")


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class User(Base):
    """
    List owner.

    Profile, auth and social columns belong to the account service; the
    ranking engine only needs to know the owner exists.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(32), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class UserGame(Base):
    """
    One ranked game in one owner's list.

    rank_position — dense 1-based position. For every user_id the values
                    are exactly 1..N. Shifts are written row by row, so
                    there is intentionally no unique constraint on
                    (user_id, rank_position); the repair pass restores
                    density after an interrupted shift.
    """
    __tablename__ = "user_games"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    game_id = Column(String(64), nullable=False)
    rank_position = Column(Integer, nullable=False)
    platform_played = Column(JSONVariant, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    logged_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        # A user can only rank each game once
        UniqueConstraint("user_id", "game_id", name="uq_user_game"),
        CheckConstraint("rank_position >= 1", name="chk_rank_position_positive"),
        # Covering index: a user's full sorted list in one index scan
        Index("idx_user_games_user_rank", "user_id", "rank_position"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserGame user={self.user_id} game={self.game_id} "
            f"pos={self.rank_position}>"
        )
