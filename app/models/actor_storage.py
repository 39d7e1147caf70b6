# app/models/actor_storage.py
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.db.base import Base


class ActorRecord(Base):
    """
    One key/value entry in the durable storage of a single actor instance.

    Values are JSON documents serialized to text. Entries of different actors
    never interact; `actor_name` scopes every read and write.
    """

    __tablename__ = "actor_storage"

    id = Column(Integer, primary_key=True, index=True)

    actor_name = Column(String(64), nullable=False, index=True)
    key = Column(String(128), nullable=False)
    value = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "actor_name",
            "key",
            name="uq_actor_storage_actor_key",
        ),
    )

    def __repr__(self) -> str:
        return f"<ActorRecord actor={self.actor_name} key={self.key}>"


class ActorAlarm(Base):
    """
    The single pending wake-up timer of an actor instance.

    Setting a new alarm overwrites the row; firing or deleting removes it.
    """

    __tablename__ = "actor_alarms"

    actor_name = Column(String(64), primary_key=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ActorAlarm actor={self.actor_name} at={self.scheduled_at}>"
