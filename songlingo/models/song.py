"""Read-only SQLAlchemy models for the song catalogue.

Songs and lyrics are written by the catalogue import path; this service only
reads them to build exercise prompts.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from songlingo.models.base import Base


class Song(Base):
    __tablename__ = "songs"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    language = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    lyrics = relationship(
        "Lyric",
        back_populates="song",
        order_by="Lyric.start_time",
        lazy="selectin",
    )


class Lyric(Base):
    __tablename__ = "lyrics"

    id = Column(String(64), primary_key=True)
    song_id = Column(
        ForeignKey(Song.id, ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    start_time = Column(Float, nullable=True)
    end_time = Column(Float, nullable=True)

    song = relationship("Song", back_populates="lyrics")
