import uuid
from datetime import datetime, timezone
from sqlalchemy import String, DateTime, ForeignKey, Boolean, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MAX_FIELD_LENGTH = 191


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    movie_entries: Mapped[list["MovieListEntry"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )


class MovieListEntry(Base):
    __tablename__ = "movie_list"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_movie_list_user_movie"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    movie_id: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    title: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    poster: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="", nullable=False)
    overview: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="", nullable=False)
    release_date: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="", nullable=False)
    rating: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="N/A", nullable=False)
    votes: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="0", nullable=False)
    genre_ids: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="[]", nullable=False)
    description: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), default="", nullable=False)
    category: Mapped[str] = mapped_column(String(MAX_FIELD_LENGTH), nullable=False)
    source: Mapped[str] = mapped_column(String, default="tmdb", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="movie_entries")
