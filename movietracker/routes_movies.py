import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .auth import Session, require_session, require_session_user_id, resolve_user_id
from .categories import Category, normalize_category, partition_by_category
from .database import get_db
from .errors import (
    ApiError,
    CreateFailed,
    FetchError,
    InternalError,
    InvalidCategory,
    MissingFields,
    UpdateFailed,
    UserNotFound,
    describe_exception,
)
from .models import MAX_FIELD_LENGTH, MovieListEntry, User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/movies", tags=["movies"])


class AddMovieRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Presence of movie_id/title/category is checked by the handler so that
    # a missing field answers 400 with the submitted values echoed back.
    movie_id: int | str | None = None
    title: str | None = None
    category: str | None = None
    poster: str | None = None
    overview: str | None = None
    release_date: str | None = None
    rating: str | int | float | None = None
    votes: str | int | float | None = None
    genre_ids: Any = None
    description: str | None = None
    source: str | None = None


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _serialize_entry(entry: MovieListEntry) -> dict:
    return {
        "id": str(entry.id),
        "userId": str(entry.user_id),
        "movieId": entry.movie_id,
        "title": entry.title,
        "poster": entry.poster,
        "overview": entry.overview,
        "releaseDate": entry.release_date,
        "rating": entry.rating,
        "votes": entry.votes,
        "genreIds": entry.genre_ids,
        "description": entry.description,
        "category": entry.category,
        "source": entry.source,
        "createdAt": _isoformat(entry.created_at),
        "updatedAt": _isoformat(entry.updated_at),
    }


def _clip(value, default: str = "") -> str:
    if not value:
        value = default
    return str(value)[:MAX_FIELD_LENGTH]


def _resolve_category(label: str) -> str:
    category = normalize_category(label)
    if category is not None:
        return category.value
    if config.ALLOW_UNKNOWN_CATEGORIES:
        logger.warning("Storing unrecognized category %r lower-cased", label)
        return str(label).lower()[:MAX_FIELD_LENGTH]
    raise InvalidCategory(
        details={
            "category": label,
            "allowed": sorted({c.value for c in Category}),
        }
    )


def _new_entry_values(user_id: uuid.UUID, movie_id: str, body: AddMovieRequest, category: str) -> dict:
    now = utcnow()
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "movie_id": movie_id,
        "title": body.title[:MAX_FIELD_LENGTH],
        "poster": _clip(body.poster),
        "category": category,
        "overview": _clip(body.overview),
        "release_date": _clip(body.release_date),
        "rating": _clip(body.rating, "N/A"),
        "votes": _clip(body.votes, "0"),
        "genre_ids": body.genre_ids[:MAX_FIELD_LENGTH] if isinstance(body.genre_ids, str) else "[]",
        "description": _clip(body.description),
        "source": body.source or "tmdb",
        "created_at": now,
        "updated_at": now,
    }


def _insert_entry_statement(db: AsyncSession, values: dict):
    """INSERT returning the stored row; a concurrent insert for the same
    (user_id, movie_id) turns into a category update instead of a duplicate."""
    if db.bind.dialect.name == "postgresql":
        stmt = postgresql_insert(MovieListEntry).values(**values)
    else:
        stmt = sqlite_insert(MovieListEntry).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "movie_id"],
        set_={"category": stmt.excluded.category, "updated_at": stmt.excluded.updated_at},
    )
    return stmt.returning(MovieListEntry)


async def _find_entry(db: AsyncSession, user_id: uuid.UUID, movie_id: str) -> MovieListEntry | None:
    return (
        await db.execute(
            select(MovieListEntry).where(
                MovieListEntry.user_id == user_id,
                MovieListEntry.movie_id == movie_id,
            )
        )
    ).scalars().first()


@router.get("")
async def list_movies(
    user_id: uuid.UUID = Depends(require_session_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        rows = (
            await db.execute(
                select(MovieListEntry).where(MovieListEntry.user_id == user_id)
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to fetch movies for user %s", user_id)
        raise FetchError(internal={"details": str(exc)}) from exc

    try:
        buckets = partition_by_category(rows)
        payload = {name: [_serialize_entry(row) for row in items] for name, items in buckets.items()}
    except Exception as exc:
        logger.exception("Failed to group movies for user %s", user_id)
        raise FetchError(internal={"details": str(exc)}) from exc

    logger.debug(
        "Fetched %d movies for user %s (%s)",
        len(rows),
        user_id,
        ", ".join(f"{name}={len(items)}" for name, items in buckets.items()),
    )
    return payload


async def _save_movie(body: AddMovieRequest, session: Session, db: AsyncSession) -> dict:
    user_id = await resolve_user_id(session, db)

    if not body.movie_id or not body.title or not body.category:
        logger.info("Rejected movie for user %s: missing required fields", user_id)
        raise MissingFields(
            details={"movieId": body.movie_id, "title": body.title, "category": body.category}
        )

    category = _resolve_category(body.category)

    user = await db.get(User, user_id)
    if user is None:
        logger.error("User not found: %s", user_id)
        raise UserNotFound(
            details="The user associated with this session does not exist",
            extra={"userId": str(user_id)},
        )

    movie_id = str(body.movie_id)
    existing = await _find_entry(db, user_id, movie_id)
    if existing:
        try:
            existing.category = category
            existing.updated_at = utcnow()
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to update movie %s for user %s", movie_id, user_id)
            raise UpdateFailed(internal={"details": str(exc)}) from exc
        logger.info("Updated movie %s for user %s -> %s", movie_id, user_id, category)
        return _serialize_entry(existing)

    values = _new_entry_values(user_id, movie_id, body, category)
    try:
        entry = (
            await db.scalars(
                _insert_entry_statement(db, values),
                execution_options={"populate_existing": True},
            )
        ).one()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to create movie %s for user %s", movie_id, user_id)
        diagnostics = describe_exception(exc)
        raise CreateFailed(internal={"details": diagnostics["details"], "code": diagnostics["code"]}) from exc
    logger.info("Added movie %s for user %s -> %s", movie_id, user_id, category)
    return _serialize_entry(entry)


@router.post("")
async def add_movie(
    body: AddMovieRequest,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await _save_movie(body, session, db)
    except ApiError:
        raise
    except Exception as exc:
        logger.exception("Unexpected error while saving movie")
        raise InternalError(internal=describe_exception(exc)) from exc
