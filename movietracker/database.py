from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from .config import DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    # SQLite (local runs, tests) uses its own pool classes without sizing options.
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 5, "max_overflow": 10}


engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    async with async_session() as session:
        yield session


async def init_db():
    from . import models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
        # Tables created before the (user_id, movie_id) constraint existed only had
        # the application-level lookup; add the index so upserts have a conflict target.
        await conn.execute(
            text(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_movie_list_user_movie "
                "ON movie_list (user_id, movie_id)"
            )
        )


async def close_db():
    await engine.dispose()
