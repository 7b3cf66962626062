import asyncio
import uuid
from datetime import datetime, timezone

from movietracker.routes_movies import _insert_entry_statement


def _values(user_id: uuid.UUID, category: str, when: datetime) -> dict:
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "movie_id": "550",
        "title": "Fight Club",
        "category": category,
        "created_at": when,
        "updated_at": when,
    }


def test_conflicting_insert_updates_the_existing_row(session_factory, make_user, stored_entries):
    user = make_user()
    first_at = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    second_at = datetime(2026, 1, 2, 12, 0, tzinfo=timezone.utc)

    async def _insert(values: dict):
        async with session_factory() as session:
            entry = (
                await session.scalars(
                    _insert_entry_statement(session, values),
                    execution_options={"populate_existing": True},
                )
            ).one()
            await session.commit()
            return entry.id, entry.category, entry.title

    first = asyncio.run(_insert(_values(user.id, "watching", first_at)))
    second_values = _values(user.id, "will-watch", second_at)
    second_values["title"] = "Ignored on conflict"
    second = asyncio.run(_insert(second_values))

    assert first[0] == second[0]
    assert second[1] == "will-watch"
    assert second[2] == "Fight Club"

    rows = stored_entries(user.id)
    assert len(rows) == 1
    assert rows[0].category == "will-watch"
    assert rows[0].updated_at.replace(tzinfo=timezone.utc) == second_at
