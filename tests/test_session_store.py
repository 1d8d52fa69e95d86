import pytest

from sleep_log.classification.schemas import Category, SleepSession
from sleep_log.errors import InvalidObservationError, SessionNotFoundError, SleepLogError
from sleep_log.storage.session_store import SessionRepository

from fixtures import ms, session

pytestmark = pytest.mark.asyncio


@pytest.fixture
def repo(db) -> SessionRepository:
    return SessionRepository(db)


async def test_insert_and_get(repo):
    stored = await repo.insert(session(ms(2024, 6, 3, 22, 30), 8, Category.SLEEP))
    stored.pred_default_ml = False

    await repo.update(stored)
    loaded = await repo.get(stored.id)

    assert loaded == stored
    assert loaded.is_real_sleep is True
    assert loaded.duration_seconds == 8 * 3600


async def test_query_all_newest_first(repo):
    older = await repo.insert(session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP))
    newer = await repo.insert(session(ms(2024, 6, 4, 14, 0), 1, Category.NAP))

    assert [s.id for s in await repo.query_all()] == [newer.id, older.id]
    assert [s.id for s in await repo.query_all(limit=1)] == [newer.id]
    assert await repo.count() == 2


async def test_update_unknown_session(repo):
    with pytest.raises(SessionNotFoundError):
        await repo.update(session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP))


async def test_delete(repo):
    stored = await repo.insert(session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP))
    await repo.delete(stored.id)

    assert await repo.get(stored.id) is None
    with pytest.raises(SessionNotFoundError):
        await repo.delete(stored.id)


async def test_resolve_id(repo):
    stored = await repo.insert(session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP))
    assert await repo.resolve_id(stored.id[:8]) == stored.id
    with pytest.raises(SessionNotFoundError):
        await repo.resolve_id("zzzz")


async def test_resolve_ambiguous_prefix(repo):
    for suffix in ("a", "b"):
        await repo.insert(
            SleepSession(
                id=f"abc-{suffix}",
                start_time_millis=ms(2024, 6, 3, 22, 0),
                end_time_millis=ms(2024, 6, 4, 6, 0),
                target_bedtime_hour=22,
            )
        )
    with pytest.raises(SleepLogError, match="ambiguous"):
        await repo.resolve_id("abc")


async def test_ids_are_unique():
    first = session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP)
    second = session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP)
    assert first.id != second.id


async def test_legacy_rows_fall_back_to_sleep_flag(repo, db):
    await db.execute(
        """INSERT INTO sleep_sessions
           (id, start_time_millis, end_time_millis, duration_seconds, is_real_sleep, target_bedtime_hour)
           VALUES ('legacy', 0, 3600000, 3600, 0, 22)"""
    )
    loaded = await repo.get("legacy")
    assert loaded.category == Category.IDLE
    assert loaded.heuristic_category is None


async def test_duration_stats(repo):
    assert await repo.duration_stats() is None

    await repo.insert(session(ms(2024, 6, 3, 22, 0), 8, Category.SLEEP))
    await repo.insert(session(ms(2024, 6, 4, 22, 0), 6, Category.SLEEP))

    mean, std = await repo.duration_stats()
    assert mean == pytest.approx(7 * 3600)
    assert std == pytest.approx(3600)


async def test_inverted_bounds_are_rejected():
    with pytest.raises(InvalidObservationError):
        SleepSession.create(ms(2024, 6, 4, 6, 0), ms(2024, 6, 3, 22, 0), 22)


async def test_resolve_id_matches_prefix_literally(repo):
    await repo.insert(
        SleepSession(
            id="ab_1",
            start_time_millis=ms(2024, 6, 3, 22, 0),
            end_time_millis=ms(2024, 6, 4, 6, 0),
            target_bedtime_hour=22,
        )
    )
    # "_" and "%" are not wildcards
    with pytest.raises(SessionNotFoundError):
        await repo.resolve_id("a%")
    with pytest.raises(SessionNotFoundError):
        await repo.resolve_id("a_")
    assert await repo.resolve_id("ab_") == "ab_1"
