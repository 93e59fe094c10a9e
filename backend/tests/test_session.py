"""
Session Registry Tests
"""

import pytest
from conftest import OTHER_USER_ID, USER_ID, FakeLiveQuery

from notekeeper.core.services.session import NoteSession, SessionRegistry


def _registry(store):
    created = []

    def factory(user_id):
        session = NoteSession(user_id, store, FakeLiveQuery(store))
        created.append(session)
        return session

    return SessionRegistry(factory), created


@pytest.mark.asyncio
async def test_sessions_are_started_once_per_user(seeded_store):
    registry, created = _registry(seeded_store)

    first = await registry.get(USER_ID)
    again = await registry.get(USER_ID)
    other = await registry.get(OTHER_USER_ID)

    assert first is again
    assert other is not first
    assert len(created) == 2
    assert len(registry) == 2
    assert first.sync.is_live


@pytest.mark.asyncio
async def test_close_releases_the_session(seeded_store):
    registry, created = _registry(seeded_store)
    session = await registry.get(USER_ID)

    assert await registry.close(USER_ID) is True
    assert session.sync.closed
    assert await registry.close(USER_ID) is False

    # Signing back in starts a fresh session
    fresh = await registry.get(USER_ID)
    assert fresh is not session


@pytest.mark.asyncio
async def test_close_all(seeded_store):
    registry, created = _registry(seeded_store)
    await registry.get(USER_ID)
    await registry.get(OTHER_USER_ID)

    await registry.close_all()

    assert len(registry) == 0
    assert all(s.sync.closed for s in created)
