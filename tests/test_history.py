from datetime import datetime, timedelta, timezone

import pytest

from app.client.api import ApiError
from app.client.history import HistoryPanel, format_timestamp
from app.schemas.chat import ChatSessionOut

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


def _session(session_id: str, title: str) -> ChatSessionOut:
    return ChatSessionOut(id=session_id, user_id='u1', title=title, messages=[], created_at=NOW, updated_at=NOW)


class FakeSessions:
    def __init__(self) -> None:
        self.sessions = [_session('a', 'First'), _session('b', 'Second')]
        self.fail = False
        self.deleted: list[str] = []

    async def list_sessions(self):
        if self.fail:
            raise ApiError(500, 'Chat storage unavailable')
        return list(self.sessions)

    async def rename_session(self, session_id, title):
        if self.fail:
            raise ApiError(500, 'Chat storage unavailable')
        return _session(session_id, title)

    async def delete_session(self, session_id):
        if self.fail:
            raise ApiError(500, 'Chat storage unavailable')
        self.deleted.append(session_id)


def _panel(api):
    events = []
    panel = HistoryPanel(
        api,
        on_select=lambda session: events.append(('select', session.id)),
        on_new_chat=lambda: events.append(('new', None)),
    )
    return panel, events


@pytest.mark.anyio
async def test_refresh_loads_sessions():
    panel, _ = _panel(FakeSessions())
    sessions = await panel.refresh()
    assert [s.id for s in sessions] == ['a', 'b']
    assert panel.loading is False
    assert panel.error is None


@pytest.mark.anyio
async def test_refresh_failure_is_visible():
    api = FakeSessions()
    api.fail = True
    panel, _ = _panel(api)
    await panel.refresh()
    assert panel.sessions == []
    assert panel.error == 'Failed to load chat history'
    assert panel.loading is False


@pytest.mark.anyio
async def test_select_signals_controller():
    panel, events = _panel(FakeSessions())
    await panel.refresh()
    panel.select('b')
    assert events == [('select', 'b')]
    assert panel.current_session_id == 'b'
    with pytest.raises(LookupError):
        panel.select('missing')


@pytest.mark.anyio
async def test_rename_updates_local_list():
    panel, _ = _panel(FakeSessions())
    await panel.refresh()
    assert await panel.rename('a', '  Trip planning ') is True
    assert panel.sessions[0].title == 'Trip planning'
    assert await panel.rename('a', '   ') is False


@pytest.mark.anyio
async def test_delete_requires_confirmation():
    api = FakeSessions()
    panel, events = _panel(api)
    await panel.refresh()

    assert await panel.delete('a', confirm=lambda: False) is False
    assert api.deleted == []

    panel.select('a')
    assert await panel.delete('a', confirm=lambda: True) is True
    assert api.deleted == ['a']
    assert [s.id for s in panel.sessions] == ['b']
    assert events[-1] == ('new', None)
    assert panel.current_session_id is None


@pytest.mark.anyio
async def test_failed_delete_keeps_session():
    api = FakeSessions()
    panel, _ = _panel(api)
    await panel.refresh()
    api.fail = True
    assert await panel.delete('a') is False
    assert [s.id for s in panel.sessions] == ['a', 'b']
    assert panel.error == 'Failed to delete chat'


def test_format_timestamp_buckets():
    assert format_timestamp(NOW - timedelta(hours=2), now=NOW) == '13:30'
    assert format_timestamp(NOW - timedelta(days=3), now=NOW) == 'Thu'
    assert format_timestamp(NOW - timedelta(days=30), now=NOW) == 'Sep 18'
    assert format_timestamp((NOW - timedelta(hours=1)).replace(tzinfo=None), now=NOW) == '14:30'
