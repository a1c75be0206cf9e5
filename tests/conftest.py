# tests/conftest.py
import pytest

from fs_core.common import events

RECORDED = ("quote.accepted", "job.status_changed", "job.completed", "job.paid")


@pytest.fixture
def captured_events():
    """
    Records (name, payload) for the main domain events, after the real subscribers ran.
    """
    seen = []
    handlers = []
    for name in RECORDED:
        def _record(payload, _name=name):
            seen.append((_name, dict(payload)))

        events.subscribe(name)(_record)
        handlers.append((name, _record))

    yield seen

    for name, handler in handlers:
        events._registry[name].remove(handler)
