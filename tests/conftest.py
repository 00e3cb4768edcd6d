"""Shared pytest configuration for notezapper tests."""

import json
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add the project root to sys.path so tests can import modules directly.
_ROOT = str(Path(__file__).resolve().parent.parent)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from nostr.event import Event
from nostr.key import PrivateKey


def signed_event(private_key, content="", kind=1, tags=None, created_at=None):
    event = Event(content=content, public_key=private_key.public_key.hex(),
                  created_at=created_at, kind=kind, tags=tags or [])
    private_key.sign_event(event)
    return event


class FakeMessagePool:
    def __init__(self):
        self.events = []
        self.eose_notices = []

    def has_events(self):
        return len(self.events) > 0

    def get_event(self):
        return self.events.pop(0)

    def has_eose_notices(self):
        return len(self.eose_notices) > 0

    def get_eose_notice(self):
        return self.eose_notices.pop(0)


class FakeRelayManager:
    """Stands in for nostr.relay_manager.RelayManager.

    On a REQ, `responder(filters)` returns the events every relay answers
    with; each relay then reports end of stored events.
    """

    def __init__(self, urls=("wss://relay.one", "wss://relay.two"), responder=None):
        self.relays = {url: object() for url in urls}
        self.message_pool = FakeMessagePool()
        self.responder = responder or (lambda filters: [])
        self.subscriptions = {}
        self.published = []
        self.closed = []

    def add_subscription(self, id, filters):
        self.subscriptions[id] = filters

    def close_subscription(self, id):
        self.closed.append(id)
        self.subscriptions.pop(id, None)

    def publish_message(self, message):
        request = json.loads(message)
        self.published.append(request)
        if request[0] != "REQ":
            return
        subscription_id = request[1]
        for url in self.relays:
            for event in self.responder(request[2:]):
                self.message_pool.events.append(
                    SimpleNamespace(event=event, subscription_id=subscription_id, url=url))
            self.message_pool.eose_notices.append(
                SimpleNamespace(subscription_id=subscription_id, url=url))

    def close_connections(self):
        pass


@pytest.fixture
def author_key():
    return PrivateKey()


@pytest.fixture
def operator_key():
    return PrivateKey()


@pytest.fixture
def fake_relays(monkeypatch):
    import zaprelays

    def install(responder=None, urls=("wss://relay.one", "wss://relay.two")):
        manager = FakeRelayManager(urls=urls, responder=responder)
        monkeypatch.setattr(zaprelays, "relayManager", manager)
        monkeypatch.setattr(zaprelays, "_pollInterval", 0)
        return manager

    return install
