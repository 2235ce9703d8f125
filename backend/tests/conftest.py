import os
import random
import sys
import pytest

# Ensure the backend root (containing the `songquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from songquiz import create_app, socketio, NAMESPACE
from songquiz.games import GameController
from songquiz.services.catalog import CatalogTrack
from songquiz.services.games.scheduler import TimerHandle


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ROUND_DURATION_SEC = 30
    PREROLL_DURATION_SEC = 3
    ROUND_COOLDOWN_SEC = 5
    EARLY_END_GRACE_SEC = 1
    HINT_WINDOW_SEC = 20
    HINT_INTERVAL_SEC = 5
    BASE_POINTS = 30
    FLOOR_POINTS = 5
    DJ_BONUS_POINTS = 3
    TYPO_FLOOR = 2
    TYPO_TOLERANCE = 0.3
    ACCEPT_ARTIST_GUESS = False
    LOCK_LOBBY = True
    REPORT_UNAUTHORIZED = False


def config_dict(config_class=TestConfig, **overrides):
    values = {k: getattr(config_class, k) for k in dir(config_class) if k.isupper()}
    values.update(overrides)
    return values


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


class ManualTimers:
    """Virtual-time stand-in for BackgroundTimers; timers fire only on advance()."""

    def __init__(self, clock):
        self.clock = clock
        self._queue = []
        self._seq = 0

    def call_later(self, delay, callback, name='timer'):
        handle = TimerHandle(name, delay)
        self._seq += 1
        self._queue.append((self.clock.now + delay, self._seq, handle, callback))
        return handle

    def pending_names(self):
        live = sorted(e for e in self._queue if e[2].pending)
        return [e[2].name for e in live]

    def advance(self, seconds):
        target = self.clock.now + seconds
        while True:
            due = [e for e in self._queue if e[2].pending and e[0] <= target + 1e-9]
            if not due:
                break
            when, _, handle, callback = min(due, key=lambda e: (e[0], e[1]))
            self.clock.now = max(self.clock.now, when)
            handle.fired = True
            callback()
        self.clock.now = target


class EmitRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, event, payload=None, to=None):
        self.calls.append((event, payload, to))

    def named(self, event, to=None):
        return [p for e, p, t in self.calls if e == event and (to is None or t == to)]

    def last(self, event, to=None):
        found = self.named(event, to)
        return found[-1] if found else None

    def names(self):
        return [e for e, _, _ in self.calls]

    def clear(self):
        self.calls = []


class FakeCatalog:
    def __init__(self, tracks=None):
        self.queries = []
        self.tracks = tracks if tracks is not None else [
            CatalogTrack('Uptown Funk', 'Mark Ronson', 'https://audio.example/uptown.m4a', 'https://art.example/1.jpg'),
        ]

    def search(self, query):
        self.queries.append(query)
        return list(self.tracks)


SONGS = [
    {'title': 'Uptown Funk (feat. Bruno Mars)', 'artist': 'Mark Ronson', 'previewUrl': 'https://audio.example/1.m4a'},
    {'title': 'Bohemian Rhapsody', 'artist': 'Queen', 'previewUrl': 'https://audio.example/2.m4a'},
    {'title': 'Rolling in the Deep', 'artist': 'Adele', 'previewUrl': 'https://audio.example/3.m4a'},
    {'title': 'Africa', 'artist': 'Toto', 'previewUrl': 'https://audio.example/4.m4a'},
    {'title': 'Hey Jude - Remastered 2015', 'artist': 'The Beatles', 'previewUrl': 'https://audio.example/5.m4a'},
]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def timers(clock):
    return ManualTimers(clock)


@pytest.fixture()
def events():
    return EmitRecorder()


@pytest.fixture()
def catalog():
    return FakeCatalog()


@pytest.fixture()
def controller(events, timers, clock, catalog):
    return GameController(
        config_dict(), events, timers=timers, catalog=catalog, clock=clock, rng=random.Random(7),
    )


@pytest.fixture()
def make_game(controller):
    """Join the given players (first is host) and have the first `songs` of them submit."""
    def _make(names=('Alice', 'Bob'), songs=None):
        ids = []
        for name in names:
            sid = f'sid-{name.lower()}'
            controller.join(sid, {'name': name, 'color': '#123456'})
            ids.append(sid)
        count = len(ids) if songs is None else songs
        controller.open_selection(ids[0])
        for sid, song in zip(ids[:count], SONGS):
            controller.submit_song(sid, dict(song))
        return ids
    return _make


@pytest.fixture()
def flask_app(timers, clock, catalog):
    application = create_app(TestConfig, timers=timers, catalog=catalog, clock=clock, rng=random.Random(7))
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio(flask_app):
    clients = []

    def _connect():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE
        )
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass
