import random

import pytest

from game import Game2048, GameConfig
from storage import GameStore, MemoryBackend


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(2048)


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def store(backend: MemoryBackend) -> GameStore:
    return GameStore(backend)


class Recorder:
    """Collects renderer frames and feedback events."""

    def __init__(self):
        self.frames = []
        self.events = []

    def render(self, size, tiles):
        self.frames.append((size, [(t.id, t.value, t.x, t.y, t.pop) for t in tiles]))

    def feedback(self, event):
        self.events.append(event)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def make_game(store, recorder, rng):
    def _make(**config) -> Game2048:
        return Game2048(
            config=GameConfig(**config),
            store=store,
            renderer=recorder.render,
            feedback=recorder.feedback,
            rng=rng,
        )

    return _make
