"""
Persistence for 2048 sessions.

Records are stored as JSON strings in a key-value backend, under the same
keys the browser version of the game uses in localStorage.
"""

import json
import math
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from game import GameConfig, Session

STATE_KEY = "state-2048"
CONFIG_KEY = "cfg-2048"
BEST_KEY_PREFIX = "best-2048-"  # + {grid size}


def _best_key(size: int) -> str:
    return f"{BEST_KEY_PREFIX}{size}"


class Backend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBackend:
    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileBackend:
    """One file per key inside a data directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # keys are internal constants, but keep them inside the directory anyway
        if "/" in key or "\\" in key:
            raise ValueError(f"Invalid key: {key}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text()
        except (OSError, UnicodeDecodeError):
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        # write then rename so a crash never leaves half a record behind
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class GameStore:
    """
    Load/save contract used by the game controller. Reads never raise:
    a missing or corrupt record comes back as None, 0 or the default config.
    """

    def __init__(self, backend: Backend | None = None):
        self.backend = backend if backend is not None else MemoryBackend()

    # sessions

    def save_session(self, session: Session) -> None:
        self.backend.set(STATE_KEY, session.to_json())

    def load_session(self) -> Session | None:
        raw = self.backend.get(STATE_KEY)
        if not raw:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            return None

    def clear_session(self) -> None:
        self.backend.delete(STATE_KEY)

    # best scores, one per grid size

    def load_best(self, size: int) -> int:
        raw = self.backend.get(_best_key(size))
        if not raw:
            return 0
        try:
            best = json.loads(raw)
        except json.JSONDecodeError:
            return 0
        if isinstance(best, bool) or not isinstance(best, (int, float)):
            return 0
        # NaN and infinities parse from JSON but are not scores
        if not math.isfinite(best) or best < 0:
            return 0
        return int(best)

    def save_best(self, size: int, best: int) -> None:
        self.backend.set(_best_key(size), json.dumps(int(best)))

    def reset_best(self, size: int) -> None:
        self.backend.delete(_best_key(size))

    # configuration

    def load_config(self) -> GameConfig:
        raw = self.backend.get(CONFIG_KEY)
        if not raw:
            return GameConfig()
        try:
            return GameConfig.model_validate_json(raw)
        except ValidationError:
            return GameConfig()

    def save_config(self, config: GameConfig) -> None:
        self.backend.set(CONFIG_KEY, config.model_dump_json())
