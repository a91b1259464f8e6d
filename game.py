DEFAULT_SIZE = 4
MIN_SIZE = 2
MAX_SIZE = 16
WIN_VALUE = 2048

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable
import random

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from history import UndoHistory


class Direction(Enum):
    # declaration order is the input mapper's index order 0..3
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @property
    def vector(self) -> tuple[int, int]:
        return _VECTORS[self]

    @classmethod
    def parse(cls, value: Any) -> "Direction | None":
        """
        Map a direction, its name/value, or its index 0..3 to a Direction.
        Anything else yields None: an unknown direction is a no-op, not an error.
        """
        if isinstance(value, Direction):
            return value
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            members = list(cls)
            return members[value] if 0 <= value < len(members) else None
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if key in (member.value, member.name.lower()):
                    return member
        return None


_VECTORS = {
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
}


class Difficulty(Enum):
    NORMAL = "normal"
    HARD = "hard"

    @property
    def two_probability(self) -> float:
        # hard mode never spawns a 4
        return 1.0 if self is Difficulty.HARD else 0.9


class Status(Enum):
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"


class GameConfig(BaseModel):
    """Configuration record shared with the persistence layer."""

    size: int = Field(default=DEFAULT_SIZE, ge=MIN_SIZE, le=MAX_SIZE)
    sound: bool = True
    haptics: bool = True
    dark: bool = False
    difficulty: Difficulty = Difficulty.NORMAL
    fast: bool = False  # faster slide animation
    win_value: int = WIN_VALUE


class Tile(BaseModel):
    id: int = Field(ge=1)
    value: int
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    pop: bool = False  # one-shot "just appeared" cue for the renderer

    @field_validator("value")
    @classmethod
    def _power_of_two(cls, value: int) -> int:
        if value < 2 or value & (value - 1):
            raise ValueError(f"tile value must be a power of two >= 2, got {value}")
        return value

    def clone(self) -> "Tile":
        return Tile(id=self.id, value=self.value, x=self.x, y=self.y, pop=self.pop)


class Session(BaseModel):
    """
    The complete persistable game state: grid size, tiles, score and the id counter.
    Field aliases match the keys of the browser game's saved state.
    """

    model_config = ConfigDict(populate_by_name=True)

    size: int = Field(default=DEFAULT_SIZE, ge=MIN_SIZE, le=MAX_SIZE, alias="N")
    tiles: list[Tile] = Field(default_factory=list)
    score: int = Field(default=0, ge=0)
    next_id: int = Field(default=1, ge=1, alias="nextId")

    @model_validator(mode="after")
    def _check_invariants(self) -> "Session":
        ids = set()
        cells = set()
        for tile in self.tiles:
            if tile.id in ids:
                raise ValueError(f"duplicate tile id {tile.id}")
            if not (tile.x < self.size and tile.y < self.size):
                raise ValueError(f"tile {tile.id} at ({tile.x}, {tile.y}) is off the grid")
            if (tile.x, tile.y) in cells:
                raise ValueError(f"two tiles share cell ({tile.x}, {tile.y})")
            ids.add(tile.id)
            cells.add((tile.x, tile.y))
        if ids and self.next_id <= max(ids):
            raise ValueError("next_id must be greater than every tile id")
        return self

    def clone(self) -> "Session":
        """Structural copy; no tile is shared with the original."""
        return Session(
            size=self.size,
            tiles=[tile.clone() for tile in self.tiles],
            score=self.score,
            next_id=self.next_id,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def max_tile(self) -> int:
        return max((tile.value for tile in self.tiles), default=0)


# ----------------------------------------
# grid queries


def within(session: Session, x: int, y: int) -> bool:
    return 0 <= x < session.size and 0 <= y < session.size


def tile_at(session: Session, x: int, y: int) -> Tile | None:
    for tile in session.tiles:
        if tile.x == x and tile.y == y:
            return tile
    return None


def occupied(session: Session) -> set[tuple[int, int]]:
    """Occupied cells, always derived from the tile list."""
    return {(tile.x, tile.y) for tile in session.tiles}


def empty_cells(session: Session) -> list[tuple[int, int]]:
    """Empty cells in row-major order (y outer, x inner)."""
    taken = occupied(session)
    return [
        (x, y)
        for y in range(session.size)
        for x in range(session.size)
        if (x, y) not in taken
    ]


# ----------------------------------------
# move resolution


def traversal(size: int, direction: Direction) -> tuple[list[int], list[int]]:
    """
    Scan order for a move: start from the edge the direction points toward,
    so a tile is always handled before anything that could slide behind it.
    """
    dx, dy = direction.vector
    xs = list(range(size))
    ys = list(range(size))
    if dx == 1:
        xs.reverse()
    if dy == 1:
        ys.reverse()
    return xs, ys


@dataclass
class MoveResolution:
    session: Session
    moved: bool
    gained: int = 0
    merges: list[tuple[int, int]] = field(default_factory=list)  # (survivor id, retired id)


class _Arena:
    """
    Tiles addressed by id plus a position index rebuilt from them for the
    duration of one move. Retired ids stay in the arena until compaction.
    """

    def __init__(self, session: Session):
        self.size = session.size
        self.tiles = {tile.id: tile for tile in session.tiles}
        self.cells = {(tile.x, tile.y): tile.id for tile in session.tiles}
        self.retired: set[int] = set()

    def at(self, x: int, y: int) -> Tile | None:
        tile_id = self.cells.get((x, y))
        return None if tile_id is None else self.tiles[tile_id]

    def free(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size and (x, y) not in self.cells

    def relocate(self, tile: Tile, x: int, y: int) -> None:
        del self.cells[(tile.x, tile.y)]
        tile.x, tile.y = x, y
        self.cells[(x, y)] = tile.id

    def retire(self, tile: Tile) -> None:
        del self.cells[(tile.x, tile.y)]
        self.retired.add(tile.id)

    def compact(self, session: Session) -> None:
        session.tiles = [tile for tile in session.tiles if tile.id not in self.retired]


def _farthest(arena: _Arena, tile: Tile, vector: tuple[int, int]) -> tuple[int, int]:
    x, y = tile.x, tile.y
    while arena.free(x + vector[0], y + vector[1]):
        x, y = x + vector[0], y + vector[1]
    return x, y


def _slide(arena: _Arena, xs: list[int], ys: list[int], vector: tuple[int, int]) -> bool:
    moved = False
    for y in ys:
        for x in xs:
            tile = arena.at(x, y)
            if tile is None:
                continue
            fx, fy = _farthest(arena, tile, vector)
            if (fx, fy) != (x, y):
                arena.relocate(tile, fx, fy)
                moved = True
    return moved


def resolve_move(session: Session, direction: Direction) -> MoveResolution:
    """
    Resolve one move on a copy of the session and return the result.

    Phase 1 slides every tile as far as it goes. Phase 2 merges each tile into
    an equal neighbour ahead of it, at most once per tile per move: the target
    doubles and keeps its id and cell, the source id is retired. A last slide
    closes the cells vacated by merges; it cannot merge anything.
    The input session is left untouched.
    """
    direction = Direction.parse(direction)
    if direction is None:
        return MoveResolution(session=session.clone(), moved=False)

    result = session.clone()
    vector = direction.vector
    xs, ys = traversal(result.size, direction)
    arena = _Arena(result)

    moved = _slide(arena, xs, ys, vector)

    merged: set[int] = set()
    gained = 0
    merges = []
    for y in ys:
        for x in xs:
            source = arena.at(x, y)
            if source is None:
                continue
            target = arena.at(x + vector[0], y + vector[1])
            if target is None or source.value != target.value:
                continue
            if source.id in merged or target.id in merged:
                continue
            target.value *= 2
            target.pop = True
            merged.add(target.id)
            gained += target.value
            arena.retire(source)
            merges.append((target.id, source.id))

    if merges:
        _slide(arena, xs, ys, vector)
        arena.compact(result)
        moved = True

    result.score += gained
    return MoveResolution(session=result, moved=moved, gained=gained, merges=merges)


# ----------------------------------------
# spawning and terminal detection


def spawn(
    session: Session,
    difficulty: Difficulty = Difficulty.NORMAL,
    rng: random.Random | None = None,
) -> Tile | None:
    """
    Add a tile (2, or 4 with probability 0.1 on normal difficulty) to a random
    empty cell of the session. Returns the new tile, or None if the grid is full.
    """
    rng = rng or random
    cells = empty_cells(session)
    if not cells:
        return None

    x, y = rng.choice(cells)
    value = 2 if rng.random() < difficulty.two_probability else 4
    tile = Tile(id=session.next_id, value=value, x=x, y=y, pop=True)
    session.next_id += 1
    session.tiles.append(tile)
    return tile


def add_random_tile(
    session: Session,
    difficulty: Difficulty = Difficulty.NORMAL,
    rng: random.Random | None = None,
) -> bool:
    return spawn(session, difficulty, rng) is not None


def has_moves(session: Session) -> bool:
    if empty_cells(session):
        return True
    values = {(tile.x, tile.y): tile.value for tile in session.tiles}
    # right and down neighbours cover every adjacent pair
    for (x, y), value in values.items():
        if values.get((x + 1, y)) == value or values.get((x, y + 1)) == value:
            return True
    return False


def classify(session: Session, win_value: int = WIN_VALUE) -> Status:
    if any(tile.value == win_value for tile in session.tiles):
        return Status.WON
    if not has_moves(session):
        return Status.LOST
    return Status.PLAYING


def new_session(
    size: int = DEFAULT_SIZE,
    difficulty: Difficulty = Difficulty.NORMAL,
    rng: random.Random | None = None,
) -> Session:
    """A fresh session holding two spawned tiles."""
    session = Session(size=size)
    spawn(session, difficulty, rng)
    spawn(session, difficulty, rng)
    return session


def consume_pops(session: Session) -> list[int]:
    """Return the ids carrying a visual cue and clear the cues."""
    ids = []
    for tile in session.tiles:
        if tile.pop:
            ids.append(tile.id)
            tile.pop = False
    return ids


# ----------------------------------------
# controller


class Outcome(Enum):
    MOVED = "moved"
    BLOCKED = "blocked"
    INVALID = "invalid"


@dataclass
class MoveResult:
    outcome: Outcome
    gained: int
    score: int
    status: Status
    spawned: Tile | None = None

    @property
    def moved(self) -> bool:
        return self.outcome is Outcome.MOVED


Renderer = Callable[[int, list[Tile]], None]
Feedback = Callable[[str], None]


class Game2048:
    """
    Drives one game: owns the current session, the undo history, the best
    score and the terminal status, and talks to the injected collaborators
    (store, renderer, sound/haptic feedback, metric logger).
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        store=None,
        renderer: Renderer | None = None,
        feedback: Feedback | None = None,
        logger=None,
        rng: random.Random | None = None,
    ):
        self.config = config or GameConfig()
        self.store = store
        self.renderer = renderer
        self.feedback = feedback
        self.logger = logger
        self.rng = rng or random.Random()

        self.session = Session(size=self.config.size)
        self.history = UndoHistory()
        self.best = 0
        self.status = Status.PLAYING
        self.move_count = 0
        self.last_pops: list[int] = []

    # ----------------------------------------
    # lifecycle

    def start(self) -> Session:
        """
        Load the stored configuration and resume the stored session, falling
        back to a fresh game when there is nothing (valid) to resume.
        """
        if self.store is not None:
            self.config = self.store.load_config()
            stored = self.store.load_session()
        else:
            stored = None

        if stored is not None and stored.tiles:
            self.session = stored
            if self.config.size != stored.size:
                self.config = self.config.model_copy(update={"size": stored.size})
                self._save_config()
        else:
            self.session = new_session(self.config.size, self.config.difficulty, self.rng)

        self.history.clear()
        self.status = Status.PLAYING
        self.move_count = 0
        self.best = self._load_best()
        self._render()
        self._persist()
        return self.session

    def reset(self, size: int | None = None) -> Session:
        """
        Start a new game, optionally on a different grid size.
        Raises ValueError for a size outside MIN_SIZE..MAX_SIZE.
        """
        if size is not None and size != self.config.size:
            if not MIN_SIZE <= size <= MAX_SIZE:
                raise ValueError(f"grid size must be between {MIN_SIZE} and {MAX_SIZE}")
            self.config = self.config.model_copy(update={"size": size})
            self._save_config()

        self.session = new_session(self.config.size, self.config.difficulty, self.rng)
        self.history.clear()
        self.status = Status.PLAYING
        self.move_count = 0
        self.best = self._load_best()
        self._render()
        self._persist()
        return self.session

    def update_config(self, **changes: Any) -> GameConfig:
        """
        Apply configuration changes. A size change starts a new game; the other
        fields only take effect on later operations.
        """
        updated = GameConfig.model_validate({**self.config.model_dump(), **changes})
        size = updated.size
        self.config = updated.model_copy(update={"size": self.config.size})
        self._save_config()
        if size != self.config.size:
            self.reset(size)
        return self.config

    # ----------------------------------------
    # moves

    def step(self, direction: Direction | str | int) -> MoveResult:
        """
        Attempt a move. A snapshot is pushed before every valid attempt, even
        one that turns out to be blocked.
        """
        parsed = Direction.parse(direction)
        if parsed is None:
            return MoveResult(Outcome.INVALID, 0, self.session.score, self.status)

        self.history.snapshot(self.session)
        resolution = resolve_move(self.session, parsed)

        if not resolution.moved:
            self._feedback("blocked")
            return MoveResult(Outcome.BLOCKED, 0, self.session.score, self.status)

        self.session = resolution.session
        self.move_count += 1
        if resolution.merges:
            self._feedback("merge")

        if self.session.score > self.best:
            self.best = self.session.score
            if self.store is not None:
                self.store.save_best(self.session.size, self.best)

        spawned = spawn(self.session, self.config.difficulty, self.rng)
        self.status = classify(self.session, self.config.win_value)
        self._render()
        self._persist()

        if self.logger is not None:
            self.logger.log(
                {
                    "direction": parsed.value,
                    "gained": resolution.gained,
                    "merges": len(resolution.merges),
                    "score": self.session.score,
                    "max_tile": self.session.max_tile(),
                    "status": self.status.value,
                },
                step=self.move_count,
                verbose=False,
            )

        return MoveResult(
            Outcome.MOVED, resolution.gained, self.session.score, self.status, spawned
        )

    def undo(self) -> bool:
        """Restore the most recent snapshot. Returns False when there is none."""
        restored = self.history.restore()
        if restored is None:
            return False

        if restored.size != self.config.size:
            self.config = self.config.model_copy(update={"size": restored.size})
            self._save_config()
        self.session = restored
        self.best = self._load_best()
        self.status = Status.PLAYING
        self._render()
        self._persist()
        return True

    def reset_best(self) -> None:
        self.best = 0
        if self.store is not None:
            self.store.reset_best(self.session.size)

    def valid_directions(self) -> list[Direction]:
        return [d for d in Direction if resolve_move(self.session, d).moved]

    @property
    def can_undo(self) -> bool:
        return len(self.history) > 0

    # ----------------------------------------
    # collaborators

    def _load_best(self) -> int:
        if self.store is None:
            return max(self.best, self.session.score)
        return self.store.load_best(self.session.size)

    def _save_config(self) -> None:
        if self.store is not None:
            self.store.save_config(self.config)

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save_session(self.session)

    def _render(self) -> None:
        if self.renderer is not None:
            self.renderer(self.session.size, self.session.tiles)
        # cues are shown once, on the draw right after they were set
        self.last_pops = consume_pops(self.session)

    def _feedback(self, event: str) -> None:
        if self.feedback is None:
            return
        if self.config.sound or self.config.haptics:
            self.feedback(event)


def board_rows(session: Session) -> list[list[int]]:
    """The session as rows of tile values, 0 for an empty cell."""
    rows = [[0] * session.size for _ in range(session.size)]
    for tile in session.tiles:
        rows[tile.y][tile.x] = tile.value
    return rows


def session_from_rows(rows: Iterable[Iterable[int]], score: int = 0) -> Session:
    """Build a session from rows of values (0 = empty); ids are assigned row-major."""
    rows = [list(row) for row in rows]
    tiles = []
    next_id = 1
    for y, row in enumerate(rows):
        for x, value in enumerate(row):
            if value:
                tiles.append(Tile(id=next_id, value=value, x=x, y=y))
                next_id += 1
    return Session(size=len(rows), tiles=tiles, score=score, next_id=next_id)
