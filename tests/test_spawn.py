import random

from game import (
    Difficulty,
    Session,
    add_random_tile,
    consume_pops,
    new_session,
    session_from_rows,
    spawn,
)


class PickLast:
    """Chooses the last candidate cell and always rolls high."""

    def choice(self, seq):
        return seq[-1]

    def random(self):
        return 0.95


def test_spawn_places_tile_in_empty_cell(rng):
    session = session_from_rows([[2, 4], [0, 8]])
    tile = spawn(session, rng=rng)

    assert (tile.x, tile.y) == (0, 1)
    assert tile.id == 4
    assert tile.pop
    assert session.next_id == 5
    assert tile in session.tiles


def test_spawn_uses_row_major_candidates_and_probability():
    session = Session(size=3)
    tile = spawn(session, Difficulty.NORMAL, rng=PickLast())

    assert (tile.x, tile.y) == (2, 2)
    assert tile.value == 4


def test_hard_mode_only_spawns_twos():
    tile = spawn(Session(size=3), Difficulty.HARD, rng=PickLast())
    assert tile.value == 2

    rng = random.Random(7)
    for _ in range(200):
        assert spawn(Session(size=2), Difficulty.HARD, rng=rng).value == 2


def test_normal_mode_spawns_mostly_twos():
    rng = random.Random(7)
    fours = sum(spawn(Session(size=2), rng=rng).value == 4 for _ in range(500))
    assert 20 < fours < 90


def test_spawn_on_full_grid_is_a_no_op(rng):
    session = session_from_rows([[2, 4], [4, 2]])
    before = session.clone()

    assert spawn(session, rng=rng) is None
    assert not add_random_tile(session, rng=rng)
    assert session == before


def test_add_random_tile_reports_success(rng):
    session = Session(size=4)
    assert add_random_tile(session, rng=rng)
    assert len(session.tiles) == 1


def test_ids_are_never_reused(rng):
    session = new_session(4, rng=rng)
    ids = [t.id for t in session.tiles]
    session.tiles.pop()
    spawn(session, rng=rng)
    assert session.tiles[-1].id not in ids
    assert session.tiles[-1].id == 3


def test_new_session_has_two_tiles(rng):
    session = new_session(5, rng=rng)
    assert session.size == 5
    assert len(session.tiles) == 2
    assert session.score == 0
    assert session.next_id == 3
    assert all(t.value in (2, 4) for t in session.tiles)


def test_consume_pops_clears_cues(rng):
    session = new_session(4, rng=rng)
    assert consume_pops(session) == [1, 2]
    assert consume_pops(session) == []
