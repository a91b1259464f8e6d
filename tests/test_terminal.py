from game import Status, classify, has_moves, session_from_rows

CHECKERBOARD = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]


def test_empty_cell_means_moves_left():
    rows = [row[:] for row in CHECKERBOARD]
    rows[3][3] = 0
    assert has_moves(session_from_rows(rows))


def test_full_board_with_horizontal_pair_has_moves():
    rows = [row[:] for row in CHECKERBOARD]
    rows[1][3] = 4  # equal to its left neighbour
    assert has_moves(session_from_rows(rows))


def test_full_board_with_vertical_pair_has_moves():
    rows = [row[:] for row in CHECKERBOARD]
    rows[3][0] = 2  # equal to the tile above
    assert has_moves(session_from_rows(rows))


def test_full_board_without_pairs_is_lost():
    session = session_from_rows(CHECKERBOARD)
    assert not has_moves(session)
    assert classify(session) is Status.LOST


def test_reaching_win_value_is_won():
    session = session_from_rows([[2048, 2, 0, 0]] + [[0] * 4] * 3)
    assert classify(session) is Status.WON


def test_win_value_is_configurable():
    session = session_from_rows([[512, 0], [0, 0]])
    assert classify(session, win_value=512) is Status.WON
    assert classify(session) is Status.PLAYING


def test_win_takes_precedence_over_loss():
    rows = [row[:] for row in CHECKERBOARD]
    rows[0][0] = 2048
    assert classify(session_from_rows(rows)) is Status.WON


def test_playing_board():
    assert classify(session_from_rows([[2, 0], [0, 4]])) is Status.PLAYING
