"""
HTTP bridge for a browser front end.
The page maps keys/swipes to directions and draws whatever state comes back.

Usage: python server.py [--port PORT] [--data-dir DIR]
"""

import argparse
from pathlib import Path

from flask import Flask, abort, jsonify, request
from pydantic import ValidationError

from game import Game2048, MoveResult
from storage import FileBackend, GameStore

app = Flask(__name__)

# Default directory for the saved game, best scores and config
DATA_DIR = Path(".2048")

_game: Game2048 | None = None


def get_game() -> Game2048:
    """The game served by this process, created and resumed on first use."""
    global _game
    if _game is None:
        _game = Game2048(store=GameStore(FileBackend(DATA_DIR)))
        _game.start()
    return _game


def set_game(game: Game2048 | None) -> None:
    global _game
    _game = game


def state_payload(game: Game2048, result: MoveResult | None = None) -> dict:
    payload = {
        "size": game.session.size,
        "tiles": [tile.model_dump() for tile in game.session.tiles],
        "score": game.session.score,
        "best": game.best,
        "status": game.status.value,
        "can_undo": game.can_undo,
        "pops": game.last_pops,
    }
    if result is not None:
        payload["outcome"] = result.outcome.value
        payload["gained"] = result.gained
    return payload


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        abort(400, "Expected a JSON object")
    return body


@app.route("/api/state")
def get_state():
    return jsonify(state_payload(get_game()))


@app.route("/api/move/<direction>", methods=["POST"])
def move(direction):
    """Apply a move. Unknown directions are ignored and reported as 'invalid'."""
    game = get_game()
    # the original key map sends indices 0..3
    result = game.step(int(direction) if direction.isdecimal() else direction)
    return jsonify(state_payload(game, result))


@app.route("/api/undo", methods=["POST"])
def undo():
    game = get_game()
    undone = game.undo()
    payload = state_payload(game)
    payload["undone"] = undone
    return jsonify(payload)


@app.route("/api/new", methods=["POST"])
def new_game():
    """Start a new game, optionally with {"size": n}."""
    game = get_game()
    size = _json_body().get("size")
    if size is not None and (isinstance(size, bool) or not isinstance(size, int)):
        abort(400, "size must be an integer")
    try:
        game.reset(size)
    except ValueError as e:
        abort(400, str(e))
    return jsonify(state_payload(game))


@app.route("/api/config", methods=["GET", "POST"])
def config():
    game = get_game()
    if request.method == "POST":
        try:
            game.update_config(**_json_body())
        except (ValidationError, ValueError) as e:
            abort(400, f"Invalid config: {e}")
    return jsonify(game.config.model_dump(mode="json"))


@app.route("/api/best/reset", methods=["POST"])
def reset_best():
    game = get_game()
    game.reset_best()
    return jsonify({"best": game.best})


def main():
    parser = argparse.ArgumentParser(description="2048 game server")
    parser.add_argument(
        "--port", type=int, default=5050, help="Port to run server on (default: 5050)"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=".2048",
        help="Directory for the saved game and best scores (default: .2048)",
    )
    args = parser.parse_args()

    global DATA_DIR
    DATA_DIR = Path(args.data_dir)

    print("Starting 2048 server...")
    print(f"  Data directory: {DATA_DIR.absolute()}")
    print(f"  Open http://localhost:{args.port} in your browser")

    app.run(host="0.0.0.0", port=args.port, debug=False)


if __name__ == "__main__":
    main()
