"""
Terminal client for 2048.
Run with: python play_cli.py [command]
"""

import random
import sys
from pathlib import Path
from typing import Optional

import typer
from tqdm import tqdm

from game import (
    DEFAULT_SIZE,
    Difficulty,
    Direction,
    Game2048,
    GameConfig,
    Outcome,
    Session,
    Status,
    board_rows,
)
from logger import MetricLogger
from storage import FileBackend, GameStore

app = typer.Typer(help="Play and simulate 2048 on an N x N grid")

DEFAULT_DATA_DIR = Path(".2048")

KEY_TO_DIRECTION = {
    "w": Direction.UP,
    "a": Direction.LEFT,
    "s": Direction.DOWN,
    "d": Direction.RIGHT,
    "\x1b[A": Direction.UP,  # Up arrow
    "\x1b[B": Direction.DOWN,  # Down arrow
    "\x1b[C": Direction.RIGHT,  # Right arrow
    "\x1b[D": Direction.LEFT,  # Left arrow
}


def format_grid(session: Session, indent: str = "  ") -> str:
    """Format a session's grid with box characters, empty cells as dots."""
    rows = board_rows(session)
    size = session.size
    cell_width = max(4, len(str(session.max_tile())) + 1)
    rule = "─" * (cell_width * size + size - 1)

    lines = [indent + "┌" + rule + "┐"]
    for i, row in enumerate(rows):
        cells = [(str(v) if v else ".").center(cell_width) for v in row]
        lines.append(indent + "│" + "│".join(cells) + "│")
        if i < size - 1:
            lines.append(indent + "├" + rule + "┤")
    lines.append(indent + "└" + rule + "┘")

    return "\n".join(lines)


def get_key() -> str:
    """Get a single keypress from the terminal."""
    import termios
    import tty

    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        ch = sys.stdin.read(1)
        # arrow keys send 3 characters: ESC [ A/B/C/D
        if ch == "\x1b":
            ch += sys.stdin.read(2)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
    return ch


def clear_screen() -> None:
    typer.echo("\033[2J\033[H", nl=False)


def draw_board(game: Game2048, message: str = "") -> None:
    clear_screen()
    typer.echo("=" * 30)
    typer.echo(f"        2048 ({game.session.size}x{game.session.size})")
    typer.echo("=" * 30)
    typer.echo(f"Score: {game.session.score}    Best: {game.best}")
    typer.echo("")
    typer.echo(format_grid(game.session, indent=""))
    typer.echo("")

    if message:
        typer.echo(message)

    typer.echo("\nControls:")
    typer.echo("  ↑/W: Up    ↓/S: Down")
    typer.echo("  ←/A: Left  →/D: Right")
    typer.echo("  U: Undo  R: Restart  Q: Quit")


def _open_store(data_dir: Path) -> GameStore:
    return GameStore(FileBackend(data_dir))


@app.command()
def play(
    data_dir: Path = typer.Option(
        DEFAULT_DATA_DIR, "--data-dir", help="Directory for saved game, best scores and config"
    ),
    size: Optional[int] = typer.Option(
        None, "--size", "-n", help="Start a new game on this grid size"
    ),
    hard: Optional[bool] = typer.Option(
        None, "--hard/--normal", help="Hard mode only spawns 2s"
    ),
):
    """Play 2048 in the terminal. The game is saved after every move and resumed on start."""
    game = Game2048(store=_open_store(data_dir))
    game.start()

    if hard is not None:
        game.update_config(difficulty=Difficulty.HARD if hard else Difficulty.NORMAL)
    if size is not None and size != game.session.size:
        try:
            game.reset(size)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)

    draw_board(game, "Welcome! Use arrow keys or WASD to play.")

    while True:
        key = get_key()
        lowered = key.lower() if len(key) == 1 else key

        if lowered in ("q", "\x03"):
            clear_screen()
            typer.echo("Thanks for playing!")
            break

        if lowered == "r":
            game.reset()
            draw_board(game, "Game restarted!")
            continue

        if lowered == "u":
            message = "Undone." if game.undo() else "Nothing to undo."
            draw_board(game, message)
            continue

        direction = KEY_TO_DIRECTION.get(lowered)
        if direction is None:
            draw_board(game, "Invalid key. Use WASD or arrow keys.")
            continue

        result = game.step(direction)
        if result.outcome is Outcome.BLOCKED:
            draw_board(game, f"Can't move {direction.value}! Try another direction.")
        elif result.status is Status.LOST:
            draw_board(game, f"GAME OVER! Final Score: {result.score}. U to undo, R to restart.")
        elif result.status is Status.WON:
            draw_board(game, f"You made {game.config.win_value}! Keep going if you like.")
        else:
            draw_board(game, f"+{result.gained} points" if result.gained else "")


def play_random_game(
    game: Game2048, rng: random.Random, max_moves: int | None = None
) -> dict:
    """
    Play one game with a uniformly random policy over the unblocked directions.
    Returns the game's summary metrics.
    """
    game.reset()
    moves = 0
    reached_win = False

    while max_moves is None or moves < max_moves:
        valid = game.valid_directions()
        if not valid:
            break
        result = game.step(rng.choice(valid))
        moves += 1
        if result.status is Status.WON:
            reached_win = True

    return {
        "score": game.session.score,
        "max_tile": game.session.max_tile(),
        "moves": moves,
        "won": reached_win,
        "lost": game.status is Status.LOST,
    }


@app.command()
def simulate(
    games: int = typer.Option(10, "--games", "-g", help="Number of games to play"),
    size: int = typer.Option(DEFAULT_SIZE, "--size", "-n", help="Grid size"),
    hard: bool = typer.Option(False, "--hard", help="Hard mode only spawns 2s"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
    max_moves: Optional[int] = typer.Option(
        None, "--max-moves", help="Stop each game after this many moves"
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Write per-game metrics as JSONL into this directory"
    ),
    use_wandb: bool = typer.Option(False, "--wandb", help="Log metrics to wandb"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every game"),
):
    """Play games with a random agent and report score statistics."""
    try:
        config = GameConfig(
            size=size, difficulty=Difficulty.HARD if hard else Difficulty.NORMAL
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    rng = random.Random(seed)
    game = Game2048(config=config, rng=random.Random(rng.random()))

    with MetricLogger(
        log_dir=log_dir,
        experiment_name="simulate",
        use_wandb=use_wandb,
        wandb_project="2048-simulate",
        wandb_config=config.model_dump(mode="json"),
    ) as logger:
        for _ in tqdm(range(games), desc="Games", disable=verbose):
            metrics = play_random_game(game, rng, max_moves=max_moves)
            logger.log_game(metrics, verbose=verbose)
            if verbose:
                logger.print(format_grid(game.session))

        if games > 0:
            logger.log(
                logger.summary(),
                header=f"\n{'=' * 25}\nSummary ({size}x{size})",
            )


@app.command()
def best(
    size: int = typer.Option(DEFAULT_SIZE, "--size", "-n", help="Grid size"),
    reset: bool = typer.Option(False, "--reset", help="Clear the best score"),
    data_dir: Path = typer.Option(DEFAULT_DATA_DIR, "--data-dir"),
):
    """Show (or clear) the best score for a grid size."""
    store = _open_store(data_dir)
    if reset:
        store.reset_best(size)
        typer.echo(f"Best score for {size}x{size} cleared.")
        return
    typer.echo(f"Best score for {size}x{size}: {store.load_best(size)}")


if __name__ == "__main__":
    app()
