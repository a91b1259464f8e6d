import json

from typer.testing import CliRunner

from game import Session, Tile
from play_cli import app, format_grid
from storage import FileBackend, GameStore

runner = CliRunner()


def test_format_grid():
    session = Session(
        size=2,
        tiles=[Tile(id=1, value=2, x=0, y=0), Tile(id=2, value=16, x=1, y=1)],
        next_id=3,
    )
    assert format_grid(session, indent="") == "\n".join(
        [
            "┌─────────┐",
            "│ 2  │ .  │",
            "├─────────┤",
            "│ .  │ 16 │",
            "└─────────┘",
        ]
    )


def test_simulate_reports_summary():
    result = runner.invoke(
        app, ["simulate", "--games", "3", "--seed", "7", "--size", "3", "--max-moves", "300"]
    )
    assert result.exit_code == 0, result.output
    assert "Summary (3x3)" in result.output
    assert "mean_score" in result.output
    assert "win_rate" in result.output


def test_simulate_writes_jsonl(tmp_path):
    result = runner.invoke(
        app,
        ["simulate", "-g", "2", "--seed", "1", "--max-moves", "50", "--log-dir", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output

    (log_file,) = tmp_path.glob("simulate_*.jsonl")
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [r["step"] for r in records[:2]] == [1, 2]
    assert all(r["moves"] <= 50 for r in records[:2])
    assert records[-1]["games"] == 2


def test_simulate_rejects_bad_size():
    result = runner.invoke(app, ["simulate", "--size", "1"])
    assert result.exit_code == 1


def test_best_show_and_reset(tmp_path):
    GameStore(FileBackend(tmp_path)).save_best(4, 512)

    result = runner.invoke(app, ["best", "--data-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "512" in result.output

    result = runner.invoke(app, ["best", "--reset", "--data-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert GameStore(FileBackend(tmp_path)).load_best(4) == 0
