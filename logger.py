"""Metric logging for played and simulated games."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

import typer


class MetricLogger:
    """
    Sends move and game records to the console (typer.echo), to a JSONL file
    when a log directory is given, and to wandb when asked to.

    Usage:
        with MetricLogger(log_dir="./logs", experiment_name="simulate") as logger:
            logger.log_game({"score": 2316, "max_tile": 256, "moves": 231, "won": False})
            logger.log(logger.summary(), header="Summary")

    Console output of a record looks like:
        --- Game 1 ---
          score: 2316
          max_tile: 256
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        experiment_name: str = "games",
        step_label: str = "Game",
        use_wandb: bool = False,
        wandb_project: str | None = None,
        wandb_config: dict[str, Any] | None = None,
    ):
        self.step_label = step_label
        self.log_file: Path | None = None
        self._out: TextIO | None = None
        self._wandb = None
        self._games: list[dict[str, Any]] = []

        if log_dir is not None:
            directory = Path(log_dir)
            directory.mkdir(parents=True, exist_ok=True)
            self.log_file = self._next_log_file(directory, experiment_name)
            self._out = open(self.log_file, "a")
            typer.echo(f"Logging to: {self.log_file}")

        if use_wandb:
            try:
                import wandb
            except ImportError:
                typer.echo("Warning: wandb not installed. Install with 'pip install wandb'")
            else:
                self._wandb = wandb.init(
                    project=wandb_project, config=wandb_config, reinit=True
                )

    @staticmethod
    def _next_log_file(directory: Path, name: str) -> Path:
        """<name>_<yyyymmdd>_<nnn>.jsonl, numbered past any existing file."""
        day = datetime.now().strftime("%Y%m%d")
        n = 1
        while (directory / f"{name}_{day}_{n:03d}.jsonl").exists():
            n += 1
        return directory / f"{name}_{day}_{n:03d}.jsonl"

    @staticmethod
    def _fmt(value: Any) -> str:
        if isinstance(value, float):
            return f"{value:.3f}".rstrip("0").rstrip(".") if value else "0"
        return str(value)

    def log(
        self,
        metrics: dict[str, Any],
        step: int | None = None,
        header: str | None = None,
        verbose: bool = True,
    ) -> None:
        """
        Record one set of metrics.

        Args:
            metrics: metric name -> value (JSON serializable).
            step: move or game number, stored with the record.
            header: console header; defaults to "--- {step_label} {step} ---".
            verbose: echo to the console as well as the file/wandb sinks.
        """
        if verbose:
            if header is None and step is not None:
                header = f"--- {self.step_label} {step} ---"
            if header is not None:
                typer.echo(header)
            for key, value in metrics.items():
                typer.echo(f"  {key}: {self._fmt(value)}")

        if self._out is not None:
            record = {"step": step, "timestamp": datetime.now().isoformat(), **metrics}
            self._out.write(json.dumps(record) + "\n")
            self._out.flush()

        if self._wandb is not None:
            import wandb

            charted = {
                key: value
                for key, value in metrics.items()
                if isinstance(value, (int, float)) and not isinstance(value, bool)
            }
            wandb.log(charted, step=step)

    def log_game(self, metrics: dict[str, Any], verbose: bool = False) -> int:
        """Record a finished game and count it towards the summary. Returns its number."""
        self._games.append(metrics)
        number = len(self._games)
        self.log(metrics, step=number, verbose=verbose)
        return number

    def summary(self) -> dict[str, Any]:
        """Aggregate of the games logged so far."""
        games = len(self._games)
        if not games:
            return {"games": 0}
        scores = [g["score"] for g in self._games]
        return {
            "games": games,
            "mean_score": sum(scores) / games,
            "max_score": max(scores),
            "best_tile": max(g["max_tile"] for g in self._games),
            "win_rate": sum(bool(g.get("won")) for g in self._games) / games,
        }

    def print(self, message: str = "") -> None:
        """Console only."""
        typer.echo(message)

    def close(self) -> None:
        if self._out is not None:
            self._out.close()
            self._out = None

        if self._wandb is not None:
            import wandb

            wandb.finish()
            self._wandb = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
