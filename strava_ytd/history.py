"""Replay stepped snapshots into a gist checkout as one backdated commit each."""

from __future__ import annotations

import datetime as dt
import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from .aggregate import AggregationSnapshot, finalize
from .errors import HistoryError
from .render import render_summary

HISTORY_FILENAME = "YTD Strava Stats"
HISTORY_START = dt.datetime(2017, 1, 1, tzinfo=dt.UTC)


def run_git(repo_dir: Path, args: list[str], env: dict[str, str] | None = None) -> None:
    cmd = ["git", *args]
    proc = subprocess.run(
        cmd,
        cwd=repo_dir,
        capture_output=True,
        text=True,
        env={**os.environ, **(env or {})},
    )
    if proc.returncode != 0:
        err = proc.stderr.strip() or proc.stdout.strip() or "unknown git error"
        raise HistoryError(f"git command failed: {' '.join(cmd)}\n{err}")


def rewrite_history(
    repo_dir: Path,
    snapshots: Sequence[AggregationSnapshot],
    units: str = "meters",
    filename: str = HISTORY_FILENAME,
) -> int:
    if shutil.which("git") is None:
        raise HistoryError("git not found on PATH")
    repo_dir = Path(repo_dir).expanduser().resolve()
    if not repo_dir.is_dir():
        raise HistoryError(f"Invalid path to gist repository: {repo_dir}")

    target = repo_dir / filename
    for snapshot in snapshots:
        target.write_text(render_summary(finalize(snapshot), units), encoding="utf-8")
        run_git(repo_dir, ["add", filename])
        run_git(
            repo_dir,
            ["commit", "--allow-empty", "--allow-empty-message", "-m", ""],
            env={"GIT_AUTHOR_DATE": snapshot.as_of.isoformat()},
        )
    return len(snapshots)
