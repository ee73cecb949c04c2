"""
Shared pytest fixtures for tabpretrain CLI tests.

These fixtures provide a Typer `CliRunner`, isolate the working directory to a
temporary path and write a small CSV dataset for the commands to read.
"""
import logging
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from typer.testing import CliRunner


@pytest.fixture(scope="session")
def runner() -> CliRunner:
    """Return a Typer CliRunner instance for invoking commands."""
    return CliRunner()


@pytest.fixture
def monkeypatch_cwd_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Change the working directory to a temporary path for the test."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def data_csv(monkeypatch_cwd_tmp: Path) -> Path:
    """Write a 40-row mixed-type CSV into the temporary working directory."""
    rng = np.random.default_rng(3)
    n = 40
    frame = pd.DataFrame(
        {
            "height": rng.normal(170, 10, size=n),
            "weight": rng.normal(70, 8, size=n),
            "city": rng.choice(["paris", "lyon", "nice"], size=n),
        }
    )
    frame.loc[::7, "weight"] = np.nan
    path = monkeypatch_cwd_tmp / "data.csv"
    frame.to_csv(path, index=False)
    return path


@pytest.fixture(autouse=True)
def _reset_tabpretrain_handlers():
    yield
    logger = logging.getLogger("tabpretrain")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
