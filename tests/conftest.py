"""Shared test fixtures."""

import sys
from pathlib import Path

import pytest
from rich.console import Console

# Make _helpers importable from test files
sys.path.insert(0, str(Path(__file__).parent))

from _helpers import SCORE, make_candidate  # noqa: E402

from paretoprompt.models import OptimizationConfig  # noqa: E402

__all__ = ["make_candidate"]


@pytest.fixture
def config() -> OptimizationConfig:
    return OptimizationConfig(objectives=SCORE, seed=7, evaluation_timeout=5.0)


@pytest.fixture
def quiet_console() -> Console:
    return Console(quiet=True)
