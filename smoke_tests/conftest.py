"""Fixtures for smoke tests: package imports and mypy over the source tree."""

from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "src" / "cisl_io"


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def package_dir() -> Path:
    """Return the cisl_io package directory path."""
    return PACKAGE_DIR
