"""
Shared pytest fixtures for the batch compressor test suite.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    tmp_dir = Path(tempfile.mkdtemp())
    yield tmp_dir
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def make_file(temp_dir):
    """Factory writing a file of random bytes (or given content) under temp_dir."""
    def _make_file(name: str, size: int = 0, content: bytes = None) -> Path:
        path = temp_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content if content is not None else os.urandom(size))
        return path
    return _make_file
