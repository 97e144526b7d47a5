"""Shared fixtures for papermirror tests."""

import pytest

from papermirror.store.mirror import MirrorStore


@pytest.fixture()
def store(tmp_path):
    """Create a MirrorStore with a temporary database."""
    with MirrorStore(tmp_path / "mirror.db") as s:
        yield s
