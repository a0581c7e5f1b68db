from datetime import datetime, timedelta
from pathlib import Path

import pytest

from showshelf.database import Database
from showshelf.services.library import Library
from showshelf.services.scanner import ScanSettings


class StepClock:
    """Deterministic clock: every call is one minute later than the previous one."""

    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'showshelf.db'}")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def library(database, clock):
    return Library(database, settings=ScanSettings(casefold=False), clock=clock)


@pytest.fixture
def media_root(tmp_path):
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def make_show():
    def _make(root: Path, name: str, files=()):
        show_dir = root / name
        show_dir.mkdir(parents=True, exist_ok=True)
        for rel in files:
            target = show_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"video")
        return show_dir
    return _make
