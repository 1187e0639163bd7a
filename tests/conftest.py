import os
import sys

import pytest

# Add tests directory to path for test utilities
TESTS_DIR = os.path.dirname(__file__)
if TESTS_DIR not in sys.path:
    sys.path.append(TESTS_DIR)

from mediamanager.lib import config


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Every test starts from an empty, already-loaded config and a clean env."""
    monkeypatch.setattr(config, "_config", {})
    for var in ("MEDIA_ROOTS", "MEDIAMANAGER_CONFIG", "NOTIFY_SOCKET"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def media_tree(tmp_path):
    """movies/{film.mp4, Other.MKV, .hidden.mp4, 2019/old.avi} and music/{song.mp3}."""
    movies = tmp_path / "movies"
    (movies / "2019").mkdir(parents=True)
    (movies / "film.mp4").write_bytes(b"")
    (movies / "Other.MKV").write_bytes(b"")
    (movies / ".hidden.mp4").write_bytes(b"")
    (movies / "2019" / "old.avi").write_bytes(b"")
    music = tmp_path / "music"
    music.mkdir()
    (music / "song.mp3").write_bytes(b"")
    return {"movies": str(movies), "music": str(music)}
