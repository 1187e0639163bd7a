import os

import pytest

from mediamanager.browser import MediaLibrary
from mediamanager.lib.errors import ResolutionFailure


@pytest.fixture
def library(media_tree):
    return MediaLibrary(media_tree)


def test_missing_root_is_skipped(media_tree, tmp_path):
    library = MediaLibrary({**media_tree, "usb": str(tmp_path / "nope")})
    assert set(library.roots) == {"movies", "music"}
    assert library.available
    assert not MediaLibrary({}).available


def test_resolve_media(library, media_tree):
    media = library.resolve("movies/2019/old.avi")
    assert media.extension() == "avi"
    assert media.local_path() == os.path.join(os.path.realpath(media_tree["movies"]),
                                              "2019", "old.avi")
    assert media.to_dict() == {
        "type": "media",
        "root": "movies",
        "name": "old.avi",
        "path": "movies/2019/old.avi",
        "parent": "movies/2019",
    }


def test_extension_is_lowercase(library):
    assert library.resolve("movies/Other.MKV").extension() == "mkv"
    assert library.resolve("movies/2019").extension() == ""


def test_resolve_root(library):
    root = library.resolve("movies/")
    assert root.is_dir
    assert root.path_id() == "movies"
    assert root.parent_id() == ""


@pytest.mark.parametrize("media_id", [
    "",
    "/",
    "tv/show.mkv",
    "movies/../music/song.mp3",
    "movies/../../etc/passwd",
    "movies/missing.mp4",
])
def test_resolve_failures(library, media_id):
    with pytest.raises(ResolutionFailure):
        library.resolve(media_id)


def test_browse_index(library):
    listing = library.browse("")
    assert listing["type"] == "dir"
    assert listing["parent"] is None
    assert [c["name"] for c in listing["children"]] == ["movies", "music"]


def test_browse_directory_sorted_without_hidden(library):
    listing = library.browse("movies", playable=lambda m: m.extension() in ("mp4", "mkv"))
    assert listing["path"] == "movies"
    children = {c["name"]: c for c in listing["children"]}
    assert list(children) == ["2019", "film.mp4", "Other.MKV"]
    assert children["2019"]["type"] == "dir"
    assert "playable" not in children["2019"]
    assert children["film.mp4"]["playable"] is True
    assert children["Other.MKV"]["path"] == "movies/Other.MKV"


def test_browse_single_media(library):
    listing = library.browse("music/song.mp3", playable=lambda m: False)
    assert listing["type"] == "media"
    assert listing["playable"] is False
    assert "children" not in listing


def test_media_equality(library):
    assert library.resolve("movies/film.mp4") == library.resolve("movies//film.mp4")
    assert len({library.resolve("movies/film.mp4"), library.resolve("movies/film.mp4")}) == 1
