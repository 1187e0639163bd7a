"""
Media library: turns public media ids into local files and lists directories.

A media id is ``root[/middle/path]/name`` where ``root`` is one of the
configured root names.  The empty id is the index (the list of roots).

    library = MediaLibrary({"movies": "/mnt/movies"})
    media = library.resolve("movies/2019/film.mkv")
    media.extension()     # "mkv"
    media.local_path()    # "/mnt/movies/2019/film.mkv"
"""

import logging
from pathlib import Path
from typing import Callable

from .lib.errors import ResolutionFailure

log = logging.getLogger(__name__)


class MediaFile:
    """A resolved file or directory below one of the roots."""

    def __init__(self, root: str, rel: str, real: Path, is_dir: bool):
        self.root = root
        self.rel = rel            # path below the root, "" for the root itself
        self.real = real
        self.is_dir = is_dir

    @property
    def name(self) -> str:
        return self.rel.rsplit("/", 1)[-1] if self.rel else self.root

    def extension(self) -> str:
        """Lower-cased text after the last dot of the name, "" when there is none."""
        if self.is_dir or "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()

    def local_path(self) -> str:
        return str(self.real)

    def path_id(self) -> str:
        return f"{self.root}/{self.rel}" if self.rel else self.root

    def parent_id(self) -> str:
        if not self.rel:
            return ""
        parent = self.rel.rsplit("/", 1)[0] if "/" in self.rel else ""
        return f"{self.root}/{parent}" if parent else self.root

    def to_dict(self) -> dict:
        return {
            "type": "dir" if self.is_dir else "media",
            "root": self.root,
            "name": self.name,
            "path": self.path_id(),
            "parent": self.parent_id(),
        }

    def __eq__(self, other):
        if not isinstance(other, MediaFile):
            return NotImplemented
        return self.real == other.real

    def __hash__(self):
        return hash(self.real)

    def __repr__(self):
        return f"MediaFile({self.path_id()!r} → {self.real})"


class MediaLibrary:
    """Stateless resolution and listing over the configured roots."""

    def __init__(self, roots: dict[str, str]):
        self.roots: dict[str, Path] = {}
        for name, path in roots.items():
            rp = Path(path).expanduser().resolve()
            if rp.is_dir():
                self.roots[name] = rp
                log.info("Root %s: %s", name, rp)
            else:
                log.warning("Root %s not found: %s", name, path)

    @property
    def available(self) -> bool:
        return len(self.roots) > 0

    def resolve(self, media_id: str) -> MediaFile:
        """Resolve a public id. Raises ResolutionFailure; prevents traversal."""
        media_id = (media_id or "").strip("/")
        if not media_id:
            raise ResolutionFailure("the index is not a media")

        root_name, _, rest = media_id.partition("/")
        rest = rest.strip("/")
        root = self.roots.get(root_name)
        if root is None:
            raise ResolutionFailure(f"invalid root: {root_name}")

        target = (root / rest).resolve() if rest else root
        if not target.is_relative_to(root):
            raise ResolutionFailure(f"{media_id} is outside of {root_name}")
        if not target.exists():
            raise ResolutionFailure(f"{media_id} does not exist")

        rel = str(target.relative_to(root))
        return MediaFile(root_name, "" if rel == "." else rel, target, target.is_dir())

    def browse(self, media_id: str = "",
               playable: Callable[[MediaFile], bool] | None = None) -> dict:
        """Describe the index, a directory with its children, or a single media."""
        if not (media_id or "").strip("/"):
            return {
                "type": "dir",
                "name": "",
                "path": "",
                "parent": None,
                "children": [self._describe(self.resolve(name), playable)
                             for name in sorted(self.roots, key=str.lower)],
            }

        media = self.resolve(media_id)
        listing = self._describe(media, playable)
        if media.is_dir:
            log.debug("Browse directory %s", media.real)
            listing["children"] = [self._describe(child, playable)
                                   for child in self._children(media)]
        return listing

    def _children(self, media: MediaFile) -> list[MediaFile]:
        try:
            entries = sorted(media.real.iterdir(), key=lambda e: e.name.lower())
        except OSError as e:
            raise ResolutionFailure(f"Can not list {media.path_id()}: {e}") from e

        children = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            rel = f"{media.rel}/{entry.name}" if media.rel else entry.name
            children.append(MediaFile(media.root, rel, entry, entry.is_dir()))
        return children

    @staticmethod
    def _describe(media: MediaFile, playable) -> dict:
        info = media.to_dict()
        if not media.is_dir and playable is not None:
            info["playable"] = playable(media)
        return info
