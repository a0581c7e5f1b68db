"""
Scanner - liest Show-Verzeichnisse und Episoden-Dateien von der Platte
Kein DB-Zugriff, nur Verzeichnislisten und stat()
"""
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterator, List, Optional, Set, Tuple, Union

from showshelf.errors import AccessError, ScanCancelled
from showshelf.services.episode_parser import display_name

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_EXTENSIONS = frozenset({"mkv", "mp4", "ts"})
DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class ScanSettings:
    video_extensions: FrozenSet[str] = DEFAULT_VIDEO_EXTENSIONS
    max_depth: int = DEFAULT_MAX_DEPTH
    casefold: Optional[bool] = None  # None = Plattform-Default


@dataclass(frozen=True)
class ShowDir:
    path: str
    name: str


@dataclass(frozen=True)
class EpisodeFile:
    path: str
    name: str
    show_path: str
    mtime: float
    size: Optional[int] = None


RawEntry = Union[ShowDir, EpisodeFile]


@dataclass
class ScanResult:
    """Ergebnis eines Scan-Durchlaufs, wird nicht persistiert"""
    root: str
    shows: List[Tuple[ShowDir, List[EpisodeFile]]] = field(default_factory=list)
    errors: List[AccessError] = field(default_factory=list)
    incomplete: Set[str] = field(default_factory=set)  # Show-Pfade mit Lesefehlern

    @property
    def episode_count(self) -> int:
        return sum(len(episodes) for _, episodes in self.shows)


def _check_cancel(cancel: Optional[threading.Event]):
    if cancel is not None and cancel.is_set():
        raise ScanCancelled("Scan cancelled")


class Scanner:
    """Walks a library root: every directory below it is a show, video files inside are episodes."""

    def __init__(self, settings: Optional[ScanSettings] = None):
        self.settings = settings or ScanSettings()

    def _list_dir(self, path: str) -> List[os.DirEntry]:
        with os.scandir(path) as it:
            return sorted(it, key=lambda e: e.name)

    def _is_video(self, filename: str) -> bool:
        ext = os.path.splitext(filename)[1].lstrip(".").lower()
        return ext in self.settings.video_extensions

    def _report(self, error: AccessError, on_error: Optional[Callable[[AccessError], None]]):
        logger.warning(f"✗ Skipping unreadable entry: {error}")
        if on_error is not None:
            on_error(error)

    def scan(
        self,
        root,
        on_error: Optional[Callable[[AccessError], None]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[RawEntry]:
        """
        Lazy Sequenz von ShowDir/EpisodeFile Einträgen.
        Jeder Aufruf liest den Baum neu ein.
        """
        root = os.fspath(root)
        try:
            entries = self._list_dir(root)
        except OSError as e:
            raise AccessError(root, e.strerror or str(e)) from e

        for entry in entries:
            _check_cancel(cancel)
            if entry.name.startswith("."):
                continue
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                self._report(AccessError(entry.path, e.strerror or str(e)), on_error)
                continue
            if not is_dir:
                continue

            yield ShowDir(path=entry.path, name=entry.name)
            yield from self._walk_show(entry.path, on_error, cancel)

    def _walk_show(self, show_path: str, on_error, cancel) -> Iterator[EpisodeFile]:
        stack = [(show_path, 1)]
        while stack:
            directory, depth = stack.pop()
            _check_cancel(cancel)
            try:
                entries = self._list_dir(directory)
            except OSError as e:
                self._report(AccessError(directory, e.strerror or str(e), show_path=show_path), on_error)
                continue

            subdirs = []
            for entry in entries:
                _check_cancel(cancel)
                if entry.name.startswith("."):
                    continue
                try:
                    if entry.is_dir():
                        if depth < self.settings.max_depth:
                            subdirs.append(entry.path)
                        continue
                    if not entry.is_file() or not self._is_video(entry.name):
                        continue
                    st = entry.stat()
                except OSError as e:
                    self._report(AccessError(entry.path, e.strerror or str(e), show_path=show_path), on_error)
                    continue

                yield EpisodeFile(
                    path=entry.path,
                    name=display_name(entry.name),
                    show_path=show_path,
                    mtime=st.st_mtime,
                    size=st.st_size,
                )

            # sortierte Reihenfolge beibehalten
            for sub in reversed(subdirs):
                stack.append((sub, depth + 1))

    def collect(self, root, cancel: Optional[threading.Event] = None) -> ScanResult:
        """Drains scan() into a ScanResult (shows with their episodes, errors, incomplete shows)."""
        result = ScanResult(root=os.fspath(root))

        def on_error(error: AccessError):
            result.errors.append(error)
            # Fehler direkt unter dem Root: der Eintrag selbst könnte eine Show sein
            result.incomplete.add(error.show_path or error.path)

        episodes: List[EpisodeFile] = []
        for entry in self.scan(root, on_error=on_error, cancel=cancel):
            if isinstance(entry, ShowDir):
                episodes = []
                result.shows.append((entry, episodes))
            else:
                episodes.append(entry)

        logger.info(
            f"Scanned {result.root}: {len(result.shows)} shows, "
            f"{result.episode_count} episodes, {len(result.errors)} unreadable"
        )
        return result
