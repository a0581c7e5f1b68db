"""
Query Layer - nur lesende Sichten auf Index und Fortschritt
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from showshelf.database import Database
from showshelf.errors import NotFoundError
from showshelf.models.episode import Episode
from showshelf.models.progress import Progress
from showshelf.models.show import Show
from showshelf.services.episode_parser import episode_sort_key
from showshelf.services.progress_store import check_pointer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShowListing:
    """Show mit Fortschritt, für die "Zuletzt gesehen" Liste"""
    id: int
    name: str
    path: str
    last_scanned: Optional[datetime]
    last_watched: Optional[datetime]
    current_episode_id: Optional[int]


def _sorted_episodes(db: Session, show_id: int) -> List[Episode]:
    episodes = db.query(Episode).filter(Episode.show_id == show_id).all()
    return sorted(
        episodes,
        key=lambda e: episode_sort_key(bool(e.special), e.season, e.number, e.name, e.id),
    )


def _require_show(db: Session, show_id: int) -> Show:
    show = db.query(Show).filter_by(id=show_id).first()
    if not show:
        raise NotFoundError("Show", show_id)
    return show


class LibraryQuery:
    def __init__(self, database: Database):
        self.database = database

    def get_show(self, show_id: int) -> Show:
        with self.database.session() as db:
            return _require_show(db, show_id)

    def list_shows_by_recency(self) -> List[ShowListing]:
        """
        Zuletzt gesehene Shows zuerst, Shows ohne Fortschritt am Ende.
        Gleichstand: Name aufsteigend, dann id.
        """
        with self.database.session() as db:
            rows = (
                db.query(Show, Progress)
                .outerjoin(Progress, Progress.show_id == Show.id)
                .order_by(
                    Progress.last_watched.is_(None),
                    Progress.last_watched.desc(),
                    Show.name.asc(),
                    Show.id.asc(),
                )
                .all()
            )
            return [
                ShowListing(
                    id=show.id,
                    name=show.name,
                    path=show.path,
                    last_scanned=show.last_scanned,
                    last_watched=progress.last_watched if progress else None,
                    current_episode_id=progress.current_episode_id if progress else None,
                )
                for show, progress in rows
            ]

    def list_episodes(self, show_id: int) -> List[Episode]:
        with self.database.session() as db:
            _require_show(db, show_id)
            return _sorted_episodes(db, show_id)

    def resume_point(self, show_id: int) -> Optional[Episode]:
        """Aktuelle Episode, sonst die erste Episode der Show ("von vorne")"""
        with self.database.session() as db:
            _require_show(db, show_id)
            progress = db.query(Progress).filter_by(show_id=show_id).first()
            if progress and progress.current_episode_id is not None:
                return check_pointer(db, progress)
            episodes = _sorted_episodes(db, show_id)
            return episodes[0] if episodes else None

    def next_episode(self, show_id: int) -> Optional[Episode]:
        """
        Episode nach der aktuellen in natürlicher Reihenfolge.
        Dateien mit derselben (Staffel, Nummer) wie die aktuelle zählen als dieselbe Folge.
        None am Ende der Liste oder wenn die aktuelle Episode ein Special ist.
        """
        with self.database.session() as db:
            _require_show(db, show_id)
            episodes = _sorted_episodes(db, show_id)
            progress = db.query(Progress).filter_by(show_id=show_id).first()
            if not progress or progress.current_episode_id is None:
                return episodes[0] if episodes else None

            current = check_pointer(db, progress)
            if current.special:
                return None
            position = next(i for i, e in enumerate(episodes) if e.id == current.id)
            for following in episodes[position + 1:]:
                if following.special:
                    return None
                # weitere Dateien derselben Folge (v2, Re-Release) überspringen
                if (following.season, following.number) == (current.season, current.number):
                    continue
                return following
            return None
