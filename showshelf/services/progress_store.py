"""
Progress Store - aktuelle Episode und "zuletzt gesehen" pro Show
Jede Änderung ist eine eigene Single-Row Transaktion
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from showshelf.database import Database
from showshelf.errors import InvariantViolation, NotFoundError
from showshelf.models.episode import Episode
from showshelf.models.progress import Progress
from showshelf.models.show import Show
from showshelf.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressState:
    show_id: int
    current_episode_id: Optional[int]
    last_watched: Optional[datetime]


def clear_pointers_to(db: Session, episode_ids: Iterable[int]) -> int:
    """Clear every current-episode pointer that references one of *episode_ids*.

    Runs inside the caller's transaction; returns the number of cleared rows.
    """
    ids = list(episode_ids)
    if not ids:
        return 0
    return (
        db.query(Progress)
        .filter(Progress.current_episode_id.in_(ids))
        .update({Progress.current_episode_id: None}, synchronize_session=False)
    )


def check_pointer(db: Session, progress: Progress) -> Optional[Episode]:
    """Loads the current episode of *progress*; a dangling pointer is an InvariantViolation."""
    if progress.current_episode_id is None:
        return None
    episode = db.query(Episode).filter_by(id=progress.current_episode_id).first()
    if episode is None:
        raise InvariantViolation(
            f"Show {progress.show_id} points to missing episode {progress.current_episode_id}"
        )
    if episode.show_id != progress.show_id:
        raise InvariantViolation(
            f"Show {progress.show_id} points to episode {episode.id} of show {episode.show_id}"
        )
    return episode


class ProgressStore:
    def __init__(self, database: Database, clock: Callable[[], datetime] = utcnow):
        self.database = database
        self.clock = clock

    def set_current_episode(self, show_id: int, episode_id: int) -> ProgressState:
        """Setzt die aktuelle Episode und aktualisiert last_watched"""
        now = self.clock()
        with self.database.transaction() as db:
            show = db.query(Show).filter_by(id=show_id).first()
            if not show:
                raise NotFoundError("Show", show_id)
            episode = db.query(Episode).filter_by(id=episode_id).first()
            if not episode:
                raise NotFoundError("Episode", episode_id)
            if episode.show_id != show_id:
                raise NotFoundError("Episode", episode_id, f"not part of show {show_id}")

            progress = db.query(Progress).filter_by(show_id=show_id).first()
            if not progress:
                progress = Progress(show_id=show_id)
                db.add(progress)
            progress.current_episode_id = episode_id
            progress.last_watched = now

        logger.info(f"✓ {show.name}: now at {episode.name}")
        return ProgressState(show_id=show_id, current_episode_id=episode_id, last_watched=now)

    def get_progress(self, show_id: int) -> ProgressState:
        with self.database.session() as db:
            if not db.query(Show.id).filter_by(id=show_id).first():
                raise NotFoundError("Show", show_id)
            progress = db.query(Progress).filter_by(show_id=show_id).first()
            if not progress:
                return ProgressState(show_id=show_id, current_episode_id=None, last_watched=None)
            check_pointer(db, progress)
            return ProgressState(
                show_id=show_id,
                current_episode_id=progress.current_episode_id,
                last_watched=progress.last_watched,
            )

    def clear_current_episode(self, show_id: int) -> bool:
        """Entfernt den Zeiger auf die aktuelle Episode; mehrfach aufrufbar.

        last_watched bleibt erhalten. Gibt True zurück, wenn etwas geändert wurde.
        """
        with self.database.transaction() as db:
            if not db.query(Show.id).filter_by(id=show_id).first():
                raise NotFoundError("Show", show_id)
            changed = (
                db.query(Progress)
                .filter(Progress.show_id == show_id, Progress.current_episode_id.isnot(None))
                .update({Progress.current_episode_id: None}, synchronize_session=False)
            )
        if changed:
            logger.info(f"Cleared current episode of show {show_id}")
        return bool(changed)
