"""
Reconciler - gleicht Scan-Ergebnis mit dem persistierten Index ab

reconcile() ist rein (kein I/O) und liefert einen ReconcilePlan,
Reconciler.apply() schreibt ihn in genau einer Transaktion.
"""
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from showshelf.database import Database
from showshelf.errors import PathEncodingError
from showshelf.models.episode import Episode
from showshelf.models.progress import Progress
from showshelf.models.show import Show
from showshelf.services.episode_parser import parse_episode
from showshelf.services.progress_store import clear_pointers_to
from showshelf.services.scanner import ScanResult
from showshelf.utils.clock import utcnow
from showshelf.utils.paths import is_within, normalize

logger = logging.getLogger(__name__)

# SQLite Variablen-Limit für IN (...)
CHUNK_SIZE = 500


@dataclass(frozen=True)
class ShowRecord:
    id: int
    key: str
    name: str
    path: str


@dataclass(frozen=True)
class EpisodeRecord:
    id: int
    key: str
    show_id: int
    name: str
    path: str
    season: Optional[int]
    number: Optional[int]
    special: bool
    mtime: Optional[float]
    size: Optional[int]


@dataclass
class ExistingIndex:
    """Snapshot of everything persisted under one library root."""
    root_key: str
    shows: List[ShowRecord] = field(default_factory=list)
    episodes: List[EpisodeRecord] = field(default_factory=list)
    # show_id -> current_episode_id, nur für vorhandene Progress-Zeilen
    progress: Dict[int, Optional[int]] = field(default_factory=dict)
    # Keys, die bereits unter einem anderen Root indexiert sind
    foreign_keys: Set[str] = field(default_factory=set)
    # Show-Keys anderer Roots; darunter liegende Verzeichnisse gehören diesen Shows
    foreign_show_keys: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ShowInsert:
    key: str
    name: str
    path: str


@dataclass(frozen=True)
class ShowUpdate:
    id: int
    name: str
    path: str


@dataclass(frozen=True)
class EpisodeInsert:
    key: str
    show_key: str
    show_id: Optional[int]  # None wenn die Show im selben Plan neu angelegt wird
    name: str
    path: str
    season: Optional[int]
    number: Optional[int]
    special: bool
    mtime: float
    size: Optional[int]


@dataclass(frozen=True)
class EpisodeUpdate:
    id: int
    show_key: str
    show_id: Optional[int]  # neuer Besitzer; None wenn die Show im selben Plan neu angelegt wird
    moved: bool  # Episode wechselt die Show
    name: str
    path: str
    season: Optional[int]
    number: Optional[int]
    special: bool
    mtime: float
    size: Optional[int]


@dataclass(frozen=True)
class Collision:
    key: str
    kept_path: str
    dropped_path: str


@dataclass
class ReconcilePlan:
    root_key: str
    show_inserts: List[ShowInsert] = field(default_factory=list)
    show_updates: List[ShowUpdate] = field(default_factory=list)
    show_removes: List[int] = field(default_factory=list)
    episode_inserts: List[EpisodeInsert] = field(default_factory=list)
    episode_updates: List[EpisodeUpdate] = field(default_factory=list)
    episode_removes: List[int] = field(default_factory=list)
    progress_clears: List[int] = field(default_factory=list)  # show_ids, deren current episode entfernt wird
    progress_removes: List[int] = field(default_factory=list)  # show_ids, deren Progress mit der Show geht
    collisions: List[Collision] = field(default_factory=list)
    invalid_paths: List[str] = field(default_factory=list)  # nicht dekodierbare Pfade, übersprungen

    @property
    def is_empty(self) -> bool:
        return not (
            self.show_inserts or self.show_updates or self.show_removes
            or self.episode_inserts or self.episode_updates or self.episode_removes
            or self.progress_clears or self.progress_removes
        )

    def summary(self) -> dict:
        return {
            "shows_inserted": len(self.show_inserts),
            "shows_updated": len(self.show_updates),
            "shows_removed": len(self.show_removes),
            "episodes_inserted": len(self.episode_inserts),
            "episodes_updated": len(self.episode_updates),
            "episodes_removed": len(self.episode_removes),
            "progress_cleared": len(self.progress_clears),
            "collisions": len(self.collisions),
            "invalid_paths": len(self.invalid_paths),
        }


@dataclass
class ApplyResult:
    shows_inserted: int = 0
    shows_updated: int = 0
    shows_removed: int = 0
    episodes_inserted: int = 0
    episodes_updated: int = 0
    episodes_removed: int = 0
    progress_cleared: int = 0
    progress_removed: int = 0

    @property
    def writes(self) -> int:
        return (
            self.shows_inserted + self.shows_updated + self.shows_removed
            + self.episodes_inserted + self.episodes_updated + self.episodes_removed
            + self.progress_cleared + self.progress_removed
        )


def _collision(plan: ReconcilePlan, key: str, kept_path: str, dropped_path: str):
    logger.warning(f"⚠ Path collision on {key}: keeping {kept_path}, ignoring {dropped_path}")
    plan.collisions.append(Collision(key=key, kept_path=kept_path, dropped_path=dropped_path))


def _key_for(plan: ReconcilePlan, normalize_key, path: str) -> Optional[str]:
    try:
        return normalize_key(path)
    except PathEncodingError as e:
        logger.warning(f"⚠ Skipping undecodable path: {e}")
        plan.invalid_paths.append(path)
        return None


def reconcile(
    existing: ExistingIndex,
    scan: ScanResult,
    normalize_key: Callable[[str], str] = normalize,
) -> ReconcilePlan:
    """
    Berechnet Inserts/Updates/Removes zwischen persistiertem Index und Scan.

    Identität = NormalizedKey des Pfads. Bei zwei Einträgen mit gleichem Key
    gewinnt der zuerst gesehene. Einträge unter unlesbaren Unterbäumen werden
    nie entfernt.
    """
    plan = ReconcilePlan(root_key=existing.root_key)

    shows_by_key = {s.key: s for s in existing.shows}
    show_keys_by_id = {s.id: s.key for s in existing.shows}
    episodes_by_key = {e.key: e for e in existing.episodes}
    incomplete = set()
    for path in scan.incomplete:
        key = _key_for(plan, normalize_key, path)
        if key is not None:
            incomplete.add(key)

    seen_shows: Dict[str, str] = {}
    seen_episodes: Dict[str, str] = {}

    for show_dir, files in scan.shows:
        show_key = _key_for(plan, normalize_key, show_dir.path)
        if show_key is None:
            continue
        if show_key in seen_shows:
            _collision(plan, show_key, seen_shows[show_key], show_dir.path)
            continue
        if show_key in existing.foreign_keys:
            _collision(plan, show_key, "<other library root>", show_dir.path)
            continue
        # Root liegt in einer Show eines anderen Roots: Unterverzeichnisse sind keine Shows
        owner = next((k for k in existing.foreign_show_keys if is_within(show_key, k)), None)
        if owner is not None:
            _collision(plan, show_key, owner, show_dir.path)
            continue
        seen_shows[show_key] = show_dir.path

        record = shows_by_key.get(show_key)
        if record is None:
            plan.show_inserts.append(ShowInsert(key=show_key, name=show_dir.name, path=show_dir.path))
        elif record.name != show_dir.name or record.path != show_dir.path:
            plan.show_updates.append(ShowUpdate(id=record.id, name=show_dir.name, path=show_dir.path))

        for f in files:
            episode_key = _key_for(plan, normalize_key, f.path)
            if episode_key is None:
                continue
            if episode_key in seen_episodes:
                _collision(plan, episode_key, seen_episodes[episode_key], f.path)
                continue
            if episode_key in existing.foreign_keys:
                _collision(plan, episode_key, "<other library root>", f.path)
                continue
            seen_episodes[episode_key] = f.path

            parsed = parse_episode(f.path)
            current = episodes_by_key.get(episode_key)
            moved = current is not None and (record is None or current.show_id != record.id)
            if current is None:
                plan.episode_inserts.append(EpisodeInsert(
                    key=episode_key,
                    show_key=show_key,
                    show_id=record.id if record is not None else None,
                    name=f.name,
                    path=f.path,
                    season=parsed.season,
                    number=parsed.number,
                    special=parsed.special,
                    mtime=f.mtime,
                    size=f.size,
                ))
            elif (
                moved
                or current.name != f.name
                or current.path != f.path
                or current.mtime != f.mtime
                or current.size != f.size
                or (current.season, current.number, current.special) != (parsed.season, parsed.number, parsed.special)
            ):
                plan.episode_updates.append(EpisodeUpdate(
                    id=current.id,
                    show_key=show_key,
                    show_id=record.id if record is not None else None,
                    moved=moved,
                    name=f.name,
                    path=f.path,
                    season=parsed.season,
                    number=parsed.number,
                    special=parsed.special,
                    mtime=f.mtime,
                    size=f.size,
                ))

    # Nicht mehr gesehen -> REMOVE
    for record in existing.shows:
        if record.key in seen_shows or record.key in incomplete:
            continue
        plan.show_removes.append(record.id)

    removed_shows = set(plan.show_removes)
    for record in existing.episodes:
        if record.key in seen_episodes:
            continue
        if record.show_id not in removed_shows and show_keys_by_id.get(record.show_id) in incomplete:
            continue
        plan.episode_removes.append(record.id)

    removed_episodes = set(plan.episode_removes)
    # Episode wandert zu einer anderen Show: der Zeiger der alten Show darf nicht mitwandern
    moved_episodes = {u.id for u in plan.episode_updates if u.moved}
    for show_id, current_episode_id in existing.progress.items():
        if show_id in removed_shows:
            plan.progress_removes.append(show_id)
        elif current_episode_id is not None and (
            current_episode_id in removed_episodes or current_episode_id in moved_episodes
        ):
            plan.progress_clears.append(show_id)

    plan.show_removes.sort()
    plan.episode_removes.sort()
    plan.progress_clears.sort()
    plan.progress_removes.sort()
    return plan


def _chunks(items: List[int]):
    for i in range(0, len(items), CHUNK_SIZE):
        yield items[i:i + CHUNK_SIZE]


class Reconciler:
    """Loads the persisted index of a root, plans the diff against a scan and applies it atomically."""

    def __init__(self, database: Database, clock: Callable = utcnow, casefold: Optional[bool] = None):
        self.database = database
        self.clock = clock
        self.normalize_key = partial(normalize, casefold=casefold)

    def load_index(self, root_key: str) -> ExistingIndex:
        index = ExistingIndex(root_key=root_key)
        with self.database.session() as db:
            shows = db.query(Show).filter(Show.root_key == root_key).all()
            index.shows = [ShowRecord(id=s.id, key=s.key, name=s.name, path=s.path) for s in shows]
            show_ids = [s.id for s in shows]

            for chunk in _chunks(show_ids):
                for e in db.query(Episode).filter(Episode.show_id.in_(chunk)).all():
                    index.episodes.append(EpisodeRecord(
                        id=e.id,
                        key=e.key,
                        show_id=e.show_id,
                        name=e.name,
                        path=e.path,
                        season=e.season,
                        number=e.number,
                        special=bool(e.special),
                        mtime=e.mtime,
                        size=e.size,
                    ))
                for p in db.query(Progress).filter(Progress.show_id.in_(chunk)).all():
                    index.progress[p.show_id] = p.current_episode_id

            foreign_shows = db.query(Show.key).filter(Show.root_key != root_key).all()
            foreign_episodes = (
                db.query(Episode.key)
                .join(Show, Episode.show_id == Show.id)
                .filter(Show.root_key != root_key)
                .all()
            )
            index.foreign_show_keys = {row[0] for row in foreign_shows}
            index.foreign_keys = index.foreign_show_keys | {row[0] for row in foreign_episodes}
        return index

    def plan(self, scan: ScanResult, root_key: str) -> ReconcilePlan:
        plan = reconcile(self.load_index(root_key), scan, normalize_key=self.normalize_key)
        logger.info(f"Reconcile plan for {root_key}: {plan.summary()}")
        return plan

    def apply(self, plan: ReconcilePlan) -> ApplyResult:
        """
        Schreibt den Plan in EINER Transaktion - alles oder nichts.
        Fehler des Backends kommen als PersistenceError, der alte Stand bleibt.
        """
        result = ApplyResult()
        if plan.is_empty:
            logger.info(f"✓ Index up to date for {plan.root_key}")
            return result

        now = self.clock()
        with self.database.transaction() as db:
            self._clear_progress(db, plan, result)
            self._update_shows(db, plan, result, now)
            show_ids = self._insert_shows(db, plan, result, now)
            # verschobene Episoden zuerst umhängen, sonst blockiert der Foreign Key das Löschen der alten Show
            self._update_episodes(db, plan, result, show_ids, now)
            self._remove(db, plan, result)
            self._insert_episodes(db, plan, result, show_ids, now)

        logger.info(f"✓ Applied reconcile for {plan.root_key}: {result.writes} writes")
        return result

    def _clear_progress(self, db: Session, plan: ReconcilePlan, result: ApplyResult):
        # Auch Zeiger, die seit dem Planen gesetzt wurden, dürfen nicht hängen bleiben
        for chunk in _chunks(plan.episode_removes):
            result.progress_cleared += clear_pointers_to(db, chunk)
        for chunk in _chunks(plan.show_removes):
            result.progress_removed += (
                db.query(Progress)
                .filter(Progress.show_id.in_(chunk))
                .delete(synchronize_session=False)
            )
        for update in plan.episode_updates:
            if not update.moved:
                continue
            stale = db.query(Progress).filter(Progress.current_episode_id == update.id)
            if update.show_id is not None:
                stale = stale.filter(Progress.show_id != update.show_id)
            result.progress_cleared += stale.update(
                {Progress.current_episode_id: None}, synchronize_session=False
            )

    def _remove(self, db: Session, plan: ReconcilePlan, result: ApplyResult):
        for chunk in _chunks(plan.episode_removes):
            result.episodes_removed += (
                db.query(Episode).filter(Episode.id.in_(chunk)).delete(synchronize_session=False)
            )
        for chunk in _chunks(plan.show_removes):
            result.shows_removed += (
                db.query(Show).filter(Show.id.in_(chunk)).delete(synchronize_session=False)
            )

    def _update_shows(self, db: Session, plan: ReconcilePlan, result: ApplyResult, now):
        for update in plan.show_updates:
            result.shows_updated += db.query(Show).filter(Show.id == update.id).update(
                {Show.name: update.name, Show.path: update.path, Show.last_scanned: now},
                synchronize_session=False,
            )

    def _insert_shows(self, db: Session, plan: ReconcilePlan, result: ApplyResult, now) -> Dict[str, int]:
        shows = [
            Show(key=insert.key, root_key=plan.root_key, name=insert.name, path=insert.path, last_scanned=now)
            for insert in plan.show_inserts
        ]
        db.add_all(shows)
        db.flush()
        result.shows_inserted += len(shows)
        return {show.key: show.id for show in shows}

    def _update_episodes(self, db: Session, plan: ReconcilePlan, result: ApplyResult, show_ids: Dict[str, int], now):
        for update in plan.episode_updates:
            show_id = update.show_id if update.show_id is not None else show_ids[update.show_key]
            result.episodes_updated += db.query(Episode).filter(Episode.id == update.id).update(
                {
                    Episode.show_id: show_id,
                    Episode.name: update.name,
                    Episode.path: update.path,
                    Episode.season: update.season,
                    Episode.number: update.number,
                    Episode.special: update.special,
                    Episode.mtime: update.mtime,
                    Episode.size: update.size,
                    Episode.last_seen: now,
                },
                synchronize_session=False,
            )

    def _insert_episodes(self, db: Session, plan: ReconcilePlan, result: ApplyResult, show_ids: Dict[str, int], now):
        episodes = []
        for insert in plan.episode_inserts:
            show_id = insert.show_id if insert.show_id is not None else show_ids[insert.show_key]
            episodes.append(Episode(
                key=insert.key,
                show_id=show_id,
                name=insert.name,
                path=insert.path,
                season=insert.season,
                number=insert.number,
                special=insert.special,
                size=insert.size,
                mtime=insert.mtime,
                last_seen=now,
            ))
        db.add_all(episodes)
        db.flush()
        result.episodes_inserted += len(episodes)
