"""
Library - Einstiegspunkt für UI/CLI

Bündelt Scanner, Reconciler, Progress Store und Query Layer über
einem expliziten Database-Handle.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from showshelf.database import Database
from showshelf.errors import AccessError
from showshelf.models.episode import Episode
from showshelf.services.progress_store import ProgressState, ProgressStore
from showshelf.services.query import LibraryQuery, ShowListing
from showshelf.services.reconciler import ApplyResult, Collision, Reconciler
from showshelf.services.scanner import ScanSettings, Scanner
from showshelf.startup import get_library_roots
from showshelf.utils.clock import utcnow
from showshelf.utils.paths import normalize

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    root: str
    root_key: Optional[str] = None
    plan: Dict[str, int] = field(default_factory=dict)
    applied: ApplyResult = field(default_factory=ApplyResult)
    errors: List[AccessError] = field(default_factory=list)
    collisions: List[Collision] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return self.applied.writes


class Library:
    def __init__(
        self,
        database: Database,
        settings: Optional[ScanSettings] = None,
        clock: Callable = utcnow,
    ):
        self.database = database
        self.settings = settings or ScanSettings()
        self.scanner = Scanner(self.settings)
        self.reconciler = Reconciler(database, clock=clock, casefold=self.settings.casefold)
        self.progress = ProgressStore(database, clock=clock)
        self.query = LibraryQuery(database)

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, root_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(root_key)
            if lock is None:
                lock = self._locks[root_key] = threading.Lock()
            return lock

    def scan_and_reconcile(self, root: str, cancel: Optional[threading.Event] = None) -> ScanReport:
        """
        Rescan eines Library-Roots.
        Scan läuft ohne offene Transaktion, nur apply() schreibt (atomar).
        """
        root_key = normalize(root, casefold=self.settings.casefold)
        with self._lock_for(root_key):
            logger.info(f"🔄 Scanning {root}")
            scan = self.scanner.collect(root, cancel=cancel)
            plan = self.reconciler.plan(scan, root_key)
            applied = self.reconciler.apply(plan)

        return ScanReport(
            root=root,
            root_key=root_key,
            plan=plan.summary(),
            applied=applied,
            errors=list(scan.errors),
            collisions=list(plan.collisions),
        )

    def scan_all(self, cancel: Optional[threading.Event] = None) -> List[ScanReport]:
        """Rescan aller konfigurierten Library-Roots; ein unlesbarer Root stoppt die anderen nicht"""
        with self.database.session() as db:
            roots = get_library_roots(db)

        reports = []
        for root in roots:
            try:
                reports.append(self.scan_and_reconcile(root, cancel=cancel))
            except AccessError as e:
                logger.error(f"✗ Library root unreadable, index left unchanged: {e}")
                reports.append(ScanReport(root=root, errors=[e]))
        return reports

    def list_shows_by_recency(self) -> List[ShowListing]:
        return self.query.list_shows_by_recency()

    def list_episodes(self, show_id: int) -> List[Episode]:
        return self.query.list_episodes(show_id)

    def resume_point(self, show_id: int) -> Optional[Episode]:
        return self.query.resume_point(show_id)

    def next_episode(self, show_id: int) -> Optional[Episode]:
        return self.query.next_episode(show_id)

    def get_progress(self, show_id: int) -> ProgressState:
        return self.progress.get_progress(show_id)

    def set_current_episode(self, show_id: int, episode_id: int) -> ProgressState:
        return self.progress.set_current_episode(show_id, episode_id)

    def clear_current_episode(self, show_id: int) -> bool:
        return self.progress.clear_current_episode(show_id)
