import logging
import queue
import threading
from typing import Callable, Iterable, List, Optional

from game_db import GameDB
from models import ScrapeResult
from scraper import StoreScraper

logger = logging.getLogger(__name__)

DEFAULT_THREADS = 5

ProgressCallback = Callable[[int, int], None]


class ScrapeJobRunner:
    """Runs store scrapes for a batch of ids on a small pool of worker threads.

    Results are written into ``db``. The abort check and the write happen
    under one lock, so once ``cancel()`` returns no further entry changes.
    """

    def __init__(
        self,
        db: GameDB,
        job_ids: Iterable[int],
        scraper_factory: Callable[[], StoreScraper] = StoreScraper,
        max_threads: int = DEFAULT_THREADS,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.db = db
        self.scraper_factory = scraper_factory
        self.max_threads = max(1, int(max_threads))
        self.on_progress = on_progress
        self._jobs: queue.Queue = queue.Queue()
        for app_id in job_ids:
            self.db.ensure(app_id)
            self._jobs.put(app_id)
        self.total_jobs = self._jobs.qsize()
        self.jobs_completed = 0
        self._abort_lock = threading.Lock()
        self._aborted = False
        self._threads: List[threading.Thread] = []

    @property
    def aborted(self) -> bool:
        with self._abort_lock:
            return self._aborted

    def cancel(self) -> None:
        with self._abort_lock:
            self._aborted = True
        logger.info(f"Store update cancelled after {self.jobs_completed}/{self.total_jobs} jobs")

    def start(self) -> None:
        thread_count = min(self.max_threads, self.total_jobs)
        logger.info(f"Updating {self.total_jobs} games with {thread_count} threads")
        for _ in range(thread_count):
            thread = threading.Thread(target=self._worker, daemon=True)
            self._threads.append(thread)
            thread.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the workers. Returns True when all of them finished."""
        for thread in self._threads:
            thread.join(timeout)
        return not any(thread.is_alive() for thread in self._threads)

    def run(self) -> int:
        self.start()
        self.wait()
        return self.jobs_completed

    def _next_job(self) -> Optional[int]:
        try:
            return self._jobs.get_nowait()
        except queue.Empty:
            return None

    def _worker(self) -> None:
        scraper = self.scraper_factory()
        try:
            while not self.aborted:
                app_id = self._next_job()
                if app_id is None:
                    return
                if self.aborted:
                    return
                result = scraper.scrape(app_id)
                if not self._apply(app_id, result):
                    return
        finally:
            scraper.close()

    def _apply(self, app_id: int, result: ScrapeResult) -> bool:
        with self._abort_lock:
            if self._aborted:
                return False
            entry = self.db.ensure(app_id)
            entry.app_type = result.app_type
            if result.app_type.carries_genre:
                entry.genre = result.genre
            self.jobs_completed += 1
            completed = self.jobs_completed
        logger.debug(f"Store update {app_id}: {result.app_type.value}")
        if self.on_progress:
            self.on_progress(completed, self.total_jobs)
        return True
