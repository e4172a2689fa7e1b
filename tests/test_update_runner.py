import threading
from typing import List, Tuple

from game_db import GameDB
from models import AppType, GameDBEntry, ScrapeResult
from update_runner import ScrapeJobRunner


class FakeScraper:
    closed: List[int] = []
    results = {
        10: ScrapeResult(AppType.GAME, "Action"),
        11: ScrapeResult(AppType.DLC, "Action"),
        12: ScrapeResult(AppType.NOT_FOUND, "ignored"),
    }

    def scrape(self, app_id: int) -> ScrapeResult:
        return self.results.get(app_id, ScrapeResult(AppType.UNKNOWN))

    def close(self) -> None:
        FakeScraper.closed.append(threading.get_ident())


def test_runner_applies_results() -> None:
    db = GameDB()
    db.add(GameDBEntry(id=12, name="Gone", genre="Old"))
    progress: List[Tuple[int, int]] = []
    runner = ScrapeJobRunner(db, [10, 11, 12, 13], FakeScraper, max_threads=3, on_progress=lambda d, t: progress.append((d, t)))
    assert runner.run() == 4
    assert db.get(10).app_type == AppType.GAME
    assert db.get(10).genre == "Action"
    assert db.get(11).app_type == AppType.DLC
    assert db.get(12).app_type == AppType.NOT_FOUND
    assert db.get(12).genre == "Old"
    assert db.get(13).app_type == AppType.UNKNOWN
    assert sorted(progress) == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_runner_with_no_jobs() -> None:
    runner = ScrapeJobRunner(GameDB(), [], FakeScraper)
    assert runner.run() == 0
    assert runner.total_jobs == 0


def test_cancel_stops_further_writes() -> None:
    started = threading.Event()
    release = threading.Event()

    class BlockingScraper:
        def scrape(self, app_id: int) -> ScrapeResult:
            started.set()
            release.wait(5)
            return ScrapeResult(AppType.GAME, "Action")

        def close(self) -> None:
            pass

    db = GameDB()
    runner = ScrapeJobRunner(db, [1, 2, 3], BlockingScraper, max_threads=1)
    runner.start()
    assert started.wait(5)
    runner.cancel()
    release.set()
    assert runner.wait(5)
    assert runner.aborted
    assert runner.jobs_completed == 0
    assert all(entry.app_type == AppType.NEW for entry in db.games.values())
    assert sorted(db.games) == [1, 2, 3]


def test_each_worker_closes_its_scraper(monkeypatch) -> None:
    monkeypatch.setattr(FakeScraper, "closed", [])
    runner = ScrapeJobRunner(GameDB(), [10, 11, 12, 13, 14], FakeScraper, max_threads=3)
    runner.run()
    assert len(FakeScraper.closed) == 3
