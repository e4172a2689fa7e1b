from game_db import GameDB
from models import AppType, GameDBEntry


def _db() -> GameDB:
    db = GameDB()
    db.add(GameDBEntry(id=10, name="Half-Life", genre="Action, Adventure", app_type=AppType.GAME))
    db.add(GameDBEntry(id=11, name="Soundtrack", app_type=AppType.DLC))
    db.add(GameDBEntry(id=12, name="Pending"))
    return db


def test_lookups() -> None:
    db = _db()
    assert db.is_dlc(11)
    assert not db.is_dlc(10)
    assert not db.is_dlc(99)
    assert db.get_name(10) == "Half-Life"
    assert db.get_name(99) is None
    assert db.get_genre(10) == "Action, Adventure"
    assert db.get_genre(10, full=False) == "Action"
    assert db.get_genre(11) is None


def test_ensure_fills_missing_name() -> None:
    db = GameDB()
    entry = db.ensure(5)
    assert entry.app_type == AppType.NEW
    assert db.ensure(5, "Named") is entry
    assert entry.name == "Named"
    db.ensure(5, "Other")
    assert entry.name == "Named"


def test_pending_ids() -> None:
    db = _db()
    assert db.pending_ids() == [12]
    assert db.pending_ids([10, 12, 13, -1]) == [12, 13]


def test_integrate_names_resets_renamed_entries() -> None:
    db = _db()
    assert db.integrate_names({10: "Half-Life: Source", 11: "Soundtrack", 20: "Portal"}) == 1
    assert db.get(10).app_type == AppType.NEW
    assert db.get(11).app_type == AppType.DLC
    assert db.get_name(20) == "Portal"
