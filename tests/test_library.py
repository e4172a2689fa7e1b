from game_db import GameDB
from library import GameLibrary
from models import AppType, Category, Game, GameDBEntry


def _library() -> GameLibrary:
    library = GameLibrary()
    library.add_game(Game(id=10, name="Half-Life", category="Action"))
    library.add_game(Game(id=20, name="Portal"))
    library.add_game(Game(id=-1, name="Emulator", launch_id="123"))
    return library


def test_add_game_registers_category() -> None:
    library = _library()
    assert library.category_exists("Action")
    assert library.add_game(Game(id=10, name="Duplicate")) is False
    assert library.get_game(10).name == "Half-Life"


def test_set_game_name_overwrite() -> None:
    library = _library()
    assert library.set_game_name(30, "New Game") is True
    assert library.set_game_name(10, "Renamed") is False
    assert library.get_game(10).name == "Half-Life"
    library.set_game_name(10, "Renamed", overwrite=True)
    assert library.get_game(10).name == "Renamed"


def test_remove_game() -> None:
    library = _library()
    assert library.remove_game(-1) is True
    assert library.remove_game(-1) is False
    assert [game.id for game in library.external_games()] == []


def test_category_names_stay_unique() -> None:
    library = _library()
    assert library.add_category("Action") is None
    assert library.add_category("RPG") == Category("RPG")
    assert library.add_category("rpg") == Category("rpg")
    assert library.rename_category("RPG", "Action") is False
    assert library.rename_category("Missing", "Other") is False
    names = [category.name for category in library.categories]
    assert len(names) == len(set(names))


def test_rename_category_moves_references() -> None:
    library = _library()
    library.add_category("Zed")
    assert library.rename_category("Action", "Shooter") is True
    assert library.get_game(10).category == "Shooter"
    assert not library.category_exists("Action")
    assert [category.name for category in library.categories] == ["Shooter", "Zed"]


def test_remove_category_clears_games() -> None:
    library = _library()
    assert library.remove_category("Action") is True
    assert library.get_game(10).category is None
    assert 10 in library
    assert library.remove_category("Action") is False


def test_bulk_assign() -> None:
    library = _library()
    library.set_game_categories([10, 20], "Puzzle")
    assert library.get_game(20).category == "Puzzle"
    assert library.category_exists("Puzzle")
    library.set_game_favorites([20, -1], True)
    assert library.get_game(-1).favorite is True
    library.set_game_categories([20], None)
    assert library.get_game(20).category is None


def test_remove_empty_categories() -> None:
    library = GameLibrary()
    library.add_category("RPG")
    library.add_category("Indie")
    library.add_game(Game(id=1, name="Game", category="RPG"))
    assert library.remove_empty_categories() == 1
    assert [category.name for category in library.categories] == ["RPG"]


def test_get_category_creates_once() -> None:
    library = GameLibrary()
    first = library.get_category("Strategy")
    assert library.get_category("Strategy") is first
    assert library.get_category("") is None
    assert len(library.categories) == 1


def test_assign_genre_categories() -> None:
    db = GameDB()
    db.add(GameDBEntry(id=10, name="Half-Life", genre="Action, Adventure", app_type=AppType.GAME))
    db.add(GameDBEntry(id=20, name="Portal", genre="Puzzle", app_type=AppType.GAME))
    library = _library()
    assert library.assign_genre_categories(db) == 1
    assert library.get_game(20).category == "Puzzle"
    assert library.get_game(10).category == "Action"
    assert library.assign_genre_categories(db, full=True, overwrite=True) == 1
    assert library.get_game(10).category == "Action, Adventure"
    assert library.get_game(-1).category is None


def test_launch_key() -> None:
    assert Game(id=10).launch_key == "10"
    assert Game(id=-1, launch_id="99").launch_key == "99"
    assert Game(id=-1).launch_key is None
