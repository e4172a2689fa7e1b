import logging
from typing import Dict, Iterable, List, Optional

from game_db import GameDB
from models import Category, Game

logger = logging.getLogger(__name__)


class GameLibrary:
    """All titles of one profile plus the category list they draw from.

    Games refer to categories by name. Every name set on a game is present in
    ``categories``; the mutators below keep it that way.
    """

    def __init__(self) -> None:
        self.games: Dict[int, Game] = {}
        self.categories: List[Category] = []

    def clear(self) -> None:
        self.games.clear()
        self.categories.clear()

    # Games

    def __contains__(self, game_id: object) -> bool:
        return game_id in self.games

    def __len__(self) -> int:
        return len(self.games)

    def get_game(self, game_id: int) -> Optional[Game]:
        return self.games.get(game_id)

    def add_game(self, game: Game) -> bool:
        if game.id in self.games:
            return False
        if game.category is not None:
            self.get_category(game.category)
        self.games[game.id] = game
        return True

    def set_game_name(self, game_id: int, name: str, overwrite: bool = False) -> bool:
        """Add the game if it is missing. Returns True when a new game was created."""
        game = self.games.get(game_id)
        if game is None:
            self.games[game_id] = Game(id=game_id, name=name)
            return True
        if overwrite:
            game.name = name
        return False

    def remove_game(self, game_id: int) -> bool:
        game = self.games.pop(game_id, None)
        if game is None:
            return False
        logger.debug(f"Removed game {game_id} ({game.name}) from the game list")
        return True

    def external_games(self) -> List[Game]:
        return [game for game in self.games.values() if game.is_external]

    def set_game_categories(self, game_ids: Iterable[int], name: Optional[str]) -> None:
        category = self.get_category(name) if name else None
        for game_id in game_ids:
            self.games[game_id].category = category.name if category else None

    def set_game_favorites(self, game_ids: Iterable[int], favorite: bool) -> None:
        for game_id in game_ids:
            self.games[game_id].favorite = favorite

    # Categories

    def category_exists(self, name: str) -> bool:
        return any(category.name == name for category in self.categories)

    def find_category(self, name: str) -> Optional[Category]:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def add_category(self, name: str) -> Optional[Category]:
        if not name or self.category_exists(name):
            return None
        category = Category(name)
        self.categories.append(category)
        return category

    def get_category(self, name: Optional[str]) -> Optional[Category]:
        """Return the category with this name, creating it when needed."""
        if not name:
            return None
        return self.find_category(name) or self.add_category(name)

    def rename_category(self, old_name: str, new_name: str) -> bool:
        if not new_name or self.category_exists(new_name):
            return False
        for idx, category in enumerate(self.categories):
            if category.name == old_name:
                self.categories[idx] = Category(new_name)
                break
        else:
            return False
        for game in self.games.values():
            if game.category == old_name:
                game.category = new_name
        self.categories.sort(key=lambda c: c.name)
        return True

    def remove_category(self, name: str) -> bool:
        category = self.find_category(name)
        if category is None:
            return False
        self.categories.remove(category)
        for game in self.games.values():
            if game.category == name:
                game.category = None
        return True

    def category_counts(self) -> Dict[str, int]:
        counts = {category.name: 0 for category in self.categories}
        for game in self.games.values():
            if game.category in counts:
                counts[game.category] += 1
        return counts

    def remove_empty_categories(self) -> int:
        empty = [name for name, count in self.category_counts().items() if count == 0]
        for name in empty:
            self.remove_category(name)
        return len(empty)

    def assign_genre_categories(self, game_db: GameDB, full: bool = False, overwrite: bool = False) -> int:
        """Categorize catalog games by their cached store genre. Returns the number of games changed."""
        changed = 0
        for game in self.games.values():
            if game.is_external or (game.category and not overwrite):
                continue
            genre = game_db.get_genre(game.id, full)
            if not genre or genre == game.category:
                continue
            game.category = self.get_category(genre).name
            changed += 1
        return changed
