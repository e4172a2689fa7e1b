import csv
import logging
from typing import List

from library import GameLibrary
from models import Game

try:
    from openpyxl import Workbook
except ImportError:  # pragma: no cover - optional dependency
    Workbook = None

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Id",
    "Name",
    "Category",
    "Favorite",
    "External",
]


def _sorted_games(library: GameLibrary) -> List[Game]:
    return sorted(library.games.values(), key=lambda game: ((game.name or "").casefold(), game.id))


def _row(game: Game) -> List[str]:
    return [
        str(game.id),
        game.name,
        game.category or "",
        "yes" if game.favorite else "",
        "yes" if game.is_external else "",
    ]


def export_csv(file_path: str, library: GameLibrary) -> int:
    games = _sorted_games(library)
    with open(file_path, "w", newline="", encoding="utf-8") as csv_file:
        writer = csv.writer(csv_file)
        writer.writerow(CSV_HEADERS)
        for game in games:
            writer.writerow(_row(game))
    logger.info(f"Exported {len(games)} games to {file_path}")
    return len(games)


def export_xlsx(file_path: str, library: GameLibrary) -> int:
    if Workbook is None:
        raise RuntimeError("openpyxl is required for XLSX export. Install it with: pip install openpyxl")
    games = _sorted_games(library)
    book = Workbook(write_only=True)
    games_sheet = book.create_sheet("Games")
    games_sheet.append(CSV_HEADERS)
    for game in games:
        games_sheet.append(_row(game))

    counts = library.category_counts()
    categories_sheet = book.create_sheet("Categories")
    categories_sheet.append(["Category", "Games"])
    for name in sorted(counts):
        categories_sheet.append([name, counts[name]])
    book.save(file_path)
    logger.info(f"Exported {len(games)} games to {file_path}")
    return len(games)
