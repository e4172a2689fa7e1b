import argparse
import logging
import os
import sys
from typing import List, Optional

from errors import SteamShelfError
from fetch import fetch_game_list
from game_db import GameDB
from import_export import export_csv, export_xlsx
from library import GameLibrary
from reconcile import (
    import_config_file,
    import_shortcuts_file,
    integrate_games,
    parse_html_game_list,
    save_config_file,
    save_shortcuts_file,
)
from scraper import StoreScraper
from store import (
    FLAG_FIELDS,
    GAME_DB_FILENAME,
    default_state_path,
    load_game_db,
    load_state,
    save_game_db,
    save_state,
    set_configured_data_dir,
)
from update_runner import ScrapeJobRunner
from utils import config_file_path, parse_id_set, screenshots_file_path, shortcuts_file_path

logger = logging.getLogger("steamshelf")


def _load_db(path: str) -> GameDB:
    if not os.path.exists(path):
        logger.info(f"No game database at {path}, starting a new one")
        return GameDB()
    return load_game_db(path)


def cmd_update_db(args: argparse.Namespace) -> int:
    state = load_state(args.state)
    db = _load_db(args.db)
    ids = parse_id_set(args.ids)
    job_ids = sorted(ids) if ids else db.pending_ids()
    if not job_ids:
        logger.info("Nothing to update")
        return 0
    runner = ScrapeJobRunner(db, job_ids, StoreScraper, max_threads=args.threads or state.scrape_threads)
    try:
        runner.run()
    except KeyboardInterrupt:
        runner.cancel()
        runner.wait()
    save_game_db(args.db, db)
    logger.info(f"Updated {runner.jobs_completed} of {runner.total_jobs} games")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    state = load_state(args.state)
    steam_path = args.steam_path or state.steam_path
    steam_id = args.steam_id or state.steam_id64
    if not steam_path or not steam_id:
        logger.error("A Steam path and 64-bit Steam id are required (pass them or save them in the profile state)")
        return 2
    db = _load_db(args.db)
    library = GameLibrary()
    ignore = set(state.ignore)

    profile = args.profile or state.profile_name or steam_id
    if not args.offline:
        pairs = parse_html_game_list(fetch_game_list(profile))
        integrate_games(
            library, pairs, overwrite=state.overwrite_names, ignore=ignore, ignore_dlc=state.ignore_dlc, game_db=db
        )
        db.integrate_names(dict(pairs))
        save_game_db(args.db, db)
    config_path = config_file_path(steam_path, steam_id)
    if os.path.exists(config_path):
        import_config_file(library, config_path, db, ignore, state.ignore_dlc)
    else:
        logger.warning(f"No Steam config file at {config_path}, categories start empty")
    shortcuts_path = shortcuts_file_path(steam_path, steam_id)
    use_shortcuts = not state.ignore_external and os.path.exists(shortcuts_path)
    if use_shortcuts:
        import_shortcuts_file(
            library,
            shortcuts_path,
            screenshots_file_path(steam_path, steam_id),
            state.prefer_shortcut_data,
        )
    if args.auto_genre:
        library.assign_genre_categories(db)

    if args.write:
        save_config_file(library, config_path, state.discard_missing)
        if use_shortcuts:
            save_shortcuts_file(library, shortcuts_path, screenshots_file_path(steam_path, steam_id))
    if args.export:
        if args.export.lower().endswith(".xlsx"):
            export_xlsx(args.export, library)
        else:
            export_csv(args.export, library)
    logger.info(f"Library holds {len(library)} games in {len(library.categories)} categories")
    return 0


def cmd_configure(args: argparse.Namespace) -> int:
    if args.data_dir:
        set_configured_data_dir(args.data_dir)
        logger.info(f"Data directory set to {args.data_dir} for later runs")
    state = load_state(args.state)
    if args.steam_path is not None:
        state.steam_path = args.steam_path.strip()
    if args.steam_id is not None:
        state.steam_id64 = args.steam_id
    if args.profile is not None:
        state.profile_name = args.profile.strip()
    if args.ignore is not None:
        state.ignore = sorted(parse_id_set(args.ignore))
    if args.threads is not None:
        state.scrape_threads = args.threads
    for key in FLAG_FIELDS:
        value = getattr(args, key)
        if value is not None:
            setattr(state, key, value)
    save_state(args.state, state)
    logger.info(f"Saved profile state to {args.state}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="steamshelf", description="Organize Steam library categories.")
    parser.add_argument("-v", "--verbose", action="store_true", help="log per-game decisions")
    parser.add_argument("--db", default=default_state_path(GAME_DB_FILENAME), help="game database JSON file")
    parser.add_argument("--state", default=default_state_path(), help="profile state JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    update = sub.add_parser("update-db", help="classify unknown ids from the store")
    update.add_argument("ids", nargs="*", help="ids to classify (default: all unclassified)")
    update.add_argument("--threads", type=int, help="worker threads (default: from the profile state)")
    update.set_defaults(func=cmd_update_db)

    sync = sub.add_parser("sync", help="merge the profile, config and shortcuts into one library")
    sync.add_argument("--steam-path")
    sync.add_argument("--steam-id", type=int)
    sync.add_argument("--profile", help="custom profile URL name")
    sync.add_argument("--offline", action="store_true", help="skip downloading the profile game list")
    sync.add_argument("--auto-genre", action="store_true", help="categorize uncategorized games by genre")
    sync.add_argument("--write", action="store_true", help="write categories back to the Steam files")
    sync.add_argument("--export", help="export the library to a .csv or .xlsx file")
    sync.set_defaults(func=cmd_sync)

    configure = sub.add_parser("configure", help="save Steam location and merge options to the profile state")
    configure.add_argument("--steam-path")
    configure.add_argument("--steam-id", type=int)
    configure.add_argument("--profile", help="custom profile URL name")
    configure.add_argument("--ignore", nargs="*", help="ids never merged (no values clears the list)")
    configure.add_argument("--threads", type=int, help="store update worker threads")
    configure.add_argument("--data-dir", help="remember a data directory for later runs")
    for key in FLAG_FIELDS:
        configure.add_argument("--" + key.replace("_", "-"), action=argparse.BooleanOptionalAction)
    configure.set_defaults(func=cmd_configure)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except SteamShelfError as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
