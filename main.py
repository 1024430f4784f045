import argparse
import sys

from commands import anime, config_command
from commands.anime import print_history
from models.config import settings
from services.continuity_service import ContinuityEngine
from services.history_service import history_store
from ui.components import console
from utils.cache_manager import clear_cache_all, clear_cache_by_prefix, get_cache_stats
from utils.logging import configure_logging, get_logger
from utils.presence import create_presence

logger = get_logger(__name__)

CONFIG_ACTIONS = ["show", "path", "save", "reset"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openani-cli",
        description="Watch anime from the terminal and pick up where you left off.",
        epilog="Settings: openani-cli config {show,path,save,reset}",
    )
    parser.add_argument("query", nargs="*", help="Name of the anime to search for")
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="Skip video playback and log verbosely",
    )
    parser.add_argument(
        "--continue",
        "-c",
        dest="continue_watching",
        action="store_true",
        help="Continue the last watched episode",
    )
    parser.add_argument("--history", action="store_true", help="Print the watch history")
    parser.add_argument("--clear-history", action="store_true", help="Delete the watch history")
    parser.add_argument(
        "--clear-cache",
        nargs="?",
        const=True,
        metavar="SLUG",
        help="Clear the catalog cache (everything, or only one anime's entries)",
    )
    return parser


def build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="openani-cli config", description="Manage settings.")
    parser.add_argument("action", nargs="?", default="show", choices=CONFIG_ACTIONS)
    return parser


def clear_cache(target) -> None:
    before = get_cache_stats()["size"]
    if target is True:
        clear_cache_all()
        console.print(f"[success]✅ Cache cleared ({before} entries)[/success]")
    else:
        clear_cache_by_prefix(f"anime:{target}")
        clear_cache_by_prefix(f"episode:{target}:")
        console.print(f"[success]✅ Cache of '{target}' cleared[/success]")


def cli(argv: list[str] | None = None) -> None:
    """Entry point for CLI."""
    argv = sys.argv[1:] if argv is None else argv

    if argv and argv[0] == "config":
        config_command(build_config_parser().parse_args(argv[1:]))
        return

    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug, force=True)
    logger.debug(f"Arguments: {args}")

    if args.clear_cache is not None:
        clear_cache(args.clear_cache)
        return

    if args.clear_history:
        if history_store.clear():
            console.print("[success]Watch history cleared.[/success]")
        else:
            console.print("No watch history to clear.")
        return

    presence = create_presence(settings.presence.enable_presence, settings.presence.discord_client_id)
    presence.connect()
    engine = ContinuityEngine(presence=presence, debug=args.debug)

    if args.history:
        print_history(engine, limit=settings.history.max_entries)
        return

    try:
        anime(args, engine)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        console.print("\n👋 Bye!")
    finally:
        presence.disconnect()


if __name__ == "__main__":
    cli()
