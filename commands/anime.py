"""Anime search, selection, and playback command handler.

This module handles:
- Interactive search (from the command line or the main menu)
- Season, episode and fansub selection
- Episode actions: play, copy URL, download, open in browser
- Continue watching, watch history and clearing the history
"""

import webbrowser

from models.models import Episode, WatchRecord
from services.continuity_service import ContinueAction, ContinuityEngine, ContinuityState
from services.history_service import format_history_entry, format_time
from ui.components import ask_text, confirm, console, loading, menu, select_value
from utils.downloader import download_video

HISTORY_MENU_LIMIT = 10

CONTINUE_LABELS = {
    ContinueAction.NEXT: "▶️  Continue to Episode {next}",
    ContinueAction.REWATCH: "🔄 Rewatch Episode {current}",
    ContinueAction.CHOOSE: "📋 Choose different episode",
}


def search_flow(engine: ContinuityEngine, query: str) -> None:
    """Search the catalog and walk the user down to an episode."""
    console.print(f"Searching for: [info]{query}[/info]")
    engine.presence.update_searching(query)

    with loading(f"Searching '{query}'..."):
        results = engine.catalog.search(query)

    if not results:
        console.print("[warning]No results found.[/warning]")
        return

    options = [
        (f"{anime.display_title} ({anime.type})" if anime.type else anime.display_title, anime)
        for anime in results
    ]
    anime = select_value(options, msg=f"Found {len(results)} results. Select an anime:", enable_search=True)
    if anime:
        anime_flow(engine, anime.slug)


def anime_flow(engine: ContinuityEngine, slug: str) -> None:
    """Show anime details and pick a season."""
    with loading("Loading anime details..."):
        detail = engine.catalog.get_anime_detail(slug)

    if not detail:
        console.print("[error]Could not get anime details.[/error]")
        return

    console.print(f"\n[menu.title]{detail.display_title}[/menu.title]")
    if detail.summary:
        console.print(f"[menu.muted]{detail.summary}[/menu.muted]")
    console.print(f"Seasons: {detail.number_of_seasons}  Episodes: {detail.number_of_episodes}")

    seasons = [s for s in detail.seasons if s.has_episode]
    if not seasons:
        console.print("[warning]No seasons with episodes available.[/warning]")
        return

    if len(seasons) == 1:
        season = seasons[0]
    else:
        options = [
            (f"{s.name or f'Season {s.season_number}'} ({s.episode_count} episodes)", s)
            for s in seasons
        ]
        season = select_value(options, msg="Select a season:")
        if not season:
            return

    season_flow(engine, slug, season.season_number)


def season_flow(engine: ContinuityEngine, slug: str, season_number: int) -> None:
    """Pick an episode of one season."""
    with loading("Loading episodes..."):
        episodes = engine.catalog.get_anime_episodes(slug, season_number)

    if not episodes:
        console.print("[warning]No episodes found for this season.[/warning]")
        return

    options = [(f"{e.episode_number}. {e.title}", e) for e in episodes]
    episode = select_value(options, msg=f"Season {season_number} - select an episode:", enable_search=True)
    if episode:
        episode_flow(engine, slug, episode)


def episode_flow(
    engine: ContinuityEngine,
    slug: str,
    episode: Episode,
    start_time: int | None = None,
) -> None:
    """Pick a fansub release for an episode, then an action."""
    with loading("Getting episode details..."):
        detail = engine.catalog.get_episode_detail(slug, episode.season_number, episode.episode_number)

    if not detail:
        console.print("[error]Could not get episode details.[/error]")
        return

    info = detail.episode_data
    console.print(f"\nEpisode: [info]{info.name or episode.title}[/info]")
    if info.air_date:
        console.print(f"Air Date: {info.air_date}")
    if start_time:
        console.print(f"🔄 Resuming from: {format_time(start_time)}")

    if not detail.fansubs:
        console.print("[error]❌ No fansubs available for this episode.[/error]")
        return

    if len(detail.fansubs) == 1:
        fansub = detail.fansubs[0]
        console.print(f"Using fansub: {fansub.name}")
    else:
        options = [
            (f"{f.name} - {f.contributors}" if f.contributors else f.name, f)
            for f in detail.fansubs
        ]
        fansub = select_value(options, msg="Select a fansub:")
        if not fansub:
            return

    action_flow(engine, slug, episode, fansub.id, start_time)


def action_flow(
    engine: ContinuityEngine,
    slug: str,
    episode: Episode,
    fansub_id: str,
    start_time: int | None = None,
) -> None:
    """Play, copy, download or open the episode."""
    with loading("Getting video URL..."):
        video_url = engine.catalog.get_video_url(
            slug, episode.season_number, episode.episode_number, fansub_id
        )

    if not video_url:
        console.print("[error]Could not get video URL.[/error]")
        return

    options = [
        ("▶️  Play with MPV", "play"),
        ("🔗 Copy URL", "copy"),
        ("⬇️  Download episode", "download"),
        ("🌐 Open in browser", "browser"),
    ]
    action = select_value(options, msg="What would you like to do?")

    if action == "play":
        console.print("\nStarting video playback...")
        engine.watch(slug, episode, fansub_id, start_time)
    elif action == "copy":
        console.print(f"\n📋 Video URL: {video_url}")
        console.print("Copy the URL above to play in your preferred player.")
        engine.save_external(slug, episode, fansub_id)
    elif action == "download":
        detail = engine.catalog.get_anime_detail(slug)
        anime_title = detail.display_title if detail else slug
        episode_name = f"S{episode.season_number}E{episode.episode_number} - {episode.title}"
        download_video(video_url, anime_title, episode_name)
    elif action == "browser":
        console.print(f"\n🌐 Opening in browser: {video_url}")
        if webbrowser.open(video_url):
            engine.save_external(slug, episode, fansub_id)
        else:
            console.print("[warning]Could not open a browser, copy the URL above instead.[/warning]")


def continue_flow(engine: ContinuityEngine, record: WatchRecord) -> None:
    """Continue menu for one history record."""
    console.print(f"\nContinuing: [menu.title]{record.anime_title}[/menu.title]")
    console.print(
        f"Last watched: S{record.season_number}E{record.episode_number} - {record.episode_title}"
    )
    engine.presence.update_watching(
        record.anime_title, f"S{record.season_number}E{record.episode_number}"
    )

    actions = engine.continue_actions(record)
    if ContinueAction.RESUME in actions:
        console.print(
            f"Progress: {record.progress}% "
            f"({format_time(record.time_pos)}/{format_time(record.duration)})"
        )

    options = []
    for action in actions:
        if action == ContinueAction.RESUME:
            label = f"⏯️  Resume from {format_time(record.time_pos)} ({record.progress}%)"
        else:
            label = CONTINUE_LABELS[action].format(
                next=record.episode_number + 1, current=record.episode_number
            )
        options.append((label, action))

    action = select_value(options, msg="What would you like to do?")
    if action is None:
        return

    with loading("Looking up episode..."):
        target = engine.resolve_action(record, action)

    if target is None:
        if action != ContinueAction.CHOOSE:
            console.print("[warning]Could not find that episode, going to episode selection[/warning]")
        season_flow(engine, record.anime_slug, record.season_number)
        return

    episode_flow(engine, record.anime_slug, target.episode, target.start_time)


def print_history(engine: ContinuityEngine, limit: int = HISTORY_MENU_LIMIT) -> list[WatchRecord]:
    """Print the numbered history list and return the records shown."""
    records = engine.history.get_history(limit)
    if not records:
        console.print("No watch history found.")
        return []

    console.print("\n[menu.title]📋 Watch History:[/menu.title]")
    for index, record in enumerate(records, 1):
        console.print(f"{index}. {format_history_entry(record)}", highlight=False)
    return records


def history_flow(engine: ContinuityEngine) -> None:
    """Show the history and continue the selected entry."""
    records = print_history(engine)
    if not records:
        return

    options = [
        (f"{r.anime_title} - S{r.season_number}E{r.episode_number}", r) for r in records
    ]
    record = select_value(options, msg="Select an anime to continue:")
    if record:
        continue_flow(engine, record)


def clear_history_flow(engine: ContinuityEngine) -> None:
    if confirm("Are you sure you want to clear all watch history?"):
        engine.history.clear()
        console.print("[success]Watch history cleared.[/success]")


def prompt_search(engine: ContinuityEngine) -> None:
    query = ask_text("Enter anime name to search:")
    if query:
        search_flow(engine, query)


def continue_most_recent(engine: ContinuityEngine) -> None:
    """Jump straight into the continue menu of the last watched episode."""
    if engine.state() == ContinuityState.NO_HISTORY:
        console.print("No watch history found.")
        return
    continue_flow(engine, engine.history.most_recent())


def main_menu(engine: ContinuityEngine) -> None:
    """Interactive main menu loop. Exits through the menu's Exit entry."""
    while True:
        engine.presence.update_main_menu()
        actions = {}

        state = engine.state()
        if state != ContinuityState.NO_HISTORY:
            last = engine.history.most_recent()
            status = "completed" if state == ContinuityState.HAS_COMPLETED else f"{last.progress}%"
            label = (
                f"▶️  Continue: {last.anime_title} - "
                f"S{last.season_number}E{last.episode_number} ({status})"
            )
            actions[label] = lambda record=last: continue_flow(engine, record)

            for record in engine.history.continue_watching_suggestions():
                if record.anime_id == last.anime_id:
                    continue
                label = (
                    f"📺 {record.anime_title} - "
                    f"S{record.season_number}E{record.episode_number} ({record.progress}%)"
                )
                actions[label] = lambda record=record: continue_flow(engine, record)

            actions["📋 Watch history"] = lambda: history_flow(engine)
            actions["🗑️  Clear history"] = lambda: clear_history_flow(engine)

        actions["🔍 Search anime"] = lambda: prompt_search(engine)

        choice = menu(list(actions), msg="openani-cli - Main Menu")
        actions[choice]()


def anime(args, engine: ContinuityEngine) -> None:
    """Handle anime search, selection, and playback flow.

    Supports:
    - Direct search with positional title words
    - Continue watching the last episode (--continue)
    - Interactive main menu otherwise
    """
    if args.continue_watching:
        continue_most_recent(engine)
    elif args.query:
        search_flow(engine, " ".join(args.query).strip('"'))
    else:
        main_menu(engine)
