from __future__ import annotations

import argparse
import dataclasses
import os
from getpass import getpass
from typing import Optional

from rich import print
from rich.markup import escape
from rich.table import Table

from .exceptions import StoryomaticError
from .formatting import format_gender, format_perspective, language_name
from .genres import GENRES
from .instructions import STORY_INSTRUCTIONS, instruction_prompts
from .library import StoryLibrary
from .models import (
    COMPLEXITY_LEVELS,
    EMOTIONAL_TONES,
    LANGUAGES,
    PERSPECTIVES,
    PROTAGONIST_GENDERS,
    Choice,
    StorySettings,
    StoryState,
    new_id,
)
from .prompts import STRATEGY_VERSIONS
from .settings import (
    ENV_VAR_MAPPING,
    TEXT_PROVIDERS,
    get_library_dir,
    load_user_settings,
    save_user_settings,
)
from .storage import clear_current_story, get_current_story, set_current_story
from .story import StoryManager


def _library() -> StoryLibrary:
    return StoryLibrary.from_directory(get_library_dir())


def _load_manager(args: argparse.Namespace) -> StoryManager:
    story_id = getattr(args, "story", None) or get_current_story(get_library_dir())
    if not story_id:
        raise SystemExit("[yellow]No story chosen.[/] Use --story or start one with `storyomatic new`.")
    manager = StoryManager(_library())
    manager.load_story(story_id)
    return manager


def _print_state(state: StoryState, full: bool = False) -> None:
    print(f"[bold cyan]{escape(state.title or 'Untitled')}[/]  [dim]{state.id or ''}[/]")
    if state.settings:
        s = state.settings
        print(
            f"[dim]{s.genre} | {format_perspective(s.perspective)} | "
            f"{format_gender(s.protagonist_gender)} protagonist | {language_name(s.language)} | "
            f"strategy {s.prompt_strategy}[/]"
        )
    print()

    if full:
        for segment in state.segments:
            print(escape(segment.content))
            print()

    if state.current_segment:
        print(escape(state.current_segment.content))
        print()
        for i, choice in enumerate(state.current_segment.choices, start=1):
            print(f"  [bold]{i}.[/] {escape(choice.text)}")

    if state.error:
        print(f"\n[red]Error:[/] {escape(state.error)}")
        print("[dim]Run `storyomatic retry` to try again.[/]")


def cmd_new(args: argparse.Namespace) -> None:
    user = load_user_settings()
    settings = StorySettings(
        genre=args.genre,
        perspective=args.perspective,
        protagonist_gender=args.gender,
        style_inspiration=args.style,
        language=args.language or user.default_language,
        prompt_strategy=args.strategy or user.default_prompt_strategy,
        opening_sentence=args.opening,
        opening_title=args.title,
        complexity_level=args.complexity,
        emotional_tone=args.tone,
    )
    manager = StoryManager(_library())
    print("[dim]Writing the opening scene...[/]")
    state = manager.start_story(settings)
    set_current_story(get_library_dir(), state.id)
    print(f"[bold green]Started[/] story '[cyan]{escape(state.title)}[/]'\n")
    _print_state(state)


def cmd_list(args: argparse.Namespace) -> None:
    stories = _library().get_all_stories()
    if not stories:
        print("No stories yet. Start one with `storyomatic new --genre Horror`.")
        return

    current = get_current_story(get_library_dir())
    table = Table(title="Stories")
    table.add_column("", width=1)
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Summary")
    table.add_column("Last modified", style="dim")
    for story in stories:
        table.add_row(
            "*" if story.id == current else "",
            story.id,
            escape(story.title),
            escape(story.summary),
            story.last_modified[:19].replace("T", " "),
        )
    print(table)


def cmd_use(args: argparse.Namespace) -> None:
    if _library().get_story(args.story_id) is None:
        raise SystemExit(f"[red]Story not found:[/] {args.story_id}")
    set_current_story(get_library_dir(), args.story_id)
    print(f"Current story set to: [cyan]{args.story_id}[/]")


def cmd_show(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    _print_state(manager.state, full=not args.current_only)
    if args.debug:
        for entry in manager.state.debug_log:
            print(f"[dim]{entry.timestamp}[/] [bold]{entry.type}[/] {escape(repr(entry.data))}")


def cmd_choose(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    current = manager.state.current_segment
    instructions = instruction_prompts(args.nudge or [])

    if args.custom:
        choice = Choice(id=new_id(), text=args.custom, instructions=instructions)
    else:
        if args.index is None:
            raise SystemExit("[yellow]Give a choice number or --custom text.[/]")
        choices = current.choices if current else []
        if not 1 <= args.index <= len(choices):
            raise SystemExit(f"[red]Invalid choice:[/] {args.index} (story offers {len(choices)})")
        picked = choices[args.index - 1]
        choice = Choice(id=picked.id, text=picked.text, instructions=instructions)

    print("[dim]Writing the next scene...[/]")
    state = manager.handle_choice(choice)
    _print_state(state)


def cmd_regenerate(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    _print_state(manager.regenerate_choices())


def cmd_retry(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    if manager.state.last_action is None:
        print("Nothing to retry.")
        return
    _print_state(manager.handle_retry())


def cmd_summary(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    print(f"[bold]Summary of[/] [cyan]{escape(manager.state.title or 'Untitled')}[/]\n")
    print(escape(manager.show_summary()))


def cmd_settings(args: argparse.Namespace) -> None:
    manager = _load_manager(args)
    old = manager.state.settings
    if old is None:
        raise SystemExit("[red]This story has no settings to edit.[/]")

    changes = {
        "genre": args.genre,
        "perspective": args.perspective,
        "protagonist_gender": args.gender,
        "style_inspiration": args.style,
        "prompt_strategy": args.strategy,
        "complexity_level": args.complexity,
        "emotional_tone": args.tone,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if args.clear_style:
        changes["style_inspiration"] = None
    if not changes:
        print("No settings given; nothing changed.")
        return

    state = manager.edit_settings(dataclasses.replace(old, **changes))
    print("[bold green]Settings updated[/]\n")
    _print_state(state)


def cmd_delete(args: argparse.Namespace) -> None:
    library = _library()
    if library.get_story(args.story_id) is None:
        raise SystemExit(f"[red]Story not found:[/] {args.story_id}")
    library.delete_story(args.story_id)
    if get_current_story(get_library_dir()) == args.story_id:
        clear_current_story(get_library_dir())
    print(f"Deleted story [cyan]{args.story_id}[/]")


def cmd_genres(args: argparse.Namespace) -> None:
    table = Table(title="Genres")
    table.add_column("Genre", style="cyan")
    table.add_column("Authors")
    table.add_column("Description")
    for genre in GENRES.values():
        table.add_row(genre.name, ", ".join(genre.authors), genre.description)
    print(table)


def cmd_instructions(args: argparse.Namespace) -> None:
    table = Table(title="Instructions (use with `choose --nudge`)")
    table.add_column("Title", style="cyan")
    table.add_column("Prompt")
    for instruction in STORY_INSTRUCTIONS:
        table.add_row(instruction.title, instruction.prompt)
    print(table)


def cmd_setup(args: argparse.Namespace) -> None:
    s = load_user_settings()
    print("[bold]Story-o-matic Setup[/]")

    if args.provider:
        s.text_provider = args.provider
    provider = s.text_provider
    attr = f"{provider}_api_key"
    env_var = ENV_VAR_MAPPING[attr]

    if os.environ.get(env_var):
        print(f"Found {env_var} in environment. [green]Great![/]")
        setattr(s, attr, os.environ[env_var])
    else:
        if getattr(s, attr):
            print("A saved API key already exists. Press Enter to keep it.")
        key = getpass(f"{provider} API key: ")
        if key.strip():
            setattr(s, attr, key.strip())
            os.environ[env_var] = key.strip()
            print("Saved API key to user settings.")
        elif not getattr(s, attr) and provider != "huggingface":
            print("[yellow]No key provided.[/] You can set it later with `storyomatic setup` or env var.")

    if args.model:
        s.default_text_model = args.model
    if args.strategy:
        s.default_prompt_strategy = args.strategy
    if args.language:
        s.default_language = args.language
    if args.library_dir:
        s.library_dir = args.library_dir
    save_user_settings(s)
    print(
        f"Provider: [cyan]{s.text_provider}[/] | Model: [cyan]{s.default_text_model or 'default'}[/] | "
        f"Strategy: [cyan]{s.default_prompt_strategy}[/] | Library: [cyan]{get_library_dir(s)}[/]"
    )


def cmd_web(args: argparse.Namespace) -> None:
    import webbrowser
    import time
    from threading import Timer

    url = f"http://localhost:{args.port}"

    if not args.no_browser:
        def open_browser():
            time.sleep(1.5)
            webbrowser.open(url)
        Timer(0, open_browser).start()

    print(f"[bold green]Starting web server at {url}[/]")
    print("[dim]Press Ctrl+C to stop[/]")
    print()
    print("[yellow]SECURITY:[/] This server binds to localhost only (127.0.0.1)")
    print("[yellow]Do NOT expose this to the internet without adding authentication[/]")
    print()

    import uvicorn
    uvicorn.run(
        "storyomatic.webapp:app",
        host="127.0.0.1",
        port=args.port,
        log_level="info"
    )


def _add_story_option(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--story", help="Story id (optional; defaults to current)")


def _add_settings_options(sp: argparse.ArgumentParser, required_genre: bool) -> None:
    sp.add_argument("--genre", choices=list(GENRES.keys()), required=required_genre)
    sp.add_argument("--perspective", choices=PERSPECTIVES, default="third" if required_genre else None)
    sp.add_argument("--gender", choices=PROTAGONIST_GENDERS, default="other" if required_genre else None,
                    help="Protagonist gender")
    sp.add_argument("--style", help="Write in the style of this author or work")
    sp.add_argument("--strategy", choices=STRATEGY_VERSIONS, help="Prompt strategy version")
    sp.add_argument("--complexity", choices=COMPLEXITY_LEVELS, help="Complexity hint (v2 strategy)")
    sp.add_argument("--tone", choices=EMOTIONAL_TONES, help="Emotional tone hint (v2 strategy)")


def main(argv: Optional[list[str]] = None) -> None:
    p = argparse.ArgumentParser(prog="storyomatic", description="Story-o-matic interactive fiction CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("new", help="Start a new story")
    _add_settings_options(sp, required_genre=True)
    sp.add_argument("--language", choices=LANGUAGES)
    sp.add_argument("--title", help="Use this title instead of generating one")
    sp.add_argument("--opening", help="Use this text verbatim as the opening scene")
    sp.set_defaults(func=cmd_new)

    sp = sub.add_parser("list", help="List saved stories, newest first")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("use", help="Set the current story by id")
    sp.add_argument("story_id")
    sp.set_defaults(func=cmd_use)

    sp = sub.add_parser("show", help="Print a story and its pending choices")
    _add_story_option(sp)
    sp.add_argument("--current-only", action="store_true", help="Only print the current segment")
    sp.add_argument("--debug", action="store_true", help="Also print the request/response log")
    sp.set_defaults(func=cmd_show)

    sp = sub.add_parser("choose", help="Continue the story with a choice")
    sp.add_argument("index", type=int, nargs="?", help="Number of an offered choice")
    sp.add_argument("--custom", help="Write your own choice instead")
    sp.add_argument("--nudge", action="append", metavar="INSTRUCTION",
                    help="Instruction title to steer the next scene (repeatable)")
    _add_story_option(sp)
    sp.set_defaults(func=cmd_choose)

    sp = sub.add_parser("regenerate", help="Ask for a new pair of choices")
    _add_story_option(sp)
    sp.set_defaults(func=cmd_regenerate)

    sp = sub.add_parser("retry", help="Retry the last failed start or choice")
    _add_story_option(sp)
    sp.set_defaults(func=cmd_retry)

    sp = sub.add_parser("summary", help="Summarize the story so far")
    _add_story_option(sp)
    sp.set_defaults(func=cmd_summary)

    sp = sub.add_parser("settings", help="Edit a story's settings and refresh its choices")
    _add_settings_options(sp, required_genre=False)
    sp.add_argument("--clear-style", action="store_true", help="Remove the style inspiration")
    _add_story_option(sp)
    sp.set_defaults(func=cmd_settings)

    sp = sub.add_parser("delete", help="Delete a saved story")
    sp.add_argument("story_id")
    sp.set_defaults(func=cmd_delete)

    sp = sub.add_parser("genres", help="List available genres")
    sp.set_defaults(func=cmd_genres)

    sp = sub.add_parser("instructions", help="List instructions usable with --nudge")
    sp.set_defaults(func=cmd_instructions)

    sp = sub.add_parser("setup", help="Configure provider, API key and defaults")
    sp.add_argument("--provider", choices=TEXT_PROVIDERS)
    sp.add_argument("--model", help="Default model for the provider")
    sp.add_argument("--strategy", choices=STRATEGY_VERSIONS)
    sp.add_argument("--language", choices=LANGUAGES)
    sp.add_argument("--library-dir", help="Directory for saved stories")
    sp.set_defaults(func=cmd_setup)

    sp = sub.add_parser("web", help="Launch the HTTP API")
    sp.add_argument("--port", type=int, default=8001, help="Port to run the server on (default: 8001)")
    sp.add_argument("--no-browser", action="store_true", help="Don't open browser automatically")
    sp.set_defaults(func=cmd_web)

    args = p.parse_args(argv)
    try:
        args.func(args)
    except StoryomaticError as e:
        print(f"[red]{escape(e.user_message)}[/]")
        if e.help_text:
            print(f"[dim]{escape(e.help_text)}[/]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
