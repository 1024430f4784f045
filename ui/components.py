"""Reusable UI components: menu(), menu_navigate(), loading()

This module consolidates menu system and loading indicators:
- menu() / menu_navigate() - Interactive menus with InquirerPy
- select_value() - Menu whose labels map to arbitrary values
- confirm() / ask_text() - Yes/no and free text prompts
- loading() - Rich spinners for API calls
"""

import sys
from contextlib import contextmanager
from typing import Any

from InquirerPy import inquirer
from InquirerPy.base.control import Choice
from InquirerPy.separator import Separator
from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.theme import Theme

BACK = "← Back"
EXIT = "Exit"
SEPARATOR = "─" * 30

# Catppuccin Mocha Theme
CATPPUCCIN_MOCHA = Theme(
    {
        "menu.title": "bold #cba6f7",  # Purple header
        "menu.text": "#cdd6f4",  # Light text
        "menu.muted": "#6c7086",  # Muted gray
        "info": "#89dceb",  # Sky blue for info
        "success": "#a6e3a1",  # Green for success
        "warning": "#f9e2af",  # Yellow for warnings
        "error": "#f38ba8",  # Red for errors
    }
)

# Global console with theme
console = Console(theme=CATPPUCCIN_MOCHA)

SKIP_KEYS = {"skip": [{"key": "q"}, {"key": "Q"}]}


def _prompt(choices: list, msg: str, enable_search: bool) -> Any:
    """Run a fuzzy or select prompt; None when Q is pressed."""
    if enable_search:
        # Fuzzy search doesn't support separators
        choices = [c for c in choices if not isinstance(c, Separator)]
        return inquirer.fuzzy(
            message=msg or "Menu",
            choices=choices,
            qmark="",
            amark="►",
            pointer="►",
            instruction="(Type to search, Q to quit)",
            mandatory=False,
            keybindings=SKIP_KEYS,
            max_height="70%",
            raise_keyboard_interrupt=False,
        ).execute()

    return inquirer.select(
        message=msg or "Menu",
        choices=choices,
        qmark="",
        amark="►",
        pointer="►",
        instruction="(Use arrow keys, Q to quit)",
        mandatory=False,
        keybindings=SKIP_KEYS,
        raise_keyboard_interrupt=False,
    ).execute()


def _to_choices(opts: list[str]) -> list:
    return [Separator() if opt.startswith("─") else opt for opt in opts]


def menu(opts: list[str], msg: str = "", enable_search: bool = False) -> str:
    """Display interactive menu with automatic "Exit" option.

    Behavior:
        - "Exit" or Q → sys.exit(0)
        - Returns the selected option otherwise
    """
    answer = _prompt(_to_choices([*opts, SEPARATOR, EXIT]), msg, enable_search)
    if answer == EXIT or answer is None:
        sys.exit(0)
    return answer


def menu_navigate(opts: list[str], msg: str = "", enable_search: bool = True) -> str | None:
    """Display interactive menu for navigation (returns None instead of exit).

    Behavior:
        - Adds "← Back" and "Exit" automatically
        - "← Back" or Q returns None (go back)
        - "Exit" exits to terminal
    """
    answer = _prompt(_to_choices([*opts, SEPARATOR, BACK, EXIT]), msg, enable_search)
    if answer == BACK or answer is None:
        return None
    if answer == EXIT:
        sys.exit(0)
    return answer


def select_value(options: list[tuple[str, Any]], msg: str = "", enable_search: bool = False) -> Any:
    """Menu over (label, value) pairs with a "← Back" entry.

    Returns:
        The value of the selected label, or None for back / Q
    """
    choices = [Choice(value=value, name=label) for label, value in options]
    choices.append(Choice(value=None, name=BACK))
    return _prompt(choices, msg, enable_search)


def confirm(msg: str, default: bool = False) -> bool:
    return bool(
        inquirer.confirm(message=msg, default=default, raise_keyboard_interrupt=False).execute()
    )


def ask_text(msg: str) -> str:
    """Free text prompt, stripped; empty string when cancelled."""
    answer = inquirer.text(message=msg, raise_keyboard_interrupt=False).execute()
    return (answer or "").strip()


@contextmanager
def loading(msg: str = "Loading..."):
    """Context manager for displaying loading indicators during operations.

    Usage:
        with loading("Searching anime..."):
            results = catalog_client.search(query)
    """
    with Live(
        Spinner("dots", text=msg),
        console=Console(),
        refresh_per_second=12.5,
        transient=True,  # Spinner disappears after completion
    ):
        yield
