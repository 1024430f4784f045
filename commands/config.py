"""Configuration command handler (openani-cli config ...)."""

from rich.syntax import Syntax

from models.config import get_config_file, reset_settings, save_settings, settings
from ui.components import confirm, console
from utils.exceptions import ConfigError


def config_command(args) -> None:
    """Handle `config show|path|save|reset`.

    - show: effective settings (defaults, config file and environment merged)
    - path: location of the JSON config file
    - save: write the effective settings to the config file for editing
    - reset: delete the config file
    """
    config_file = get_config_file()

    if args.action == "path":
        console.print(str(config_file), highlight=False)
    elif args.action == "save":
        try:
            path = save_settings(settings)
        except ConfigError as e:
            console.print(f"[error]❌ {e}[/error]")
            return
        console.print(f"[success]✅ Configuration saved to {path}[/success]")
    elif args.action == "reset":
        if not config_file.exists():
            console.print("No configuration file to reset.")
            return
        if confirm(f"Delete {config_file} and restore the defaults?"):
            reset_settings()
            console.print("[success]✅ Configuration reset to defaults.[/success]")
    else:
        source = str(config_file) if config_file.exists() else "defaults"
        console.print(f"[menu.muted]# source: {source}[/menu.muted]")
        console.print(Syntax(settings.model_dump_json(indent=2), "json"))
