#!/usr/bin/env python3
"""
CLI entry point (replkit command): a bare prompt with the built-in commands.

Mostly useful to inspect or edit ~/.replkit/config.json.
"""

from __future__ import annotations

import argparse
import sys

from replkit.config import DEFAULTS, Config, get_config_manager

BOOL_KEYS = ("normalize_key_pairs", "builtins")
INT_KEYS = ("history_size",)


def print_config():
    """Print current configuration."""
    cfg_mgr = get_config_manager()
    settings = cfg_mgr.list_settings()

    print(f"Config file: {cfg_mgr.CONFIG_FILE}")

    if settings:
        print("\nCustom settings:")
        for key, value in settings.items():
            print(f"  {key}: {value}")

    print("\nDefaults (used when not set):")
    for key, value in DEFAULTS.items():
        if key not in settings:
            print(f"  {key}: {value}")

    print("\nSet with: replkit --set-config key=value")
    print(f"Available keys: {', '.join(Config.model_fields)}")
    print()


def convert_value(key: str, value: str):
    """Convert a command-line string to the setting's type."""
    if key in INT_KEYS:
        return int(value)
    if key in BOOL_KEYS:
        return value.lower() in ("true", "1", "yes")
    return value


def main():
    """Main entry point for the replkit CLI."""
    cfg_mgr = get_config_manager()
    cfg = cfg_mgr.config

    parser = argparse.ArgumentParser(
        description="Interactive command prompt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Config file: {cfg_mgr.CONFIG_FILE}

Examples:
    replkit                                # Start the prompt
    replkit --history-id demo              # Persist history under "demo"
    replkit --config                       # Show current config
    replkit --set-config delimiter=app$    # Change the prompt
        """,
    )
    parser.add_argument("--delimiter", default=None,
                        help=f"Prompt delimiter (default: {cfg.get('delimiter')})")
    parser.add_argument("--history-id", default=None,
                        help="Persist history under this id")
    parser.add_argument("--config", action="store_true",
                        help="Show current configuration")
    parser.add_argument("--set-config", metavar="KEY=VALUE",
                        help="Set a config value")
    parser.add_argument("--unset-config", metavar="KEY",
                        help="Unset a config value (reset to default)")

    args = parser.parse_args()

    if args.config:
        print_config()
        return

    if args.set_config:
        try:
            key, value = args.set_config.split("=", 1)
            key = key.strip()
            value = convert_value(key, value.strip())
            cfg_mgr.set(key, value)
            print(f"Set {key} = {value}")
            print(f"Saved to {cfg_mgr.CONFIG_FILE}")
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        return

    if args.unset_config:
        try:
            cfg_mgr.unset(args.unset_config)
            print(f"Unset {args.unset_config}")
            print(f"Saved to {cfg_mgr.CONFIG_FILE}")
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        return

    from replkit.cli._repl import repl
    from replkit.session import Session

    session = Session(config=cfg)
    if args.delimiter:
        session.delimiter = args.delimiter
    if args.history_id:
        session.use_history(args.history_id)
    repl(session)


if __name__ == "__main__":
    main()
