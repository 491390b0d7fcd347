import argparse
import curses
import locale
import sys
from typing import List, Optional

from .app import SessionApp
from .config import LIST_MESSAGES, LIST_THREADS, ConfigError, load_config
from .debuglog import DebugLogger
from .gmail import GmailClient, GmailError
from .keys import KeyBindingError, KeyMap


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Terminal client for Gmail that composes with your $EDITOR."
    )
    parser.add_argument(
        "--config",
        default="",
        help="Config file (default: $TUI_GMAIL_CONFIG or ~/.config/tui-gmail/config.toml)",
    )
    parser.add_argument(
        "--query",
        default=None,
        help="Search query for the list view (default: in:inbox)",
    )
    parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Number of threads or messages to list (default: 20)",
    )
    parser.add_argument(
        "--list",
        choices=(LIST_THREADS, LIST_MESSAGES),
        default=None,
        help="List threads or individual messages (default: threads)",
    )
    parser.add_argument(
        "--editor",
        default=None,
        help="Editor to use if EDITOR is not set (default: /usr/bin/emacs)",
    )
    parser.add_argument(
        "--opener",
        default=None,
        help="Program used by ! in the save dialog to view a body instead (default: xdg-open)",
    )
    parser.add_argument(
        "--reply-regexp",
        default=None,
        help="If the subject matches, no reply prefix is added (default: ^(Re|Sv|Aw|AW): )",
    )
    parser.add_argument(
        "--reply-prefix",
        default=None,
        help="String to prepend to the subject in replies (default: 'Re: ')",
    )
    parser.add_argument(
        "--signature",
        default=None,
        help="End of all emails (default: Best regards)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for all actions.",
    )
    parser.add_argument(
        "--debug-log",
        default="logs/tui_gmail.debug.log",
        help="Log file used with --debug (default: logs/tui_gmail.debug.log)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    locale.setlocale(locale.LC_ALL, "")
    args = parse_args(argv)
    logger = DebugLogger(args.debug_log if args.debug else None)

    overrides = {
        "query": args.query,
        "max_results": args.max_results,
        "list": args.list,
        "editor": args.editor,
        "opener": args.opener,
        "reply_regexp": args.reply_regexp,
        "reply_prefix": args.reply_prefix,
        "signature": args.signature,
    }
    try:
        config = load_config(args.config, overrides=overrides, logger=logger)
        keymap = KeyMap(config.keys)
    except (ConfigError, KeyBindingError) as err:
        logger.log("ERR", f"fatal config error err={err}")
        print(f"Error: {err}", file=sys.stderr)
        return 1

    logger.log(
        "BOOT",
        "startup "
        f"config={config.source_path or '(none)'} list={config.list_kind} "
        f"query={config.query} max_results={config.max_results}",
    )
    client = GmailClient(
        access_token=config.access_token,
        api_base=config.api_base,
        timeout=config.timeout,
        logger=logger,
    )
    try:
        return _run_session(client, config, keymap, logger)
    finally:
        client.close()


def _run_session(client: GmailClient, config, keymap: KeyMap, logger: DebugLogger) -> int:
    app = SessionApp(client, config, logger=logger, keymap=keymap)

    try:
        app.load_labels()
    except GmailError as err:
        logger.log("ERR", f"fatal GmailError err={err}")
        print(f"Error: cannot reach Gmail: {err}", file=sys.stderr)
        return 1

    try:
        curses.wrapper(app.run)
    except KeyboardInterrupt:
        logger.log("BOOT", "keyboard interrupt")
        return 130
    except curses.error as err:
        logger.log("ERR", f"fatal curses error err={err}")
        print(f"Error: cannot initialize terminal: {err}", file=sys.stderr)
        return 1
    logger.log("BOOT", "shutdown ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
