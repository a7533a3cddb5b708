"""Command-line interface for the TradingView bot client.

WHY: Users need a way to connect a bot, check whether it is authenticated,
copy its webhook URL and rotate its secret from the terminal. The CLI
wires the session, transport and flows together behind subcommands.

HOW: Uses argparse with one subcommand per action. Each subcommand runs
an async routine via asyncio.run() inside one BotApiClient context, then
prints the app's rendered screen to stdout. Log output and warnings go to
stderr.

RULES:
- Subcommands: setup, dashboard, open, regenerate, copy-webhook, watch,
  serve-stub
- The bot token is prompted for (hidden) when --token is not given
- regenerate asks for confirmation unless --yes is given
- Exit codes: 0 success, 1 operation failed, 2 invalid input
- A degraded session (state file unusable) is reported on stderr
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tvbot_client import __version__
from tvbot_client.api.client import BotApiClient
from tvbot_client.api.models import DeliveryTarget
from tvbot_client.app import BotClientApp, View, dashboard_location
from tvbot_client.clipboard import ClipboardFeedback, CopyControl, TkClipboardWriter
from tvbot_client.config import AUTH_POLL_TIMEOUT_S, load_base_url
from tvbot_client.flash import FlashMessageQueue
from tvbot_client.flows.base import ValidationError
from tvbot_client.flows.dashboard import AuthenticationTimeoutError, DashboardPhase
from tvbot_client.flows.rotation import ROTATION_CONFIRM_PROMPT
from tvbot_client.session import SessionIdentityProvider

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _confirm(prompt: str) -> bool:
    try:
        answer = input("{} [y/N] ".format(prompt))
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _dashboard_exit_code(app: BotClientApp) -> int:
    if app.view is View.DASHBOARD and app.dashboard.phase is DashboardPhase.LOADED:
        return EXIT_OK
    return EXIT_FAILED


# ---------------------------------------------------------------------------
# Subcommand routines
# ---------------------------------------------------------------------------


async def _cmd_setup(app: BotClientApp, args: argparse.Namespace) -> int:
    token = args.token
    if token is None:
        token = getpass.getpass("Bot token: ")
    subject_id = await app.setup.submit(token, args.target)
    print(app.render())
    if subject_id is None:
        return EXIT_FAILED
    _status("Dashboard location: {}".format(dashboard_location(subject_id)))
    return _dashboard_exit_code(app)


async def _cmd_dashboard(app: BotClientApp, args: argparse.Namespace) -> int:
    await app.open_dashboard(args.subject_id)
    print(app.render())
    return _dashboard_exit_code(app)


async def _cmd_open(app: BotClientApp, args: argparse.Namespace) -> int:
    view = await app.open(args.location)
    print(app.render())
    if view is View.DASHBOARD:
        return _dashboard_exit_code(app)
    return EXIT_OK if view is View.SETUP else EXIT_FAILED


async def _cmd_regenerate(app: BotClientApp, args: argparse.Namespace) -> int:
    await app.open_dashboard(args.subject_id)
    if app.dashboard.phase is not DashboardPhase.LOADED:
        print(app.render())
        return EXIT_FAILED

    def confirm() -> bool:
        return args.yes or _confirm(ROTATION_CONFIRM_PROMPT)

    rotated = await app.rotation.rotate(confirm)
    print(app.render())
    if not rotated:
        return EXIT_FAILED
    return _dashboard_exit_code(app)


async def _cmd_copy_webhook(app: BotClientApp, args: argparse.Namespace) -> int:
    await app.open_dashboard(args.subject_id)
    if app.dashboard.phase is not DashboardPhase.LOADED:
        print(app.render())
        return EXIT_FAILED

    writer = TkClipboardWriter()
    feedback = ClipboardFeedback(CopyControl(), writer)
    try:
        copied = app.copy_webhook(feedback)
        print(app.render(copy_label=feedback.control.display))
    finally:
        writer.close()
    if not copied:
        _status("Could not access the clipboard; copy the URL above manually.")
        return EXIT_FAILED
    return EXIT_OK


async def _cmd_watch(app: BotClientApp, args: argparse.Namespace) -> int:
    await app.open_dashboard(args.subject_id)
    print(app.render())
    if app.dashboard.phase is not DashboardPhase.LOADED:
        return EXIT_FAILED

    state = app.dashboard.state
    if state is not None and not state.authenticated:
        _status("Waiting for the bot to be authenticated (send {} in chat)...".format(
            state.auth_command or "the auth command"
        ))
    try:
        state = await app.dashboard.poll_until_authenticated(timeout=args.timeout)
    except AuthenticationTimeoutError as exc:
        _status(str(exc))
        return EXIT_FAILED

    print()
    print(app.render())
    return EXIT_OK if state is not None else EXIT_FAILED


_COMMANDS = {
    "setup": _cmd_setup,
    "dashboard": _cmd_dashboard,
    "open": _cmd_open,
    "regenerate": _cmd_regenerate,
    "copy-webhook": _cmd_copy_webhook,
    "watch": _cmd_watch,
}


async def _run(args: argparse.Namespace) -> int:
    session = SessionIdentityProvider(Path(args.state_file) if args.state_file else None)
    session.get_or_create()
    if session.degraded:
        _status(
            "Warning: session storage at {} is unavailable; "
            "this session will not survive a restart.".format(session.state_file)
        )

    async with BotApiClient(session, base_url=args.base_url) as api:
        # One-shot commands print once and exit, so notices never expire.
        app = BotClientApp(api, flash=FlashMessageQueue(timeout=None))
        return await _COMMANDS[args.command](app, args)


def _serve_stub(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("tvbot_client.server.app:app", host=args.host, port=args.port)
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable — tests can inspect the parser without any network.
    """
    parser = argparse.ArgumentParser(
        prog="tvbot-client",
        description="Connect a Telegram bot to TradingView alerts and manage its webhook.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument(
        "--base-url",
        default=None,
        help="Backend base URL (default: TVBOT_API_BASE_URL or the hosted backend).",
    )
    parser.add_argument(
        "--state-file",
        default=None,
        help="Path of the JSON file holding the session identity.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_setup = sub.add_parser("setup", help="Connect a bot and open its dashboard.")
    p_setup.add_argument("--token", default=None, help="Bot token (prompted if omitted).")
    p_setup.add_argument(
        "--target",
        default=DeliveryTarget.PERSONAL.value,
        choices=[t.value for t in DeliveryTarget],
        help="Where alerts are delivered (default: %(default)s).",
    )

    p_dash = sub.add_parser("dashboard", help="Show a bot's dashboard.")
    p_dash.add_argument("subject_id", help="Subject id returned by setup.")

    p_open = sub.add_parser("open", help="Open a location such as /dashboard/<id>.")
    p_open.add_argument("location")

    p_regen = sub.add_parser("regenerate", help="Rotate the webhook secret.")
    p_regen.add_argument("subject_id")
    p_regen.add_argument("--yes", action="store_true", help="Skip the confirmation prompt.")

    p_copy = sub.add_parser("copy-webhook", help="Copy the webhook URL to the clipboard.")
    p_copy.add_argument("subject_id")

    p_watch = sub.add_parser("watch", help="Re-fetch until the bot is authenticated.")
    p_watch.add_argument("subject_id")
    p_watch.add_argument(
        "--timeout",
        type=float,
        default=AUTH_POLL_TIMEOUT_S,
        help="Give up after this many seconds (default: %(default)s).",
    )

    p_serve = sub.add_parser("serve-stub", help="Run the in-memory stub backend.")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``tvbot-client`` and ``python -m tvbot_client``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "serve-stub":
        sys.exit(_serve_stub(args))

    try:
        load_base_url(args.base_url)
    except ValueError as exc:
        _status("Error: {}".format(exc))
        sys.exit(EXIT_INVALID)

    try:
        code = asyncio.run(_run(args))
    except ValidationError as exc:
        _status("Error: {}".format(exc))
        code = EXIT_INVALID
    sys.exit(code)


if __name__ == "__main__":
    main()
