"""Terminal front end driving the polling client against a live store."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import TextIO

from .client import MessengerClient
from .config import load_config_from_env
from .notify import TerminalAlertSink
from .presentation import ConsolePresentation
from .session_store import DEFAULT_STATE_PATH, FileSessionStorage


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="twin-client", description="Twin Messenger polling client")
    parser.add_argument("--api-url", default=None, help="Base URL of the store API (TWIN_API_URL)")
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help=f"Session state file (default: TWIN_STATE_PATH or {DEFAULT_STATE_PATH})",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Sign in and keep the session")
    login.add_argument("email")
    login.add_argument("--password", default=None, help="Password; prompted when omitted")

    register = subparsers.add_parser("register", help="Create an account")
    register.add_argument("name")
    register.add_argument("email")
    register.add_argument("--password", default=None, help="Password; prompted when omitted")

    subparsers.add_parser("logout", help="End the session and clear local state")

    contacts = subparsers.add_parser("contacts", help="Show the contact list")
    contacts.add_argument("--watch", type=float, default=0.0, help="Keep polling for this many seconds")

    add_contact = subparsers.add_parser("add-contact", help="Add a contact by email")
    add_contact.add_argument("email")

    chat = subparsers.add_parser("chat", help="Show a conversation")
    chat.add_argument("contact_id", type=int)
    chat.add_argument("name", nargs="?", default="")
    chat.add_argument("--watch", type=float, default=0.0, help="Keep polling for this many seconds")

    send = subparsers.add_parser("send", help="Send a message")
    send.add_argument("contact_id", type=int)
    send.add_argument("text")

    buzz = subparsers.add_parser("buzz", help="Send a buzz")
    buzz.add_argument("contact_id", type=int)

    subparsers.add_parser("sound", help="Toggle notification sounds")
    return parser


async def _watch(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)


async def _run(args: argparse.Namespace, output: TextIO) -> int:
    config = load_config_from_env(api_url=args.api_url)
    state_path = args.state or config.state_path or DEFAULT_STATE_PATH
    presentation = ConsolePresentation(output)
    client = MessengerClient(
        config,
        storage=FileSessionStorage(state_path),
        presentation=presentation,
        sink=TerminalAlertSink(),
    )
    async with client:
        command = args.command
        if command == "login":
            password = args.password if args.password is not None else getpass.getpass("Password: ")
            ok = await client.login(args.email, password)
            if ok:
                output.write(f"Signed in as {client.session.get().user_name}\n")
            return 0 if ok else 1
        if command == "register":
            password = args.password if args.password is not None else getpass.getpass("Password: ")
            return 0 if await client.register(args.name, args.email, password) else 1
        if command == "logout":
            await client.logout()
            output.write("Signed out\n")
            return 0
        if command == "sound":
            enabled = client.toggle_sound()
            output.write(f"Sound: {'ON' if enabled else 'OFF'}\n")
            return 0

        if not client.require_session():
            output.write("Not signed in. Run `twin-client login EMAIL` first.\n")
            return 1

        if command == "contacts":
            await client.open_contacts()
            await _watch(args.watch)
            return 0
        if command == "add-contact":
            return 0 if await client.add_contact(args.email) else 1

        client.open_chat(args.contact_id, getattr(args, "name", "") or "")
        if not await client.enter_conversation():
            return 1
        if command == "chat":
            await _watch(args.watch)
            return 0
        if command == "send":
            return 0 if await client.send_message(args.text) else 1
        if command == "buzz":
            return 0 if await client.send_buzz() else 1
    return 2


def main(argv: list[str] | None = None, output: TextIO | None = None) -> int:
    """Entry point for CLI commands."""

    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args, output or sys.stdout))


if __name__ == "__main__":  # pragma: no cover - convenience execution
    raise SystemExit(main())
