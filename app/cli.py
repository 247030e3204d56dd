"""CLI entrypoints for key lifecycle tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable, Sequence

from app.config import configure_structlog, get_settings
from app.services.key_service import KeyService, KeyServiceError, get_key_service
from gpgkeys import GPGError, KeyRecord

Command = Callable[[KeyService, argparse.Namespace], Awaitable[object]]


def _emit(payload: object) -> None:
    """Print a JSON document (or raw armored text) to stdout."""
    if isinstance(payload, str):
        sys.stdout.write(payload)
        return
    if isinstance(payload, KeyRecord):
        payload = payload.to_dict()
    elif isinstance(payload, list):
        payload = [item.to_dict() if isinstance(item, KeyRecord) else item for item in payload]
    print(json.dumps(payload))


async def _list_private(service: KeyService, _: argparse.Namespace) -> object:
    return await service.list_keys("private")


async def _list_public(service: KeyService, _: argparse.Namespace) -> object:
    return await service.list_keys("public")


async def _show(service: KeyService, args: argparse.Namespace) -> object:
    return await service.get_key("public" if args.public else "private", args.fingerprint)


async def _find_email(service: KeyService, args: argparse.Namespace) -> object:
    return await service.find_private_key_by_email(args.email)


async def _create_primary(service: KeyService, args: argparse.Namespace) -> object:
    return await service.create_primary_key(args.name, args.email, args.passphrase)


async def _create_sub(service: KeyService, args: argparse.Namespace) -> object:
    return await service.create_sub_key(args.fingerprint, args.passphrase)


async def _delete_primary(service: KeyService, args: argparse.Namespace) -> object:
    key = await service.delete_primary_key(args.fingerprint)
    return {"deleted": key.fingerprint, "variant": key.variant.value}


async def _delete_sub(service: KeyService, args: argparse.Namespace) -> object:
    key = await service.delete_sub_key(args.fingerprint)
    return {"deleted": key.fingerprint, "variant": key.variant.value}


async def _export(service: KeyService, args: argparse.Namespace) -> object:
    return await service.export_public_key_block(args.fingerprint)


_COMMANDS: dict[str, Command] = {
    "list-private": _list_private,
    "list-public": _list_public,
    "show": _show,
    "find-email": _find_email,
    "create-primary": _create_primary,
    "create-sub": _create_sub,
    "delete-primary": _delete_primary,
    "delete-sub": _delete_sub,
    "export": _export,
}


async def _run(command: Command, args: argparse.Namespace, service: KeyService) -> int:
    """Run one command and map service failures onto exit codes."""
    try:
        result = await command(service, args)
    except KeyServiceError as exc:
        print(json.dumps({"detail": exc.detail, "code": exc.code}), file=sys.stderr)
        return 1
    except GPGError as exc:
        print(json.dumps({"detail": str(exc), "code": "engine_failure"}), file=sys.stderr)
        return 1
    _emit(result)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported key commands."""
    parser = argparse.ArgumentParser(prog="python -m app.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("list-private", help="List secret keys.")
    subcommands.add_parser("list-public", help="List public keys.")

    show_parser = subcommands.add_parser("show", help="Show one key by fingerprint.")
    show_parser.add_argument("fingerprint")
    show_parser.add_argument("--public", action="store_true", help="Look in the public store.")

    find_parser = subcommands.add_parser("find-email", help="Find a secret key by email.")
    find_parser.add_argument("email")

    create_parser = subcommands.add_parser("create-primary", help="Create a primary key.")
    create_parser.add_argument("--name", required=True)
    create_parser.add_argument("--email", required=True)
    create_parser.add_argument("--passphrase", default="")

    sub_parser = subcommands.add_parser("create-sub", help="Add a signing sub-key.")
    sub_parser.add_argument("fingerprint", help="Fingerprint of the primary key.")
    sub_parser.add_argument("--passphrase", default="")

    for name, help_text in (
        ("delete-primary", "Delete a primary key and its sub-keys."),
        ("delete-sub", "Delete one sub-key."),
        ("export", "Export an armored public key block."),
    ):
        command_parser = subcommands.add_parser(name, help=help_text)
        command_parser.add_argument("fingerprint")
    return parser


def main(argv: Sequence[str] | None = None, service: KeyService | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = _COMMANDS.get(args.command)
    if command is None:
        parser.error("Unsupported command")
        return 2

    configure_structlog(get_settings())
    return asyncio.run(_run(command, args, service or get_key_service()))


if __name__ == "__main__":
    raise SystemExit(main())
