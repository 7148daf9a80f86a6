#!/usr/bin/env python3
"""genrepo CLI: apply migrations and run the Users demo."""

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

import questionary
from rich.console import Console
from rich.logging import RichHandler

from genrepo.config import config

console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def migrate(path: Path, assume_yes: bool = False) -> int:
    """Apply pending migration scripts. Returns the process exit code."""
    from genrepo.migrations import pending_scripts, upgrade

    pending = asyncio.run(pending_scripts(path=path))
    if not pending:
        console.print("[dim]No pending migrations.[/]")
        return 0

    console.print(f"[yellow]Will apply {len(pending)} script(s) from {path}:[/]")
    for script in pending:
        console.print(f"  {script.name}")

    if not assume_yes and not questionary.confirm("Proceed with these changes?").ask():
        console.print("[dim]Cancelled.[/]")
        return 0

    result = asyncio.run(upgrade(path=path))
    for name in result.applied:
        console.print(f"Applied {name}")

    if not result.successful:
        console.print(f"[red]{result.error}[/]")
        return -1

    console.print("[green]Success![/]")
    return 0


async def demo() -> None:
    """Insert, update, fetch, list and delete one user."""
    from genrepo.errors import NotFoundError
    from genrepo.user import User, UserRepository

    users = UserRepository("Users")
    user_id = uuid.uuid4()

    console.print(" Save into table users ")
    await users.insert(User(Id=user_id, FirstName="Test2", LastName="LastName2"))

    await users.update(User(Id=user_id, FirstName="Test3", LastName="LastName3"))

    user = await users.get(user_id)
    console.print(f"Fetched User {user.FirstName}")

    everyone = await users.get_all()
    console.print(f"Users in table: {len(everyone)}")

    await users.delete_row(user_id)
    try:
        await users.get(user_id)
    except NotFoundError as e:
        console.print(f"[dim]{e}[/]")


def main():
    parser = argparse.ArgumentParser(description="genrepo CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate_parser = subparsers.add_parser("migrate", help="Apply pending SQL migrations")
    migrate_parser.add_argument(
        "--path", type=Path, default=config.migrations_path, help="Directory of .sql scripts"
    )
    migrate_parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("demo", help="Run CRUD operations against the Users table")

    args = parser.parse_args()
    setup_logging(config.log_level)

    if args.command == "migrate":
        sys.exit(migrate(args.path, assume_yes=args.yes))
    elif args.command == "demo":
        asyncio.run(demo())


if __name__ == "__main__":
    main()
