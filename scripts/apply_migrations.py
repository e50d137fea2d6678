#!/usr/bin/env python3
"""Print or apply the hireboard SQL migrations in lexical order."""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "db" / "migrations"


def migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    return sorted(path for path in directory.glob("*.sql") if path.is_file())


def render_sql(directory: Path = MIGRATIONS_DIR) -> str:
    chunks = []
    for path in migration_files(directory):
        chunks.append(f"-- migration: {path.name}\n{path.read_text(encoding='utf-8').strip()}\n")
    return "\n".join(chunks)


async def apply(database_url: str, directory: Path = MIGRATIONS_DIR) -> list[str]:
    import asyncpg  # type: ignore[import-untyped]

    applied: list[str] = []
    conn = await asyncpg.connect(dsn=database_url)
    try:
        for path in migration_files(directory):
            async with conn.transaction():
                await conn.execute(path.read_text(encoding="utf-8"))
            applied.append(path.name)
    finally:
        await conn.close()
    return applied


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit or apply hireboard SQL migrations.")
    parser.add_argument(
        "--database-url",
        default=os.getenv("HB_DATABASE_URL") or os.getenv("DATABASE_URL"),
        help="Postgres DSN; defaults to HB_DATABASE_URL or DATABASE_URL",
    )
    parser.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print the concatenated SQL instead of applying it",
    )
    args = parser.parse_args()

    if args.print_only:
        print(render_sql())
        return

    if not args.database_url:
        parser.error("--database-url (or HB_DATABASE_URL) is required unless --print is given")

    for name in asyncio.run(apply(args.database_url)):
        print(f"applied {name}")


if __name__ == "__main__":
    main()
