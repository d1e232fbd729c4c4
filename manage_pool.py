# manage_pool.py
"""
Out-of-band tooling for the demo seed pool.

Run before the service starts; request handlers never create tables.

    python manage_pool.py migrate
    python manage_pool.py generate --count 9000 --out seeds/demo-seeds.json
    python manage_pool.py import seeds/demo-seeds.json
    python manage_pool.py init --count 9000
    python manage_pool.py stats
    python manage_pool.py admin-token --subject ops
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from forge.admin_auth import DEFAULT_TOKEN_TTL_SECONDS, issue_admin_token
from forge.db_helpers import create_session_factory, get_db_engine
from forge.entities import Base
from forge.seed_pool import DEFAULT_POOL_SIZE, SeedPool, generate_seeds

logger = logging.getLogger("forge_tools")


def migrate(database_url: Optional[str] = None) -> None:
    engine = get_db_engine(database_url)
    Base.metadata.create_all(engine)
    logger.info("migrate: tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


def export_seeds(seeds: List[str], out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w") as f:
        json.dump(seeds, f, indent=2)
    logger.info("generate: wrote %d seeds to %s", len(seeds), out_path)
    return out_path


def read_seed_file(path: Path) -> List[str]:
    """
    Accepts a plain JSON list of seeds or a list of {"seed": ...} objects.
    """
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list) or not data:
        raise ValueError(f"{path}: expected a non-empty JSON array")
    return [item["seed"] if isinstance(item, dict) else item for item in data]


def _print_stats(pool: SeedPool) -> None:
    stats = pool.stats()
    print(f"Total seeds:     {stats.total}")
    print(f"Available:       {stats.available}")
    print(f"Used:            {stats.used}")
    print(f"Percentage used: {stats.percentage_used:.2f}%")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Demo seed pool tooling")
    parser.add_argument("--database-url", default=None, help="overrides DATABASE_URL / DB_* settings")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="create the seed pool and style tables")

    gen = sub.add_parser("generate", help="generate seeds into a JSON file (no DB access)")
    gen.add_argument("--count", type=int, default=DEFAULT_POOL_SIZE)
    gen.add_argument("--out", type=Path, default=None)

    imp = sub.add_parser("import", help="load seeds from a JSON file, skipping ones already present")
    imp.add_argument("path", type=Path)

    init = sub.add_parser("init", help="fill an empty pool with freshly generated seeds")
    init.add_argument("--count", type=int, default=DEFAULT_POOL_SIZE)

    sub.add_parser("stats", help="print pool statistics")

    tok = sub.add_parser("admin-token", help="issue a signed admin token (needs FORGE_ADMIN_SIGNING_KEY)")
    tok.add_argument("--subject", required=True)
    tok.add_argument("--ttl", type=int, default=DEFAULT_TOKEN_TTL_SECONDS)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "migrate":
        migrate(args.database_url)
        return 0

    if args.command == "generate":
        out = args.out or Path("seeds") / f"demo-seeds-{date.today().isoformat()}.json"
        export_seeds(generate_seeds(args.count), out)
        return 0

    if args.command == "admin-token":
        key = os.getenv("FORGE_ADMIN_SIGNING_KEY", "")
        if not key:
            logger.error("FORGE_ADMIN_SIGNING_KEY is not set")
            return 1
        print(issue_admin_token(args.subject, key, ttl_seconds=args.ttl))
        return 0

    pool = SeedPool(create_session_factory(get_db_engine(args.database_url)))

    if args.command == "import":
        if not args.path.exists():
            logger.error("import: file not found: %s", args.path)
            return 1
        added = pool.load(read_seed_file(args.path))
        logger.info("import: added %d seeds", added)
    elif args.command == "init":
        added = pool.initialize(args.count)
        logger.info("init: added %d seeds", added)

    _print_stats(pool)
    return 0


if __name__ == "__main__":
    sys.exit(main())
