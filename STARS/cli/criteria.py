# STARS/cli/criteria.py
"""
Manage the weighted criteria of a STARS store.

License: MIT

Usage:
    python -m STARS.cli.criteria --db stars.db
    python -m STARS.cli.criteria --db stars.db --add "Outdoors" --weight 1.5 --color "#2E7D32"
    python -m STARS.cli.criteria --db stars.db --set-weight <id> 2.0
    python -m STARS.cli.criteria --db stars.db --deactivate <id>
"""
from __future__ import annotations
import argparse
import json
import logging
import sys

from STARS.core.criteria import DEFAULT_COLOR
from STARS.core.errors import StarsError
from STARS.core.service import create_service


def main():
    ap = argparse.ArgumentParser(description="Manage STARS criteria")
    ap.add_argument("--db", default=None,
                    help="SQLite store (default: STARS_DB_PATH or STARS/data/stars.db)")
    ap.add_argument("--config", default=None, help="JSON config file")

    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--add", metavar="NAME", help="Create a criterion")
    mode.add_argument("--set-weight", nargs=2, metavar=("ID", "WEIGHT"), help="Change a weight")
    mode.add_argument("--deactivate", metavar="ID", help="Retire a criterion (ratings are kept)")

    ap.add_argument("--weight", type=float, default=1.0, help="Weight for --add (default: 1.0)")
    ap.add_argument("--color", default=DEFAULT_COLOR, help="Display color for --add")
    ap.add_argument("--all", action="store_true", help="List inactive criteria too")
    ap.add_argument("--format", choices=["text", "json"], default="text",
                    help="Output format (default: text)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    args = ap.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        svc = create_service(path=args.config, backend="sqlite", db_path=args.db)
    except StarsError as e:
        print(f"Error opening store: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with svc:
            if args.add:
                changed = [svc.create_criterion(args.add, args.weight, args.color)]
            elif args.set_weight:
                cid, weight = args.set_weight
                try:
                    weight = float(weight)
                except ValueError:
                    ap.error(f"invalid weight: {weight}")
                changed = [svc.update_criterion(cid, weight=weight)]
            elif args.deactivate:
                changed = [svc.deactivate_criterion(args.deactivate)]
            else:
                changed = svc.list_criteria(include_inactive=args.all)

            if args.format == "json":
                print(json.dumps([c.to_dict() for c in changed], indent=2, ensure_ascii=False))
            else:
                for c in changed:
                    flag = "" if c.active else "  (inactive)"
                    print(f" {c.id}  {c.name:<24} {c.weight:>4}x  {c.color}{flag}")
    except StarsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
