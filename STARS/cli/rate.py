# STARS/cli/rate.py
"""
Record, change, list or delete ratings in a STARS store.

A rating is keyed by (rater, state, criterion): rating the same triple again
overwrites the stored value instead of adding a row.

License: MIT

Usage:
    python -m STARS.cli.rate --db stars.db --rater primary --state CA \\
        --criterion "Climate" --value 8 --notes "mild winters"

    python -m STARS.cli.rate --db stars.db --list --rater primary
    python -m STARS.cli.rate --db stars.db --delete <rating-id>
"""
from __future__ import annotations
import argparse
import json
import logging
import sys

from STARS.core.errors import StarsError
from STARS.core.service import create_service
from STARS.cli.scores import resolve_criterion


def main():
    ap = argparse.ArgumentParser(
        description="Record STARS ratings (1-10) per rater, state and criterion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--db", default=None,
                    help="SQLite store (default: STARS_DB_PATH or STARS/data/stars.db)")
    ap.add_argument("--config", default=None, help="JSON config file (raters)")

    ap.add_argument("--rater", help="Rater id (e.g. primary, secondary)")
    ap.add_argument("--state", help="Two-letter state code")
    ap.add_argument("--criterion", help="Criterion id or name")
    ap.add_argument("--value", type=int, help="Rating value, 1..10")
    ap.add_argument("--notes", default=None, help="Optional free-text notes")

    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--list", action="store_true", help="List ratings (filter with --rater/--state)")
    mode.add_argument("--delete", metavar="RATING_ID", help="Delete a rating by id")

    ap.add_argument("--format", choices=["text", "json"], default="text",
                    help="Output format (default: text)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    args = ap.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s [%(levelname)s] %(message)s")

    if not args.list and not args.delete:
        missing = [opt for opt in ("rater", "state", "criterion", "value")
                   if getattr(args, opt) is None]
        if missing:
            ap.error("missing " + ", ".join(f"--{m}" for m in missing))

    try:
        svc = create_service(path=args.config, backend="sqlite", db_path=args.db)
    except StarsError as e:
        print(f"Error opening store: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with svc:
            if args.list:
                rows = svc.list_ratings(rater_id=args.rater, state_code=args.state)
                names = {c.id: c.name for c in svc.list_criteria(include_inactive=True)}
                if args.format == "json":
                    print(json.dumps([r.to_dict() for r in rows], indent=2, ensure_ascii=False))
                else:
                    for r in rows:
                        note = f"  # {r.notes}" if r.notes else ""
                        print(f" {r.id}  {r.rater_id:<10} {r.state_code}  "
                              f"{names.get(r.criterion_id, r.criterion_id):<24} {r.value:>2}{note}")
                    print(f"{len(rows)} rating(s)")
            elif args.delete:
                removed = svc.delete_rating(args.delete)
                if args.format == "json":
                    print(json.dumps({"id": args.delete, "deleted": removed}))
                else:
                    print(f"Deleted {args.delete}" if removed else f"No rating with id {args.delete}")
                if not removed:
                    sys.exit(1)
            else:
                criterion_id = resolve_criterion(svc, args.criterion)
                rating = svc.upsert_rating(args.rater, args.state, criterion_id,
                                           args.value, args.notes)
                if args.format == "json":
                    print(json.dumps(rating.to_dict(), indent=2, ensure_ascii=False))
                else:
                    print(f"Saved {rating}")
    except StarsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
