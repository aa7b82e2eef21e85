# STARS/cli/scores.py
"""
Per-state scores, list-view table and agreement summary from a STARS store.

License: MIT

Usage:
    # Combined weighted scores for every rated state
    python -m STARS.cli.scores --db stars.db

    # One rater only, one criterion only
    python -m STARS.cli.scores --db stars.db --view primary --criterion "Climate"

    # Sortable list view with per-rater averages
    python -m STARS.cli.scores --db stars.db --table --sort secondary --order asc

    # Agreement between the two raters
    python -m STARS.cli.scores --db stars.db --agreement

Output formats:
    --format text   Human-readable (default)
    --format json   JSON for automation
    --format csv    CSV for spreadsheets
"""
from __future__ import annotations
import argparse
import csv
import json
import logging
import sys

from STARS.core.aggregation import ALL_CRITERIA, COMBINED, display_value, star_value
from STARS.core.errors import StarsError
from STARS.core.service import StarsService, create_service


def resolve_criterion(svc: StarsService, ref: str) -> str:
    """Accept a criterion id or a (case-insensitive) active criterion name."""
    if ref in (None, "", ALL_CRITERIA):
        return ALL_CRITERIA
    for crit in svc.list_criteria(include_inactive=True):
        if crit.id == ref:
            return crit.id
    for crit in svc.list_criteria():
        if crit.name.lower() == ref.lower():
            return crit.id
    raise StarsError(f"Unknown criterion: {ref}")


def print_scores(svc: StarsService, args, criterion: str) -> None:
    scores = svc.compute_state_scores(view=args.view, criterion_filter=criterion)
    rated = [s for s in scores if s.has_ratings]
    if not args.all:
        scores = rated
    scores = sorted(scores, key=lambda s: -s.score)

    if args.format == "json":
        top = svc.top_state(view=args.view, criterion_filter=criterion)
        print(json.dumps({
            "view": args.view,
            "criterion": criterion,
            "rated": len(rated),
            "top_state": top.state_code if top else None,
            "states": [s.to_dict() for s in scores],
        }, indent=2, ensure_ascii=False))
    elif args.format == "csv":
        writer = csv.writer(sys.stdout, lineterminator="\n")
        writer.writerow(["state_code", "score", "has_ratings", "criteria_rated"])
        for s in scores:
            writer.writerow([s.state_code, display_value(s.score), s.has_ratings, s.criteria_rated])
    else:
        print(f"\nView: {args.view} | Criterion: {criterion}")
        print(f"States rated: {len(rated)}/{len(svc.list_states())}")
        print("-" * 60)
        for s in scores:
            if s.has_ratings:
                stars = "*" * star_value(s.score)
                print(f" {s.state_code}  {display_value(s.score):4.1f}  {stars:<10}  ({s.criteria_rated} criteria)")
            else:
                print(f" {s.state_code}   --   not rated")
        print("-" * 60)


def print_table(svc: StarsService, args, criterion: str) -> None:
    rows = svc.state_table(criterion_filter=criterion, sort_by=args.sort, order=args.order)
    rater_ids = [r.id for r in svc.list_raters()]

    if args.format == "json":
        print(json.dumps({"criterion": criterion, "sort": args.sort, "order": args.order,
                          "rows": [r.to_dict() for r in rows]}, indent=2, ensure_ascii=False))
    elif args.format == "csv":
        writer = csv.writer(sys.stdout, lineterminator="\n")
        writer.writerow(["state", "code", "combined"] + rater_ids)
        for r in rows:
            cells = [display_value(r.combined) if r.combined_has_ratings else ""]
            for rid in rater_ids:
                avg = r.rater_averages[rid]
                cells.append(display_value(avg.average) if avg.has_ratings else "")
            writer.writerow([r.state.name, r.state.code] + cells)
    else:
        header = f" {'State':<16} {'Combined':>8} " + " ".join(f"{rid:>10}" for rid in rater_ids)
        print(header)
        print("-" * len(header))
        for r in rows:
            combined = f"{display_value(r.combined):.1f}" if r.combined_has_ratings else "--"
            cells = []
            for rid in rater_ids:
                avg = r.rater_averages[rid]
                cells.append(f"{display_value(avg.average):.1f}" if avg.has_ratings else "--")
            print(f" {r.state.name:<16} {combined:>8} " + " ".join(f"{c:>10}" for c in cells))


def print_agreement(svc: StarsService, args) -> None:
    summary = svc.compute_agreement(args.rater_a, args.rater_b)
    if args.format == "json":
        print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    elif args.format == "csv":
        data = summary.to_dict()
        writer = csv.writer(sys.stdout, lineterminator="\n")
        writer.writerow(list(data))
        writer.writerow(list(data.values()))
    else:
        print(f"\nRaters: {summary.rater_a} vs {summary.rater_b} (tolerance ±{summary.tolerance})")
        print(f"States Rated:   {summary.rated_state_count}/{len(svc.list_states())}")
        print(f"Agreement Rate: {summary.agreement_rate_pct}% "
              f"({summary.agreements}/{summary.comparisons} comparisons)")
        print(f"Top Rated:      {summary.top_state or 'N/A'}")


def main():
    ap = argparse.ArgumentParser(
        description="Weighted state scores from STARS ratings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m STARS.cli.scores --db stars.db
  python -m STARS.cli.scores --db stars.db --view secondary --criterion Climate
  python -m STARS.cli.scores --db stars.db --table --format csv
  python -m STARS.cli.scores --db stars.db --agreement --format json
        """
    )

    ap.add_argument("--db", default=None,
                    help="SQLite store (default: STARS_DB_PATH or STARS/data/stars.db)")
    ap.add_argument("--config", default=None, help="JSON config file (raters, tolerance)")

    ap.add_argument("--view", default=COMBINED,
                    help="'combined' (default) or a rater id")
    ap.add_argument("--criterion", default=ALL_CRITERIA,
                    help="Criterion id or name to isolate (default: all)")
    ap.add_argument("--all", action="store_true", help="Include unrated states")

    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--table", action="store_true", help="List view with per-rater averages")
    mode.add_argument("--agreement", action="store_true", help="Agreement summary between two raters")

    ap.add_argument("--sort", default="rating", help="Table sort key: name, rating or a rater id")
    ap.add_argument("--order", choices=["asc", "desc"], default="desc", help="Table sort order")
    ap.add_argument("--rater-a", default=None, help="First rater for --agreement")
    ap.add_argument("--rater-b", default=None, help="Second rater for --agreement")

    ap.add_argument("--format", choices=["text", "json", "csv"], default="text",
                    help="Output format (default: text)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    args = ap.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        svc = create_service(path=args.config, backend="sqlite", db_path=args.db,
                             seed_criteria=False)
    except StarsError as e:
        print(f"Error opening store: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with svc:
            if args.agreement:
                print_agreement(svc, args)
            else:
                criterion = resolve_criterion(svc, args.criterion)
                if args.table:
                    print_table(svc, args, criterion)
                else:
                    print_scores(svc, args, criterion)
    except StarsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
