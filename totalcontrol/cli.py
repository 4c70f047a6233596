"""
TotalControl command line

Usage:
    totalcontrol rules
    totalcontrol add --items Netflix,YouTube --steps 10000 [--workout 30] ...
    totalcontrol add --category Streaming --category "Social Media" --tomorrow
    totalcontrol categories
    totalcontrol disable|enable|delete RULE_ID
    totalcontrol pending
    totalcontrol cancel PENDING_ID
    totalcontrol sweep
    totalcontrol run
"""
import argparse
import sys
import time
import uuid
from typing import List, Optional

from loguru import logger

from totalcontrol.config import get_settings
from totalcontrol.engine import TotalControl
from totalcontrol.errors import TotalControlError
from totalcontrol.evaluator import rule_status
from totalcontrol.logger import setup_logger
from totalcontrol.models import (
    CATEGORY_PRESETS, BlockCategory, Location, LocationCondition, PasswordCondition, Rule,
    RuleMode, ScheduleCondition, StepsCondition, TimeCondition, TimeRangeCondition,
    TomorrowCondition, WorkoutCondition,
)


def _split(value: str) -> List[str]:
    return [i.strip() for i in value.split(',') if i.strip()]


def _category(value: str) -> BlockCategory:
    try:
        return BlockCategory.find(value)
    except KeyError:
        names = ", ".join(c.name for c in CATEGORY_PRESETS)
        raise argparse.ArgumentTypeError(f"unknown category {value!r} (choose from {names})") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="totalcontrol", description="NO X UNTIL Y")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("rules", help="List rules with their current status")
    sub.add_parser("categories", help="List preset item categories")

    add = sub.add_parser("add", help="Create a rule (applies immediately)")
    add.add_argument("--items", default="", help="Comma-separated: Netflix, YouTube")
    add.add_argument("--category", dest="categories", type=_category, action="append",
                     default=[], metavar="NAME", help="Preset item list, repeatable")
    add.add_argument("--mode", choices=[m.value for m in RuleMode], default=RuleMode.UNTIL.value)
    add.add_argument("--steps", type=int)
    add.add_argument("--workout", type=int, metavar="MINUTES")
    add.add_argument("--time", metavar="HH:MM")
    add.add_argument("--range", metavar="HH:MM-HH:MM")
    add.add_argument("--days", metavar="1,2,3", help="Weekdays, 1=Mon .. 7=Sun")
    add.add_argument("--location", nargs=4, metavar=("NAME", "LAT", "LNG", "RADIUS"))
    add.add_argument("--tomorrow", action="store_true")
    add.add_argument("--password", action="store_true")
    add.add_argument("--except", dest="exceptions", default="", help="Always-allowed items")

    for name, help_text in (("enable", "Enable a rule"),
                            ("disable", "Disable a rule (delayed)"),
                            ("delete", "Delete a rule (delayed)")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("rule_id")

    sub.add_parser("pending", help="List changes waiting out their delay")
    cancel = sub.add_parser("cancel", help="Cancel a pending change")
    cancel.add_argument("pending_id")
    sub.add_parser("sweep", help="Apply pending changes whose delay has passed")
    sub.add_parser("run", help="Tick in the foreground and print what is blocked")
    return parser


def items_from_args(args: argparse.Namespace) -> List[str]:
    """Category presets first, then --items, duplicates dropped"""
    items = [i for c in args.categories for i in c.items] + _split(args.items)
    return list(dict.fromkeys(items))


def conditions_from_args(args: argparse.Namespace) -> list:
    conditions = []
    if args.steps is not None:
        conditions.append(StepsCondition(args.steps))
    if args.workout is not None:
        conditions.append(WorkoutCondition(args.workout))
    if args.time:
        conditions.append(TimeCondition(args.time))
    if args.range:
        start, _, end = args.range.partition("-")
        conditions.append(TimeRangeCondition(start, end))
    if args.days:
        conditions.append(ScheduleCondition(frozenset(int(d) for d in _split(args.days))))
    if args.location:
        name, lat, lng, radius = args.location
        conditions.append(LocationCondition(Location(name, float(lat), float(lng), int(radius))))
    if args.tomorrow:
        conditions.append(TomorrowCondition())
    if args.password:
        conditions.append(PasswordCondition())
    return conditions


def _report(entry) -> None:
    if entry is None:
        print("Applied.")
    else:
        print(f"Weakening change queued as {entry.id}: {entry.describe()}")
        print(f"Takes effect at {entry.effective_at:%Y-%m-%d %H:%M} ({entry.time_remaining_text()})")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logger(settings.log_level, settings.log_file or None)

    try:
        app = TotalControl.from_settings(settings)
        return _dispatch(app, args, settings.tick_interval_seconds)
    except TotalControlError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid value: {e}", file=sys.stderr)
        return 2


def _dispatch(app: TotalControl, args: argparse.Namespace, interval: int) -> int:
    if args.command == "rules":
        snapshot = app.progress.snapshot()
        if not app.store.rules:
            print("No rules yet. Use 'totalcontrol add' to create one.")
        for rule in app.store.rules:
            if rule.enabled:
                blocked, status = rule_status(rule, snapshot)
                state = "BLOCKED" if blocked else "ALLOWED"
            else:
                state, status = "OFF", "Disabled"
            print(f"{rule.id}  [{state:7}]  {rule.describe()}  -  {status}")

    elif args.command == "categories":
        for category in CATEGORY_PRESETS:
            print(category.describe())

    elif args.command == "add":
        rule = Rule(
            id=str(uuid.uuid4())[:8],
            items=tuple(items_from_args(args)),
            conditions=tuple(conditions_from_args(args)),
            mode=RuleMode(args.mode),
            exceptions=tuple(_split(args.exceptions)),
        )
        app.ledger.create(rule)
        print(f"{rule.id}  {rule.describe()}")

    elif args.command in ("enable", "disable"):
        _report(app.ledger.set_enabled(args.rule_id, args.command == "enable"))

    elif args.command == "delete":
        _report(app.ledger.delete(args.rule_id))

    elif args.command == "pending":
        if not app.ledger.pending:
            print("No pending changes.")
        for entry in app.ledger.pending:
            print(f"{entry.id}  {entry.describe()}  ({entry.time_remaining_text()})")

    elif args.command == "cancel":
        entry = app.ledger.cancel(args.pending_id)
        print(f"Cancelled: {entry.describe()}")

    elif args.command == "sweep":
        applied = app.ledger.sweep()
        for entry in applied:
            print(f"Applied: {entry.describe()}")
        if not applied:
            print("Nothing ready.")

    elif args.command == "run":
        app.add_callback(lambda decisions, blocked: print(
            f"[{time.strftime('%H:%M:%S')}] "
            + (f"BLOCKING {', '.join(blocked)}" if blocked else "ALL CONDITIONS MET")))
        app.start(interval)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping")
            app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
