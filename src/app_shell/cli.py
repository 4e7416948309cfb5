import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from src.adapters.fs.interchange import InterchangeError, read_rules_file, write_rules_file
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteRuleStore
from src.components.redirects import (
    AddRuleInput,
    DeleteRuleInput,
    ExportRulesInput,
    ImportRulesInput,
    ListRulesInput,
    RedirectRule,
    TestRedirectInput,
    normalize_source,
    run_add,
    run_delete,
    run_export,
    run_import,
    run_list,
    run_test,
)
from src.rules.loader import (
    DEFAULT_RULES_FILENAME,
    find_rules_path,
    load_rules,
    load_rules_or_default,
)
from src.rules.models import Rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


@dataclass
class CliContext:
    rules: Rules
    store: SQLiteRuleStore


def _load_cli_rules(explicit_path: str | None) -> Rules:
    path = find_rules_path(explicit_path)
    try:
        if explicit_path:
            return load_rules(path)
        return load_rules_or_default(path)
    except FileNotFoundError:
        logger.error(f"Rules file {path} not found.")
        sys.exit(1)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)


def get_context(args: argparse.Namespace) -> CliContext:
    rules = _load_cli_rules(args.rules)

    db_path = args.db
    if not db_path:
        data_dir = os.environ.get("REDIRECTS_DATA_DIR", rules.storage.data_dir)
        db_path = str(Path(data_dir) / rules.storage.db_filename)

    SQLiteMigrator(db_path, timeout=rules.storage.busy_timeout_seconds).run_migrations()
    store = SQLiteRuleStore(
        db_path,
        config=rules.redirects.to_config(),
        option_key=rules.redirects.option_key,
        timeout=rules.storage.busy_timeout_seconds,
    )
    return CliContext(rules=rules, store=store)


def _format_table(rules: tuple[RedirectRule, ...]) -> list[str]:
    rows = [("from", "to", "type")] + [(r.source, r.target, str(r.status_code)) for r in rules]
    from_width = max(len(row[0]) for row in rows)
    to_width = max(len(row[1]) for row in rows)
    return [f"{a:<{from_width}}  {b:<{to_width}}  {c}" for a, b, c in rows]


def handle_list(ctx: CliContext, args: argparse.Namespace) -> None:
    out = run_list(ListRulesInput(), store=ctx.store, rules=ctx.rules.redirects)
    if not out.rules:
        print("No redirects.")
        return

    for line in _format_table(out.rules):
        print(line)


def handle_add(ctx: CliContext, args: argparse.Namespace) -> None:
    out = run_add(
        AddRuleInput(source=args.source, target=args.target, status_code=args.type),
        store=ctx.store,
        rules=ctx.rules.redirects,
    )
    if not out.success or out.rule is None:
        for error in out.errors:
            logger.error(error.message)
        sys.exit(1)

    print(f"{'Updated' if out.replaced else 'Added'}: {out.rule.source}")


def handle_delete(ctx: CliContext, args: argparse.Namespace) -> None:
    out = run_delete(
        DeleteRuleInput(source=args.source),
        store=ctx.store,
        rules=ctx.rules.redirects,
    )
    if out.success:
        print(f"Deleted: {normalize_source(args.source)}")
        return

    if any(e.code == "not_found" for e in out.errors):
        logger.warning(f"Not found: {normalize_source(args.source)}")
        return

    for error in out.errors:
        logger.error(error.message)
    sys.exit(1)


def handle_export(ctx: CliContext, args: argparse.Namespace) -> None:
    out = run_export(ExportRulesInput(), store=ctx.store, rules=ctx.rules.redirects)
    try:
        write_rules_file(Path(args.file), out.rules)
    except InterchangeError as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"Exported to: {args.file}")


def handle_import(ctx: CliContext, args: argparse.Namespace) -> None:
    try:
        entries = read_rules_file(Path(args.file))
    except InterchangeError as e:
        logger.error(str(e))
        sys.exit(1)

    out = run_import(
        ImportRulesInput(entries=tuple(entries)),
        store=ctx.store,
        rules=ctx.rules.redirects,
    )
    skipped = len(entries) - len(out.rules)
    if skipped:
        logger.warning(f"Skipped {skipped} invalid rule(s).")
    print(f"Imported from: {args.file}")


def handle_test(ctx: CliContext, args: argparse.Namespace) -> None:
    if not args.url.strip():
        logger.error("Required: --url")
        sys.exit(1)

    out = run_test(TestRedirectInput(url=args.url), store=ctx.store, rules=ctx.rules.redirects)
    if out.resolution is None:
        print("No match.")
        return

    print(f"Matched from: {out.resolution.matched_from}")
    print(f"Type: {out.resolution.status_code}")
    print(f"Target: {out.resolution.target}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="redirects", description="Site Redirects CLI")
    parser.add_argument("--rules", help=f"Path to rules file (default: {DEFAULT_RULES_FILENAME})")
    parser.add_argument("--db", help="Path to SQLite database (overrides rules file)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # list
    subparsers.add_parser("list", help="List all redirect rules")

    # add
    add_parser = subparsers.add_parser("add", help="Add or update a redirect rule")
    add_parser.add_argument(
        "--from", dest="source", required=True, help="Source path, may include * wildcards"
    )
    add_parser.add_argument(
        "--to", dest="target", required=True, help="Target URL or path, may use $1, $2..."
    )
    add_parser.add_argument("--type", type=int, help="HTTP status code (default: 301)")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a redirect rule by source")
    delete_parser.add_argument(
        "--from", dest="source", required=True, help="Source path (exact, including any *)"
    )

    # export
    export_parser = subparsers.add_parser("export", help="Export rules to a JSON file")
    export_parser.add_argument("--file", required=True, help="Output file (e.g. redirects.json)")

    # import
    import_parser = subparsers.add_parser("import", help="Import rules from a JSON file")
    import_parser.add_argument("--file", required=True, help="Input file (e.g. redirects.json)")

    # test
    test_parser = subparsers.add_parser("test", help="Dry-run a redirect match")
    test_parser.add_argument("--url", required=True, help="URL or path, e.g. '/old/abc?x=1'")

    return parser


HANDLERS = {
    "list": handle_list,
    "add": handle_add,
    "delete": handle_delete,
    "export": handle_export,
    "import": handle_import,
    "test": handle_test,
}


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    ctx = get_context(args)
    HANDLERS[args.command](ctx, args)


if __name__ == "__main__":
    main()
