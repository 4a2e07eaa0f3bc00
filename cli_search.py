"""Terminal client that reuses the in-process unit search."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from time import perf_counter
from typing import Iterable, Sequence

from unit_decoder.config import settings
from unit_decoder.errors import UnitDecoderError
from unit_decoder.models import Unit
from unit_decoder.search import SearchService, get_search_service

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def configure_logging(level: str) -> None:
    log_level = logging.getLevelName(level.upper())
    logging.basicConfig(level=log_level, format=LOG_FORMAT, force=True)
    logging.getLogger("elastic_transport").setLevel(log_level)


def run_query(service: SearchService, query: str, category: str | None) -> None:
    start = perf_counter()
    if category:
        units = service.search_by_category(query, category)
    else:
        units = service.search(query)
    pretty_print_units(query, units, (perf_counter() - start) * 1000)


def pretty_print_units(query: str, units: Sequence[Unit], took_ms: float) -> None:
    color = GREEN if took_ms < 200 else RED
    print(f"Query: {query} | results: {len(units)} | took: {color}{took_ms:.1f} ms{RESET}")
    for idx, unit in enumerate(units, start=1):
        print(
            f"  {idx:02d}. {unit.name} | {unit.category} | "
            f"1 = {unit.conversion_factor:g} {unit.base_unit} | {unit.region or '-'}"
        )


def print_suggestions(service: SearchService, query: str) -> None:
    for item in service.suggest(query):
        print(f"  {item['alias']} -> {item['name']} ({item['category']})")


def interactive_shell(service: SearchService, category: str | None) -> None:
    print("Interactive unit search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        run_query(service, query, category)


def batch_mode(service: SearchService, file_path: Path, category: str | None) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            run_query(service, query, category)


def convert_mode(service: SearchService, from_id: str, to_id: str, value: str) -> int:
    try:
        conversion = service.convert(_parse_id(from_id), _parse_id(to_id), float(value))
    except (UnitDecoderError, ValueError) as exc:
        print(f"{RED}{exc}{RESET}")
        return 1
    print(conversion.formula)
    return 0


def _parse_id(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the unit search")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--category", help="Only return units of this category")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--suggest", action="store_true", help="Print autocomplete suggestions for the query")
    parser.add_argument(
        "--convert",
        nargs=3,
        metavar=("FROM_ID", "TO_ID", "VALUE"),
        help="Convert VALUE from one unit id to another",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(args.log_level)
    service = get_search_service()

    if args.convert:
        from_id, to_id, value = args.convert
        return convert_mode(service, from_id, to_id, value)
    if args.batch:
        batch_mode(service, args.batch, args.category)
        return 0
    if args.query and args.suggest:
        print_suggestions(service, args.query)
        return 0
    if args.query:
        run_query(service, args.query, args.category)
        return 0
    interactive_shell(service, args.category)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
