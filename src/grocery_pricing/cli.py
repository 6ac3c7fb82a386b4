#!/usr/bin/env python3
"""
Command-line interface for grocery-pricing.

Usage:
    # Do two product names denote the same thing?
    grocery-pricing match "lait 2%" "Lait partiellement écrémé 2% 4 L"

    # Match a shopping list against a catalogue (JSON list of names or {"name": ...})
    grocery-pricing find --catalogue flyer.json lait pain beurre

    # Resolve a price, optionally scaled to a quantity
    grocery-pricing price "poitrine de poulet" --quantity 500 --unit g

    # Copy the government dataset into the price cache
    grocery-pricing import-gov --csv data/prixqc/aliment_qc_prix.csv

    # Deals on a shopping list from a saved flyer snapshot
    grocery-pricing deals --flyers flyers.json --postal-code H2X1Y4 lait oeufs
"""

import argparse
import asyncio
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .constants import GOV_PRICES_CSV, GROCERY_REGION, PRICE_CACHE_PATH
from .exceptions import PricingError
from .services.deal_feed import SnapshotDealFeed, find_deals
from .services.gov_price_loader import ReferencePriceLoader, import_reference_prices
from .services.ingredient_matcher import find_matches, matches, score_match
from .services.ingredient_translator import translate_name, translate_unit
from .services.price_cache import JsonPriceCache
from .services.price_resolver import PriceResolver

console = Console()

_SOURCE_STYLES = {
    "cache": "cyan",
    "government": "green",
    "dynamic-feed": "blue",
    "fallback": "yellow",
    "default": "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _source(source: str) -> str:
    style = _SOURCE_STYLES.get(source, "dim")
    return f"[{style}]{source}[/{style}]"


def _load_catalogue(path: Path) -> list:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("items", [])
    return [item for item in data if isinstance(item, (str, dict))]


# ── Subcommands ─────────────────────────────────────────────────────


def cmd_match(args: argparse.Namespace) -> int:
    matched = matches(args.first, args.second)
    if matched:
        console.print(f"[green]match[/green]  score {score_match(args.first, args.second)}")
    else:
        console.print("[red]no match[/red]")
    return 0 if matched else 1


def cmd_find(args: argparse.Namespace) -> int:
    catalogue = _load_catalogue(Path(args.catalogue))
    candidates = find_matches(args.ingredients, catalogue)
    if not candidates:
        console.print("[yellow]No matches found.[/yellow]")
        return 0

    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Ingredient", min_width=16)
    table.add_column("Item", min_width=30)
    table.add_column("Score", justify="right")
    for candidate in candidates:
        item = candidate.matched_item
        name = item.get("name", "") if isinstance(item, dict) else str(item)
        table.add_row(candidate.ingredient, name, str(candidate.match_score))
    console.print(table)
    return 0


async def cmd_price(args: argparse.Namespace) -> int:
    cache = JsonPriceCache(Path(args.cache)) if args.cache else None
    loader = ReferencePriceLoader(Path(args.csv), region=args.region) if args.csv else None
    feed = SnapshotDealFeed.from_file(Path(args.flyers)) if args.flyers else None
    resolver = PriceResolver(cache=cache, reference_loader=loader, deal_feed=feed, persist_feed_prices=cache is not None)

    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Ingredient", min_width=20)
    table.add_column("Reference price", justify="right")
    table.add_column("Source")
    table.add_column("Category")
    if args.quantity is not None:
        table.add_column("Quantity")
        table.add_column("Cost", justify="right")

    for name in args.names:
        if args.quantity is not None:
            line = await resolver.estimate_cost(name, args.quantity, args.unit, postal_code=args.postal_code)
            quote = line.quote
            extra = [f"{args.quantity:g} {args.unit or ''}".strip(), f"{line.cost:.2f} $"]
        else:
            quote = await resolver.resolve_price(name, postal_code=args.postal_code)
            extra = []
        table.add_row(name, f"{quote.amount:.2f} $", _source(quote.source), quote.category or "", *extra)

    console.print(table)
    if cache is not None:
        cache.save_cache()
    return 0


async def cmd_import_gov(args: argparse.Namespace) -> int:
    loader = ReferencePriceLoader(Path(args.csv), region=args.region)
    if not loader.csv_path.exists():
        console.print(f"[red]File not found: {args.csv}[/red]")
        return 1
    cache = JsonPriceCache(Path(args.cache))
    count = await import_reference_prices(loader, cache)
    cache.save_cache()
    console.print(f"[green]{count} government prices imported[/green] into {args.cache}")
    return 0


def cmd_cache_stats(args: argparse.Namespace) -> int:
    cache = JsonPriceCache(Path(args.cache))
    rows = cache.rows()
    if not rows:
        console.print(f"[yellow]Price cache {args.cache} is empty.[/yellow]")
        return 0

    console.print(f"[bold]{len(rows)} cached prices[/bold] in {args.cache}\n")
    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Source")
    table.add_column("Rows", justify="right")
    table.add_column("Mean price", justify="right")
    by_source = Counter(row.source for row in rows)
    for source, count in by_source.most_common():
        amounts = [row.amount for row in rows if row.source == source]
        table.add_row(source, str(count), f"{sum(amounts) / len(amounts):.2f} $")
    console.print(table)

    categories = Counter(row.category or "?" for row in rows)
    console.print("  " + "  ".join(f"[dim]{category}[/dim] {count}" for category, count in categories.most_common()))
    return 0


def cmd_translate(args: argparse.Namespace) -> int:
    translate = translate_unit if args.unit else translate_name
    for term in args.terms:
        console.print(f"{term} [dim]->[/dim] {translate(term)}")
    return 0


async def cmd_deals(args: argparse.Namespace) -> int:
    feed = SnapshotDealFeed.from_file(Path(args.flyers))
    results = await find_deals(args.ingredients, feed, args.postal_code, max_vendors=args.max_vendors)
    if not results:
        console.print("[yellow]No deals found for this list.[/yellow]")
        return 0

    for deals in results:
        merchant = deals.vendor.merchant or deals.vendor.name
        console.print(f"\n[bold]{merchant}[/bold]  savings {deals.total_savings:.2f} $")
        table = Table(show_header=True, header_style="bold", padding=(0, 1))
        table.add_column("Ingredient", min_width=14)
        table.add_column("Item", min_width=30)
        table.add_column("Price", justify="right")
        table.add_column("Savings", justify="right")
        for match in deals.matches:
            price = f"{match.item.current_price:.2f} $" if match.item.current_price else "-"
            if match.savings is None:
                savings = "-"
            else:
                savings = f"{match.savings:.2f} $" + (" [dim](est.)[/dim]" if match.is_estimated else "")
            table.add_row(match.ingredient, match.item.name, price, savings)
        console.print(table)
    return 0


# ── Entry point ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ingredient matching and price resolution for grocery lists",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    match = subparsers.add_parser("match", help="Check whether two names denote the same product")
    match.add_argument("first")
    match.add_argument("second")

    find = subparsers.add_parser("find", help="Match ingredients against a catalogue file")
    find.add_argument("--catalogue", required=True, help="JSON list of names or {\"name\": ...} objects")
    find.add_argument("ingredients", nargs="+")

    price = subparsers.add_parser("price", help="Resolve ingredient prices")
    price.add_argument("names", nargs="+")
    price.add_argument("--quantity", type=float, default=None, help="Scale the price to this quantity")
    price.add_argument("--unit", default=None, help="Unit of --quantity (g, tasse, tbsp...)")
    price.add_argument("--postal-code", default=None, help="Enables the flyer deal feed")
    price.add_argument("--flyers", default=None, help="Flyer snapshot JSON used as the deal feed")
    price.add_argument("--cache", default=str(PRICE_CACHE_PATH), help="Price cache file ('' to disable)")
    price.add_argument("--csv", default=None, help="Government price CSV")
    price.add_argument("--region", default=GROCERY_REGION)

    import_gov = subparsers.add_parser("import-gov", help="Import government prices into the price cache")
    import_gov.add_argument("--csv", default=str(GOV_PRICES_CSV))
    import_gov.add_argument("--cache", default=str(PRICE_CACHE_PATH))
    import_gov.add_argument("--region", default=GROCERY_REGION)

    stats = subparsers.add_parser("cache-stats", help="Summarize the price cache")
    stats.add_argument("--cache", default=str(PRICE_CACHE_PATH))

    translate = subparsers.add_parser("translate", help="Translate English ingredient names to French")
    translate.add_argument("terms", nargs="+")
    translate.add_argument("--unit", action="store_true", help="Translate units instead of names")

    deals = subparsers.add_parser("deals", help="Find flyer deals for a shopping list")
    deals.add_argument("--flyers", required=True, help="Flyer snapshot JSON")
    deals.add_argument("--postal-code", required=True)
    deals.add_argument("--max-vendors", type=int, default=8)
    deals.add_argument("ingredients", nargs="+")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    handlers = {
        "match": cmd_match,
        "find": cmd_find,
        "price": cmd_price,
        "import-gov": cmd_import_gov,
        "cache-stats": cmd_cache_stats,
        "translate": cmd_translate,
        "deals": cmd_deals,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        if asyncio.iscoroutinefunction(handler):
            return asyncio.run(handler(args))
        return handler(args)
    except (PricingError, OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
