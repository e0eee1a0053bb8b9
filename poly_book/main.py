#!/usr/bin/env python3
"""
poly_book - Live Depth of Market dashboard for Polymarket order books.

Usage:
    python -m poly_book
    python -m poly_book "fed rates"
    python -m poly_book https://polymarket.com/event/<slug>

Controls:
    Search screen: type to search, Enter to open, Esc to quit
    Dashboard:     Ctrl+C to go back to search
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from .config import DEFAULT_LOG_FILE, DashboardConfig


async def run_dashboard(dashboard, sink) -> None:
    """Run one dashboard until Ctrl+C."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers on this platform; Ctrl+C exits instead
        installed = False

    sink.console.clear()
    try:
        await dashboard.run(stop)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def main(args: argparse.Namespace) -> None:
    """Main entry point - search picker and dashboard, in turn, until quit."""

    # Import here to avoid slow startup for --help
    import aiohttp

    from .dashboard import Dashboard
    from .datafeed.catalog import MarketCatalog
    from .datafeed.feed_client import FeedClient, ws_connector
    from .datafeed.orderbook import OrderBookStore
    from .datafeed.payloads import parse_event_slug
    from .datafeed.rest import PolymarketRest
    from .engine.search import SearchWeights
    from .errors import TransientFetchError, UnresolvableMarket
    from .ui.search_app import pick_market
    from .ui.terminal import TerminalSink

    config = DashboardConfig.from_args(args)
    logger = logging.getLogger("poly_book.main")

    async with aiohttp.ClientSession() as session:
        rest = PolymarketRest(session, config.gamma_base, config.clob_base, config.request_timeout)
        catalog = MarketCatalog(
            rest.fetch_markets,
            rest.fetch_event_market,
            ttl=config.catalog_ttl,
            page_size=config.catalog_page_size,
            top_n=config.top_markets,
            limit=config.search_limit,
            weights=SearchWeights(
                title=config.title_weight,
                description=config.description_weight,
                threshold=config.search_threshold,
                min_match_len=config.min_match_len,
            ),
        )
        store = OrderBookStore(rest.fetch_book)
        feed = FeedClient(
            store.apply_snapshot,
            ws_connector(session, config.heartbeat),
            config.ws_url,
            backoff_base=config.backoff_base,
            backoff_cap=config.backoff_cap,
        )
        sink = TerminalSink()

        query = args.query or ""
        status = ""
        try:
            while True:
                market = None
                if parse_event_slug(query):
                    try:
                        market = await catalog.resolve_url(query)
                    except (UnresolvableMarket, TransientFetchError) as e:
                        status = f"Error: {e}"
                    query = ""

                if market is None:
                    market = await pick_market(catalog, query, status)
                    if market is None:
                        return
                status = ""

                try:
                    dashboard = Dashboard(market, store, feed, sink, config, outcome=args.outcome)
                except UnresolvableMarket as e:
                    logger.info("Cannot open %s: %s", market.id, e)
                    status = f"Error: {e}"
                    continue
                await run_dashboard(dashboard, sink)
        finally:
            await feed.close()


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="poly_book - Live order book dashboard for Polymarket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    poly-book
    poly-book "bitcoin above"
    poly-book https://polymarket.com/event/fed-decision-in-december
    poly-book "election" --outcome 0 --interval-ms 200
        """
    )

    parser.add_argument(
        "query",
        nargs="?",
        default="",
        help="Initial search text, or a polymarket.com/event/... URL"
    )

    parser.add_argument(
        "--outcome",
        type=int,
        default=None,
        help="Show a single outcome's book (0-based index) instead of both"
    )

    parser.add_argument(
        "--interval-ms",
        type=int,
        default=100,
        help="Render interval in milliseconds (default: 100)"
    )

    parser.add_argument(
        "--flash-ms",
        type=int,
        default=300,
        help="How long a changed price stays highlighted (default: 300)"
    )

    parser.add_argument(
        "--log-file",
        default=str(DEFAULT_LOG_FILE),
        help=f"Log file (default: {DEFAULT_LOG_FILE})"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )

    args = parser.parse_args()

    from .log import setup_logging
    setup_logging(args.log_file, args.log_level)

    # Run
    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
