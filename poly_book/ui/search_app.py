"""
Market search picker using Textual.

Displays:
- Top: search box (free text, or a pasted polymarket.com/event/... URL)
- Middle: status line (errors, URL hint)
- Bottom: ranked results with 24h volume

Exits with the chosen Market, or None when the user quits.
"""

from __future__ import annotations

from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Header, Input, OptionList, Static
from textual.widgets.option_list import Option

from ..datafeed.catalog import MarketCatalog
from ..datafeed.payloads import parse_event_slug
from ..errors import TransientFetchError, UnresolvableMarket
from ..types import Market

HEADER_COLOR = "#94a3b8"
NO_RESULTS_ID = "__none__"


def market_label(market: Market) -> Text:
    """One result row: title plus 24h volume."""
    return Text.assemble(
        (market.title.strip(), "bold"),
        (f"  ${market.volume_24h:,.0f} 24h", HEADER_COLOR),
    )


class MarketSearchApp(App[Market | None]):
    """Search box over the cached catalog."""

    TITLE = "Polymarket Order Book"

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }

    #status {
        height: 1;
        color: #94a3b8;
    }

    #results {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("escape", "quit_picker", "Quit"),
        ("ctrl+q", "quit_picker", "Quit"),
    ]

    def __init__(self, catalog: MarketCatalog, initial_query: str = "", status: str = "") -> None:
        super().__init__()
        self.catalog = catalog
        self._initial_query = initial_query
        self._initial_status = status
        self._results: dict[str, Market] = {}

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Input(
                value=self._initial_query,
                placeholder="Search markets or paste a Polymarket URL",
                id="query",
            ),
            Static(self._initial_status, id="status"),
            OptionList(id="results"),
            id="main-container",
        )
        yield Footer()

    async def on_mount(self) -> None:
        self.query_one(Input).focus()
        self._search(self._initial_query)

    # ── Searching ────────────────────────────────────────────────────

    def _set_status(self, message: str, style: str = HEADER_COLOR) -> None:
        self.query_one("#status", Static).update(Text(message, style=style))

    def _search(self, query: str) -> None:
        self.run_worker(self._run_search(query), exclusive=True, group="search")

    async def _run_search(self, query: str) -> None:
        options = self.query_one(OptionList)

        if parse_event_slug(query):
            self._results = {}
            options.clear_options()
            self._set_status("⏎ Press Enter to load this URL", "cyan")
            return

        try:
            markets = await self.catalog.search(query)
        except TransientFetchError as e:
            self._set_status(f"Failed to reach Polymarket: {e}", "red")
            return

        self._results = {m.id: m for m in markets}
        options.clear_options()
        if markets:
            options.add_options([Option(market_label(m), id=m.id) for m in markets])
            options.highlighted = 0
            if not self._initial_status:
                self._set_status(f"{len(markets)} markets")
        else:
            options.add_option(Option("No results found", id=NO_RESULTS_ID, disabled=True))
        self._initial_status = ""

    def on_input_changed(self, event: Input.Changed) -> None:
        self._search(event.value)

    # ── Selection ────────────────────────────────────────────────────

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if parse_event_slug(event.value):
            self._set_status("Fetching market from URL...")
            try:
                market = await self.catalog.resolve_url(event.value)
            except (UnresolvableMarket, TransientFetchError) as e:
                self._set_status(f"Error: {e}", "red")
                return
            self.exit(market)
            return

        options = self.query_one(OptionList)
        if options.highlighted is None or options.option_count == 0:
            return
        option = options.get_option_at_index(options.highlighted)
        if option.id in self._results:
            self.exit(self._results[option.id])

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        market = self._results.get(event.option_id) or self.catalog.find(event.option_id or "")
        if market is not None:
            self.exit(market)

    def action_quit_picker(self) -> None:
        self.exit(None)


async def pick_market(catalog: MarketCatalog, initial_query: str = "", status: str = "") -> Market | None:
    """Run the picker. Returns the chosen market, or None on quit."""
    app = MarketSearchApp(catalog, initial_query, status)
    return await app.run_async()
