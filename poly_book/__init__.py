"""
poly_book - Live Depth of Market dashboard for Polymarket order books.

Architecture:
- datafeed/: REST catalog + book bootstrap, WebSocket feed, local book store
- engine/: Fast computations (fuzzy search, change detection, ladder stats, tick loop)
- ui/: Frame rendering, in-place terminal sink, market search picker (Textual TUI)
"""

__version__ = "0.1.0"
