"""
Book Viewer - Live order book and trade tape for Hyperliquid perpetuals.

Architecture:
- datafeed/: WebSocket/HTTP feed, message parsing and the grouped book store
- engine/: Book projection, padding, spread, highlights and the trade tape
- ui/: Order book + trades visualization (Textual TUI)
"""

__version__ = "0.1.0"
