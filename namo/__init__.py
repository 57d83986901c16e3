"""
namo — an interactive query shell.

Reads one query per line, hands it to a pluggable execution engine, and
renders the result pages as JSON. Multi-page result sets are fetched on
demand and stitched together on screen so the whole transcript reads as a
single JSON array.

Layers (bottom to top):
    1. Engine plugins and connection resolution
    2. Line source (terminal input, completion, interrupt)
    3. Error locator and page renderer (presentation)
    4. Pagination controller
    5. Session loop
"""

__version__ = "0.1.0"
