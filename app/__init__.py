"""
                Restaurant POS Backend

Point-of-sale backend for a per-gram priced restaurant menu:
menu catalog, billing, sales summaries and a settings store,
served over an in-memory (v0) and a SQL-backed (v1) API surface.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
