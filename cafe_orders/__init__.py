"""
                Café Ordering Core

Order composition, pricing and fulfillment pipeline for a café menu
backed by a spreadsheet store, plus the kitchen feed that follows
orders through preparation.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
