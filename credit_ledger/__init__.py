"""
Credit Ledger - Purchase crediting, chapter unlocks and guest merges.
"""

__version__ = "0.1.0"
