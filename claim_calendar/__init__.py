"""Claim Calendar - a week view of hours claimed on a monday.com board.

This package fetches claim items from the monday.com GraphQL API, normalizes
them into per-day entries for one user and one week, and writes new and
edited claims back to the board.
"""

__version__ = "0.1.0"

from .claims.memory import CustomerWorkMemory
from .claims.normalizer import EntryNormalizer
from .claims.tracker import ClaimDraft, ClaimTracker
from .monday.client import MondayClient


__all__ = [
    "ClaimDraft",
    "ClaimTracker",
    "CustomerWorkMemory",
    "EntryNormalizer",
    "MondayClient",
]
