"""
Expense Tracker - Source Package

Record expenses by typing, speaking, or photographing a receipt.
A language model normalizes each capture into a structured expense
that the user confirms before it is stored locally.

DESIGN PRINCIPLES:
1. AI suggests → Human confirms → System stores
2. Text capture always produces a best guess (deterministic fallback)
3. Receipt capture never invents items (empty means nothing recognized)
4. Storage failures are always surfaced, never swallowed
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
