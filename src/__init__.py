"""
Finance Tracker - Source Package

A personal finance tracker: debts, expenses, income, balances and
savings goals in several currencies, with a live dashboard, payment
reminders and an AI assistant that can log records from chat.

DESIGN PRINCIPLES:
1. The ledger is plain data; every engine is a pure function over it
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
