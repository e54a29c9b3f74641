"""
Budget Tracker - Core Package

The computation and persistence core of a personal budget tracker:
users record income/expense transactions, set monthly budgets per
category and look at aggregated statistics.

DESIGN PRINCIPLES:
1. Aggregation is pure - it never mutates the list it is given
2. The amount sign is the only source of truth for direction
3. No silent corrections (bad numbers raise, they never become zero)
4. Every mutation is persisted and audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Tracker Team"
