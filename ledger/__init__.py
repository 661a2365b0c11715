"""
Personal Ledger - Source Package

A small personal finance dashboard: monthly income, fixed and variable
expenses, category breakdowns and stored monthly reports.

DESIGN PRINCIPLES:
1. The data store is the only source of truth
2. Validate before any mutation
3. Multi-row changes commit atomically or not at all
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
