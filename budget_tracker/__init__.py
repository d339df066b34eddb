"""
Budget Tracker - Source Package

A small expense-tracking application for two independent ledgers
(personal and business) that uses Google Sheets as its database.

DESIGN PRINCIPLES:
1. The spreadsheet stays human-readable and human-editable
2. Validate before touching the store
3. Fail visibly with a field-specific message
4. Every write is logged with a correlation ID
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Tracker Team"
