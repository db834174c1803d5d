"""
Apartment Alerts - match new apartment listings against saved searches.

Evaluates listings against user alerts (area, price, bedrooms, pets and
transit commute), records each match once in a notification ledger, and
hands the pending records to an external notifier for delivery.
"""

__version__ = "0.1.0"
