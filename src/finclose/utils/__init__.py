"""Utility functions for finclose."""

from finclose.utils.date_parser import parse_date, parse_month, to_month_key
from finclose.utils.amount_parser import parse_amount, coerce_amount

__all__ = ["parse_date", "parse_month", "to_month_key", "parse_amount", "coerce_amount"]
