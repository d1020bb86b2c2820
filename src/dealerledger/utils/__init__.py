"""Utility functions for dealerledger."""

from dealerledger.utils.date_parser import parse_date
from dealerledger.utils.amount_parser import parse_amount
from dealerledger.utils.person_resolver import resolve_person

__all__ = ["parse_date", "parse_amount", "resolve_person"]
