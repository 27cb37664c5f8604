"""
Quotes Module - tradie quotes, line items and GST totals.
"""
from tradiehub.modules.quotes.calculations import QuoteTotals, calculate_quote_totals, validate_quote_items
from tradiehub.modules.quotes.models import QUOTE_STATUS_MACHINE, Quote, QuoteItem, QuoteItemType, QuoteStatus
from tradiehub.modules.quotes.service import QuoteService

__all__ = [
    "QUOTE_STATUS_MACHINE",
    "Quote",
    "QuoteItem",
    "QuoteItemType",
    "QuoteStatus",
    "QuoteTotals",
    "calculate_quote_totals",
    "validate_quote_items",
    "QuoteService",
]
