"""Local rule-based extraction package."""

from expense_parser.extraction.amounts import AmountMatch, chinese_to_number, find_amount
from expense_parser.extraction.categories import CATEGORY_TABLE, infer_category
from expense_parser.extraction.local_parser import LocalExpenseExtractor, clean_note

__all__ = [
    "AmountMatch",
    "CATEGORY_TABLE",
    "LocalExpenseExtractor",
    "chinese_to_number",
    "clean_note",
    "find_amount",
    "infer_category",
]
