"""Input parsing for bank exports (CSV and JSON)."""

from .parser import parse_csv, parse_json, parse_text

__all__ = ["parse_csv", "parse_json", "parse_text"]
