"""Mapper Studio - review and correct suggested source-to-target field mappings."""

__version__ = "0.1.0"
