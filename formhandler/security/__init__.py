"""
FormHandler Security Module
===========================

Input filtering applied before validation:
- URL decoding
- Trimming
- Markup stripping
- Case folding and type coercion
"""

from formhandler.security.sanitizer import FilterConfig, ValueFilter, filter_value

__all__ = [
    "FilterConfig",
    "ValueFilter",
    "filter_value",
]
