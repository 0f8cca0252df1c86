"""
FormHandler Error Bag
=====================

Field keyed error store shared by the handler and its collaborators.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple


class ErrorBag:
    """
    One error message per field.

    The first message recorded for a field wins; later ones are
    ignored so that the earliest failure is the one reported.

    Example:
        bag = ErrorBag()
        bag.add("age", '"a22" is not a valid integer')
        bag.add("age", "age is required")

        bag.get("age")    # '"a22" is not a valid integer'
        bag.first()       # same
    """

    def __init__(self) -> None:
        self._errors: Dict[str, str] = {}

    def add(self, field: str, message: str) -> bool:
        """
        Record an error for a field.

        Returns:
            True if recorded, False if the field already had one
        """
        if field in self._errors:
            return False
        self._errors[field] = message
        return True

    def get(self, field: str, default: Optional[str] = None) -> Optional[str]:
        """Get error for a field."""
        return self._errors.get(field, default)

    def first(self) -> Optional[str]:
        """Get the earliest recorded error."""
        for message in self._errors.values():
            return message
        return None

    def has(self, field: str) -> bool:
        """Check if field has an error."""
        return field in self._errors

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._errors.items())

    def to_dict(self) -> Dict[str, str]:
        """Get errors as a new dict."""
        return dict(self._errors)

    def clear(self) -> None:
        self._errors.clear()

    def __contains__(self, field: object) -> bool:
        return field in self._errors

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __repr__(self) -> str:
        return f"ErrorBag({self._errors!r})"
