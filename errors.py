#!/usr/bin/env python3
"""
Parse Errors

Exceptions raised while reading dhcpd lease files, dhcpd configuration files
and vendor tables. Every parse error is a ValueError so callers can treat
"this document is currently invalid" with a single except clause.
"""

from typing import Optional


class DhcpdParseError(ValueError):
    """Base class for errors found while parsing dhcpd text formats."""

    def __init__(self, message: str, text: str = '', position: int = 0):
        self.message = message
        self.text = text
        self.position = position
        self.line, self.column = self._line_and_column(text, position)
        self.context = text[position:position + 20]
        super().__init__(self._format())

    @staticmethod
    def _line_and_column(text: str, position: int):
        line = text.count('\n', 0, position) + 1
        column = position - (text.rfind('\n', 0, position) + 1) + 1
        return line, column

    def _format(self) -> str:
        if not self.text:
            return self.message
        return f"{self.message} at line {self.line}, column {self.column} (near {self.context!r})"


class DhcpdSyntaxError(DhcpdParseError):
    """The input deviates from the grammar."""


class LeaseSemanticError(DhcpdParseError):
    """A lease block is syntactically valid but misses required data."""


class VendorTableError(ValueError):
    """The vendor table XML is malformed or has an invalid mac_prefix."""

    def __init__(self, message: str, value: Optional[str] = None):
        self.message = message
        self.value = value
        if value is not None:
            message = f"{message}: {value!r}"
        super().__init__(message)


class InvalidMacAddress(ValueError):
    """A MAC address string is not six groups of two hex digits."""


class InvalidMacPrefix(ValueError):
    """A vendor table MAC prefix is not 1-6 groups of 1-2 hex digits."""
