#!/usr/bin/env python3
"""
Value Parsers

Low level readers shared by the dhcpd.leases and dhcpd.conf parsers.

Every parser takes the full input text and a start offset and returns a
``(value, new_offset)`` tuple, or raises DhcpdSyntaxError pointing at the
offset where the input stopped matching. The whitespace skippers return only
the new offset.
"""

import re
import string
import ipaddress
from typing import Optional, Tuple

from errors import DhcpdSyntaxError
from models import MacAddress

SPACE_CHARS = ' \t\r\n'
BLANK_CHARS = ' \t'

# Longest digit run converted to an int; lease times fit in 32 bits
MAX_NUMBER_DIGITS = 10

# Two-character escapes understood inside dhcpd string literals
STRING_ESCAPES = {
    'a': '\x07',
    'b': '\x08',
    't': '\t',
    'n': '\n',
    'v': '\x0b',
    'f': '\x0c',
    'r': '\r',
    'e': '\x1b',
    '\\': '\\',
    '"': '"',
}

_LITERAL_RE = re.compile(r'[^\\"]+')
_OCTAL_RE = re.compile(r'[0-7]{3}')
_IPV4_RE = re.compile(r'([0-9]+)\.([0-9]+)\.([0-9]+)\.([0-9]+)')
_HEX_PAIR_RE = re.compile(r'[0-9A-Fa-f]{2}')
_IDENTIFIER_RE = re.compile(r'[A-Za-z0-9_-]+')
_DIGITS_RE = re.compile(r'[0-9]+')


def parse_string(text: str, pos: int = 0) -> Tuple[str, int]:
    """
    Parse a double quoted string literal.

    Supports the escapes in STRING_ESCAPES and three digit octal escapes
    (``\\101`` is ``A``). An octal escape must fit in a single byte and the
    literal must not be empty.
    """
    if not text.startswith('"', pos):
        raise DhcpdSyntaxError("expected string literal", text, pos)
    start = pos
    pos += 1
    chunks = []

    while True:
        if pos >= len(text):
            raise DhcpdSyntaxError("unterminated string literal", text, start)

        char = text[pos]
        if char == '"':
            if not chunks:
                raise DhcpdSyntaxError("empty string literal", text, start)
            return ''.join(chunks), pos + 1

        if char == '\\':
            octal = _OCTAL_RE.match(text, pos + 1)
            if octal:
                value = int(octal.group(), 8)
                if value > 0xFF:
                    raise DhcpdSyntaxError("octal escape out of range", text, pos)
                chunks.append(chr(value))
                pos = octal.end()
                continue

            escape = text[pos + 1:pos + 2]
            if escape not in STRING_ESCAPES:
                raise DhcpdSyntaxError("malformed escape sequence", text, pos)
            chunks.append(STRING_ESCAPES[escape])
            pos += 2
            continue

        literal = _LITERAL_RE.match(text, pos)
        chunks.append(literal.group())
        pos = literal.end()


def parse_ipv4(text: str, pos: int = 0) -> Tuple[ipaddress.IPv4Address, int]:
    """Parse a dotted quad such as ``192.168.1.1``."""
    match = _IPV4_RE.match(text, pos)
    if not match:
        raise DhcpdSyntaxError("expected IPv4 address", text, pos)

    octets = [int(group) for group in match.groups()]
    for index, octet in enumerate(octets):
        if octet > 255:
            raise DhcpdSyntaxError("IPv4 address octet out of range", text, match.start(index + 1))

    return ipaddress.IPv4Address(bytes(octets)), match.end()


def parse_mac(text: str, pos: int = 0) -> Tuple[MacAddress, int]:
    """Parse six colon separated pairs of hex digits, in either case."""
    octets = []
    for index in range(6):
        if index:
            if not text.startswith(':', pos):
                raise DhcpdSyntaxError("expected ':' in MAC address", text, pos)
            pos += 1

        match = _HEX_PAIR_RE.match(text, pos)
        if not match:
            raise DhcpdSyntaxError("expected two hex digits in MAC address", text, pos)
        octets.append(int(match.group(), 16))
        pos = match.end()

    if pos < len(text) and text[pos] in string.hexdigits:
        raise DhcpdSyntaxError("MAC address group longer than two hex digits", text, pos)

    return MacAddress(bytes(octets)), pos


def parse_identifier(text: str, pos: int = 0) -> Tuple[str, int]:
    """Parse a run of letters, digits, '_' and '-'."""
    match = _IDENTIFIER_RE.match(text, pos)
    if not match:
        raise DhcpdSyntaxError("expected identifier", text, pos)
    return match.group(), match.end()


def parse_digits(text: str, pos: int = 0) -> Tuple[str, int]:
    match = _DIGITS_RE.match(text, pos)
    if not match:
        raise DhcpdSyntaxError("expected digits", text, pos)
    return match.group(), match.end()


def skip_space0(text: str, pos: int = 0) -> int:
    """Skip whitespace and '#' comments. Never fails."""
    length = len(text)
    while pos < length:
        char = text[pos]
        if char in SPACE_CHARS:
            pos += 1
        elif char == '#':
            end = text.find('\n', pos)
            pos = length if end == -1 else end + 1
        else:
            break
    return pos


def skip_space1(text: str, pos: int = 0) -> int:
    """Skip whitespace and comments, failing if there is none."""
    end = skip_space0(text, pos)
    if end == pos:
        raise DhcpdSyntaxError("expected whitespace", text, pos)
    return end


def skip_blanks0(text: str, pos: int = 0) -> int:
    """Skip spaces and tabs only."""
    length = len(text)
    while pos < length and text[pos] in BLANK_CHARS:
        pos += 1
    return pos


def skip_blanks1(text: str, pos: int = 0) -> int:
    end = skip_blanks0(text, pos)
    if end == pos:
        raise DhcpdSyntaxError("expected space", text, pos)
    return end


class Scanner:
    """A cursor over dhcpd text used by the recursive descent file parsers."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str, pos: Optional[int] = None) -> DhcpdSyntaxError:
        return DhcpdSyntaxError(message, self.text, self.pos if pos is None else pos)

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos:self.pos + 1]

    def peek_identifier(self) -> Optional[str]:
        match = _IDENTIFIER_RE.match(self.text, self.pos)
        return match.group() if match else None

    def space0(self) -> None:
        self.pos = skip_space0(self.text, self.pos)

    def space1(self) -> None:
        self.pos = skip_space1(self.text, self.pos)

    def blanks0(self) -> None:
        self.pos = skip_blanks0(self.text, self.pos)

    def blanks1(self) -> None:
        self.pos = skip_blanks1(self.text, self.pos)

    def expect(self, char: str) -> None:
        if not self.text.startswith(char, self.pos):
            raise self.error(f"expected '{char}'")
        self.pos += len(char)

    def keyword(self, word: str) -> None:
        """Consume the identifier ``word`` or fail."""
        if self.peek_identifier() != word:
            raise self.error(f"expected '{word}'")
        self.pos += len(word)

    def one_of(self, words) -> str:
        """Consume one identifier out of ``words`` and return it."""
        found = self.peek_identifier()
        if found not in words:
            raise self.error(f"expected one of {', '.join(words)}")
        self.pos += len(found)
        return found

    def identifier(self) -> str:
        value, self.pos = parse_identifier(self.text, self.pos)
        return value

    def digits(self) -> str:
        value, self.pos = parse_digits(self.text, self.pos)
        return value

    def number(self, max_digits: int = MAX_NUMBER_DIGITS) -> int:
        """A decimal number of at most ``max_digits`` digits."""
        start = self.pos
        digits = self.digits()
        if len(digits) > max_digits:
            raise self.error(f"number longer than {max_digits} digits", start)
        return int(digits)

    def byte(self) -> int:
        start = self.pos
        value = self.number(3)
        if value > 255:
            raise self.error("number out of range 0-255", start)
        return value

    def string(self) -> str:
        value, self.pos = parse_string(self.text, self.pos)
        return value

    def ipv4(self) -> ipaddress.IPv4Address:
        value, self.pos = parse_ipv4(self.text, self.pos)
        return value

    def mac(self) -> MacAddress:
        value, self.pos = parse_mac(self.text, self.pos)
        return value

    def hardware_ethernet(self) -> MacAddress:
        """``hardware ethernet <mac>``, shared by lease and host blocks."""
        self.keyword('hardware')
        self.blanks1()
        self.keyword('ethernet')
        self.blanks1()
        return self.mac()
