#!/usr/bin/env python3
"""
MAC Prefix Trie

Vendor tables register prefixes of different lengths (a 24-bit OUI, 28-bit
MA-M and 36-bit MA-S blocks, ...). The trie branches on 4-bit nibbles so all
of them fit in one structure, and a lookup returns the vendor of the longest
registered prefix of the address.
"""

import string
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple, Union

from errors import InvalidMacPrefix
from models import MacAddress

MAX_NIBBLES = 12
MAX_GROUPS = 6


@dataclass(frozen=True)
class MacPrefix:
    """Up to 12 nibbles of a MAC address, most significant first."""

    nibbles: Tuple[int, ...] = ()

    def __post_init__(self):
        nibbles = tuple(self.nibbles)
        if len(nibbles) > MAX_NIBBLES:
            raise InvalidMacPrefix("mac prefix too long")
        if any(not 0 <= nibble <= 0x0F for nibble in nibbles):
            raise InvalidMacPrefix(f"mac prefix nibbles must be 0-15: {nibbles!r}")
        object.__setattr__(self, 'nibbles', nibbles)

    @classmethod
    def parse(cls, text: str) -> 'MacPrefix':
        """
        Parse a vendor table prefix such as ``00:1A:2B`` or ``70:B3:D5:0``.

        Each group holds one or two hex digits and every digit is one nibble.
        """
        groups = text.split(':')
        if len(groups) > MAX_GROUPS:
            raise InvalidMacPrefix("mac prefix too long")

        nibbles = []
        for group in groups:
            if len(group) > 2:
                raise InvalidMacPrefix(f"mac prefix segment too long: {group!r}")
            if not group:
                raise InvalidMacPrefix("mac prefix segment is empty")
            for char in group:
                if char not in string.hexdigits:
                    raise InvalidMacPrefix(f"mac prefix segment contains non-hex character: {char!r}")
                nibbles.append(int(char, 16))

        return cls(tuple(nibbles))

    @classmethod
    def from_mac(cls, mac: MacAddress) -> 'MacPrefix':
        return cls(mac.nibbles())

    def __len__(self) -> int:
        return len(self.nibbles)

    def __str__(self) -> str:
        digits = ''.join(f'{nibble:x}' for nibble in self.nibbles)
        return ':'.join(digits[i:i + 2] for i in range(0, len(digits), 2))


class _Node:
    __slots__ = ('children', 'value')

    def __init__(self):
        self.children: Dict[int, '_Node'] = {}
        self.value: Optional[str] = None


Key = Union[MacAddress, MacPrefix, str]


class MacPrefixTrie:
    """
    Maps MAC prefixes to vendor names with longest-prefix lookup.

    A trie is filled by whoever builds it and is read-only afterwards. To
    change the table, build a new trie and replace the reference to the old
    one, so concurrent readers never see a half updated table.
    """

    def __init__(self):
        self._root = _Node()
        self._size = 0

    @staticmethod
    def _nibbles(key: Key) -> Tuple[int, ...]:
        if isinstance(key, MacAddress):
            return key.nibbles()
        if isinstance(key, MacPrefix):
            return key.nibbles
        return MacAddress.parse(key).nibbles()

    def insert(self, prefix: Union[MacPrefix, str], name: str) -> None:
        """Store ``name`` under a 1-12 nibble prefix, replacing any previous value."""
        if not isinstance(prefix, MacPrefix):
            prefix = MacPrefix.parse(prefix)
        if not prefix.nibbles:
            raise ValueError("cannot insert an empty mac prefix")

        node = self._root
        for nibble in prefix.nibbles:
            child = node.children.get(nibble)
            if child is None:
                child = node.children[nibble] = _Node()
            node = child

        if node.value is None:
            self._size += 1
        node.value = name

    def lookup(self, key: Key) -> Optional[str]:
        """The value of the longest inserted prefix of ``key``, or None."""
        node = self._root
        best = node.value
        for nibble in self._nibbles(key):
            node = node.children.get(nibble)
            if node is None:
                break
            if node.value is not None:
                best = node.value
        return best

    def get(self, prefix: Union[MacPrefix, str]) -> Optional[str]:
        """The value stored for exactly ``prefix``."""
        if not isinstance(prefix, MacPrefix):
            prefix = MacPrefix.parse(prefix)

        node = self._root
        for nibble in prefix.nibbles:
            node = node.children.get(nibble)
            if node is None:
                return None
        return node.value

    def __contains__(self, prefix) -> bool:
        return self.get(prefix) is not None

    def __len__(self) -> int:
        return self._size

    def items(self) -> Iterator[Tuple[MacPrefix, str]]:
        """All (prefix, name) pairs, shorter prefixes before their extensions."""
        stack = [((), self._root)]
        while stack:
            nibbles, node = stack.pop()
            if node.value is not None:
                yield MacPrefix(nibbles), node.value
            for nibble in sorted(node.children, reverse=True):
                stack.append((nibbles + (nibble,), node.children[nibble]))
