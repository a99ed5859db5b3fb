#!/usr/bin/env python3
"""
Leases File Parser

This module parses the ISC dhcpd lease database (dhcpd.leases) into Lease
records. The grammar is closed: any statement or lease field that is not
listed below is a syntax error.

    authoring-byte-order little-endian;
    server-duid "\\000\\001...";
    lease 10.0.1.199 {
      starts 0 2022/11/20 21:27:34;
      ends 0 2022/11/20 21:29:34;
      tstp never;
      cltt 0 2022/11/20 21:27:34;
      binding state active;
      next binding state free;
      rewind binding state free;
      hardware ethernet 12:6d:88:95:58:89;
      uid "\\001\\022m\\210\\225X\\211";
      set vendor-class-identifier = "android-dhcp-13";
      client-hostname "pixel";
    }

Every lease block becomes its own Lease, in file order. dhcpd appends a new
block each time a lease changes, so several blocks for the same address are
the history of that address and are not merged.
"""

import logging
from collections import namedtuple
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from errors import LeaseSemanticError
from models import Lease
from value_parsers import Scanner
from watched_file import WatchedFile

logger = logging.getLogger('leases_file')

BYTE_ORDERS = ('little-endian', 'big-endian')
BINDING_STATES = ('active', 'free', 'abandoned', 'backup', 'expired', 'released', 'reset')
TIMESTAMP_FIELDS = ('starts', 'ends', 'tstp', 'cltt')
WEEKDAYS = '01234567'

# A parsed but not yet validated lease block
LeaseBlock = namedtuple('LeaseBlock', ['address', 'fields', 'position'])


def parse_leases(text: str) -> Tuple[Lease, ...]:
    """
    Parse the contents of a dhcpd.leases file.

    Raises:
        DhcpdSyntaxError: the text does not follow the lease file grammar
        LeaseSemanticError: a lease block has no hardware ethernet field
    """
    blocks = LeaseFileParser(text).parse()
    leases = tuple(build_lease(block, text) for block in blocks)
    logger.debug(f"Parsed {len(leases)} leases")
    return leases


def build_lease(block: LeaseBlock, text: str = '') -> Lease:
    """Fold the fields of a lease block into a Lease. Later fields win."""
    values = {}
    for name, value in block.fields:
        values[name] = value

    if 'hardware-ethernet' not in values:
        raise LeaseSemanticError(f"lease {block.address} is missing hardware ethernet",
                                 text, block.position)

    return Lease(
        address=block.address,
        hardware_ethernet=values['hardware-ethernet'],
        starts=values.get('starts'),
        ends=values.get('ends'),
        tstp=values.get('tstp'),
        cltt=values.get('cltt'),
        client_hostname=values.get('client-hostname'),
    )


class LeaseFileParser:
    """Recursive descent parser for dhcpd.leases."""

    def __init__(self, text: str):
        self.scanner = Scanner(text)

    def parse(self) -> List[LeaseBlock]:
        s = self.scanner
        blocks = []

        s.space0()
        if s.at_end():
            raise s.error("expected at least one lease file statement")

        while not s.at_end():
            statement = s.peek_identifier()
            if statement == 'lease':
                blocks.append(self.lease())
            elif statement == 'authoring-byte-order':
                self.authoring_byte_order()
            elif statement == 'server-duid':
                self.server_duid()
            elif statement is None:
                raise s.error("expected lease file statement")
            else:
                raise s.error(f"unexpected statement {statement!r}")
            s.space0()

        return blocks

    def authoring_byte_order(self) -> str:
        s = self.scanner
        s.keyword('authoring-byte-order')
        s.space1()
        byte_order = s.one_of(BYTE_ORDERS)
        s.space0()
        s.expect(';')
        return byte_order

    def server_duid(self) -> str:
        s = self.scanner
        s.keyword('server-duid')
        s.space1()
        duid = s.string()
        s.space0()
        s.expect(';')
        return duid

    def lease(self) -> LeaseBlock:
        s = self.scanner
        position = s.pos
        s.keyword('lease')
        s.space1()
        address = s.ipv4()
        s.space0()
        s.expect('{')
        s.space0()

        fields = []
        while s.peek() != '}':
            if s.at_end():
                raise s.error("unterminated lease block", position)
            fields.append(self.field())
            s.space0()

        if not fields:
            raise s.error("lease block must contain at least one field")
        s.expect('}')
        return LeaseBlock(address, fields, position)

    def field(self) -> Tuple[str, object]:
        s = self.scanner
        name = s.peek_identifier()

        if name in TIMESTAMP_FIELDS:
            s.keyword(name)
            s.blanks0()
            value = self.timestamp()
        elif name == 'hardware':
            name = 'hardware-ethernet'
            value = s.hardware_ethernet()
        elif name in ('uid', 'client-hostname'):
            s.keyword(name)
            s.blanks0()
            value = s.string()
        elif name == 'set':
            name = 'vendor-class-identifier'
            value = self.vendor_class_identifier()
        elif name in ('next', 'rewind', 'binding'):
            value = self.binding_state()
            name = 'binding-state'
        elif name is None:
            raise s.error("expected lease field")
        else:
            raise s.error(f"unknown lease field {name!r}")

        s.space0()
        s.expect(';')
        return name, value

    def timestamp(self) -> Optional[datetime]:
        """``<weekday> YYYY/MM/DD HH:MM:SS`` in UTC, or ``never``."""
        s = self.scanner
        if s.peek_identifier() == 'never':
            s.keyword('never')
            return None

        if not s.peek() or s.peek() not in WEEKDAYS:
            raise s.error("expected weekday digit 0-7 or 'never'")
        s.pos += 1
        s.blanks0()

        start = s.pos
        year = s.number(4)
        s.expect('/')
        month = s.number(2)
        s.expect('/')
        day = s.number(2)
        s.blanks0()
        hour = s.number(2)
        s.expect(':')
        minute = s.number(2)
        s.expect(':')
        second = s.number(2)

        try:
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
        except ValueError as e:
            raise s.error(f"invalid timestamp ({e})", start) from e

    def vendor_class_identifier(self) -> str:
        s = self.scanner
        s.keyword('set')
        s.blanks0()
        s.keyword('vendor-class-identifier')
        s.blanks0()
        s.expect('=')
        s.space0()
        return s.string()

    def binding_state(self) -> str:
        s = self.scanner
        if s.peek_identifier() in ('next', 'rewind'):
            s.one_of(('next', 'rewind'))
            s.blanks1()
        s.keyword('binding')
        s.blanks0()
        s.keyword('state')
        s.blanks0()
        return s.one_of(BINDING_STATES)


class LeasesFile(WatchedFile):
    """The most recent successfully parsed copy of a dhcpd.leases file."""

    kind = 'leases'

    def __init__(self, file_path: str, load: bool = True):
        super().__init__(file_path, parse_leases, load=load)

    @property
    def leases(self) -> Tuple[Lease, ...]:
        return self.records
