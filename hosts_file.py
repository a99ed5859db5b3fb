#!/usr/bin/env python3
"""
Hosts File Manager

This module handles loading and parsing the static host reservations in an
ISC dhcpd configuration file (dhcpd.conf).

Only host blocks are interpreted. Subnets, pools, top-level options and the
global directives are parsed so the whole file is validated, and then thrown
away. A host block turns into a Host only if it has both a fixed-address and
a hardware ethernet address.
"""

import logging
from collections import namedtuple
from typing import Any, List, Optional, Tuple

from errors import DhcpdSyntaxError
from models import Host
from value_parsers import Scanner
from watched_file import WatchedFile

logger = logging.getLogger('hosts_file')

# Global statements that take at most one bare value
DIRECTIVES = (
    'default-lease-time',
    'max-lease-time',
    'log-facility',
    'one-lease-per-client',
    'deny',
    'ping-check',
    'update-conflict-detection',
    'authoritative',
)

OPTION_TYPES = ('text', 'unsigned')

HostBlock = namedtuple('HostBlock', ['label', 'fields'])


def _first(block: HostBlock, name: str) -> Optional[Any]:
    for field_name, value in block.fields:
        if field_name == name:
            return value
    return None


def host_name(block: HostBlock) -> Optional[str]:
    """The value of the first ``option host-name`` in the block."""
    for field_name, value in block.fields:
        if field_name == 'option' and value[0] == 'host-name':
            return value[1]
    return None


def parse_hosts(text: str) -> Tuple[Host, ...]:
    """
    Parse the contents of dhcpd.conf and return its addressable host reservations.

    Raises:
        DhcpdSyntaxError: anything in the file does not follow the grammar
    """
    hosts = []
    for block in ConfigFileParser(text).parse():
        fixed_address = _first(block, 'fixed-address')
        hardware_ethernet = _first(block, 'hardware-ethernet')
        if fixed_address is None or hardware_ethernet is None:
            logger.debug(f"Skipping host {block.label}: needs fixed-address and hardware ethernet")
            continue

        hosts.append(Host(
            fixed_address=fixed_address,
            hardware_ethernet=hardware_ethernet,
            hostname=host_name(block),
        ))

    logger.debug(f"Parsed {len(hosts)} host reservations")
    return tuple(hosts)


class ConfigFileParser:
    """Recursive descent parser for the subset of dhcpd.conf we understand."""

    def __init__(self, text: str):
        self.scanner = Scanner(text)

    def parse(self) -> List[HostBlock]:
        s = self.scanner
        blocks = []

        s.space0()
        while not s.at_end():
            statement = s.peek_identifier()
            if statement == 'host':
                blocks.append(self.host())
            elif statement == 'subnet':
                self.subnet()
            elif statement == 'option':
                self.option()
            elif statement in DIRECTIVES:
                self.directive()
            elif statement is None:
                raise s.error("expected host, subnet, option or directive")
            else:
                raise s.error(f"unexpected statement {statement!r}")
            s.space0()

        return blocks

    # host <label> { <field>; ... }

    def host(self) -> HostBlock:
        s = self.scanner
        position = s.pos
        s.keyword('host')
        s.space1()
        label = s.identifier()
        s.space0()
        s.expect('{')
        s.space0()

        fields = []
        while s.peek() != '}':
            if s.at_end():
                raise s.error("unterminated host block", position)
            fields.append(self.host_field())
            s.space0()

        if not fields:
            raise s.error("host block must contain at least one field")
        s.expect('}')
        return HostBlock(label, fields)

    def host_field(self) -> Tuple[str, Any]:
        s = self.scanner
        name = s.peek_identifier()

        if name == 'hardware':
            name = 'hardware-ethernet'
            value = s.hardware_ethernet()
        elif name == 'fixed-address':
            s.keyword(name)
            s.space1()
            value = s.ipv4()
        elif name == 'option':
            s.keyword(name)
            s.space1()
            option_name = s.identifier()
            s.space1()
            value = (option_name, s.string())
        elif name == 'set':
            name = 'hostname-override'
            value = self.hostname_override()
        elif name in ('default-lease-time', 'max-lease-time'):
            s.keyword(name)
            s.space1()
            value = s.number()
        elif name is None:
            raise s.error("expected host field")
        else:
            raise s.error(f"unknown host field {name!r}")

        s.space0()
        s.expect(';')
        return name, value

    def hostname_override(self) -> None:
        """``set hostname-override = config-option host-name``"""
        s = self.scanner
        s.keyword('set')
        s.space1()
        s.keyword('hostname-override')
        s.space1()
        s.expect('=')
        s.space1()
        s.keyword('config-option')
        s.space1()
        s.keyword('host-name')

    # subnet <ip> netmask <ip> { ... }

    def subnet(self) -> None:
        s = self.scanner
        position = s.pos
        s.keyword('subnet')
        s.space1()
        s.ipv4()
        s.space1()
        s.keyword('netmask')
        s.space1()
        s.ipv4()
        s.space0()
        s.expect('{')

        s.space0()
        while s.peek() != '}':
            if s.at_end():
                raise s.error("unterminated subnet block", position)
            self.subnet_item()
            s.space0()
        s.expect('}')

    def subnet_item(self) -> None:
        s = self.scanner
        name = s.peek_identifier()

        if name == 'pool':
            self.pool()
            return

        if name == 'option':
            s.keyword('option')
            s.space1()
            s.identifier()
            s.space1()
            if s.peek() == '"':
                s.string()
            else:
                s.ipv4()
        else:
            s.identifier()
            s.space1()
            self.subnet_value()

        s.space0()
        s.expect(';')

    def subnet_value(self) -> None:
        """An address, a string or a number."""
        s = self.scanner
        if s.peek() == '"':
            s.string()
            return

        start = s.pos
        try:
            s.ipv4()
        except DhcpdSyntaxError:
            s.pos = start
            s.digits()

    def pool(self) -> None:
        s = self.scanner
        position = s.pos
        s.keyword('pool')
        s.space0()
        s.expect('{')
        s.space0()

        while s.peek() != '}':
            if s.at_end():
                raise s.error("unterminated pool block", position)

            name = s.peek_identifier()
            if name == 'option':
                s.keyword('option')
                s.space1()
                s.identifier()
                s.space1()
                s.ipv4()
            elif name == 'range':
                s.keyword('range')
                s.space1()
                s.ipv4()
                s.space1()
                s.ipv4()
            else:
                raise s.error("expected option or range in pool")

            s.space0()
            s.expect(';')
            s.space0()

        s.expect('}')

    # option <name> "<string>";
    # option <name> code <n> = text;
    # option <name> code <n> = unsigned integer <width>;

    def option(self) -> None:
        s = self.scanner
        s.keyword('option')
        s.space1()
        s.identifier()
        s.space1()

        if s.peek() == '"':
            s.string()
        else:
            s.keyword('code')
            s.space1()
            s.byte()
            s.space1()
            s.expect('=')
            s.space1()
            if s.one_of(OPTION_TYPES) == 'unsigned':
                s.space1()
                s.keyword('integer')
                s.space1()
                s.byte()

        s.space0()
        s.expect(';')

    def directive(self) -> None:
        """A global directive such as ``default-lease-time 7200;`` or ``authoritative;``"""
        s = self.scanner
        s.one_of(DIRECTIVES)
        before = s.pos
        s.space0()
        if s.pos > before and s.peek_identifier() is not None:
            s.identifier()
            s.space0()
        s.expect(';')


class HostsFile(WatchedFile):
    """The most recent successfully parsed host reservations of a dhcpd.conf file."""

    kind = 'host reservations'

    def __init__(self, file_path: str, load: bool = True):
        super().__init__(file_path, parse_hosts, load=load)

    @property
    def hosts(self) -> Tuple[Host, ...]:
        return self.records

