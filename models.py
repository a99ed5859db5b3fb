#!/usr/bin/env python3
"""
Models for the dhcpd inspector

This module contains the records produced by the lease and configuration
parsers, plus the merged Device view used for reporting.
"""

import string
import ipaddress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Tuple, Union

from errors import InvalidMacAddress

# Lease types reported for a device
LEASE_ACTIVE = 'active'
LEASE_EXPIRED = 'expired'
LEASE_STATIC = 'static'

TIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

VendorLookup = Callable[['MacAddress'], Optional[str]]


def format_time(value: Optional[datetime]) -> Optional[str]:
    """Render a UTC timestamp the way the JSON output expects it."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime(TIME_FORMAT)


@dataclass(frozen=True, order=True)
class MacAddress:
    """A 48-bit hardware address."""

    octets: bytes

    def __post_init__(self):
        if not isinstance(self.octets, (bytes, bytearray)) or len(self.octets) != 6:
            raise InvalidMacAddress(f"MAC address must be exactly 6 bytes, got {self.octets!r}")
        object.__setattr__(self, 'octets', bytes(self.octets))

    @classmethod
    def parse(cls, text: str) -> 'MacAddress':
        """Parse ``aa:bb:cc:dd:ee:ff`` (either case). Anything else is rejected."""
        segments = text.split(':')
        if len(segments) < 6:
            raise InvalidMacAddress(f"MAC address too short: {text!r}")
        if len(segments) > 6:
            raise InvalidMacAddress(f"MAC address too long: {text!r}")

        for segment in segments:
            if len(segment) != 2 or not all(c in string.hexdigits for c in segment):
                raise InvalidMacAddress(f"MAC address segment not two hex digits: {segment!r}")

        return cls(bytes(int(segment, 16) for segment in segments))

    def nibbles(self) -> Tuple[int, ...]:
        """The 12 half-bytes of the address, most significant first."""
        result = []
        for octet in self.octets:
            result.append(octet >> 4)
            result.append(octet & 0x0F)
        return tuple(result)

    @property
    def oui(self) -> str:
        return ':'.join(f'{octet:02x}' for octet in self.octets[:3])

    def __str__(self) -> str:
        return ':'.join(f'{octet:02x}' for octet in self.octets)


@dataclass(frozen=True)
class Lease:
    """A dynamic lease read from dhcpd.leases."""

    address: ipaddress.IPv4Address
    hardware_ethernet: MacAddress
    starts: Optional[datetime] = None
    ends: Optional[datetime] = None
    tstp: Optional[datetime] = None
    cltt: Optional[datetime] = None
    client_hostname: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """A lease without an end time never expires."""
        if self.ends is None:
            return False
        return self.ends < (now or datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            'address': str(self.address),
            'starts': format_time(self.starts),
            'ends': format_time(self.ends),
            'tstp': format_time(self.tstp),
            'cltt': format_time(self.cltt),
            'hardware_ethernet': str(self.hardware_ethernet),
            'client_hostname': self.client_hostname,
        }


@dataclass(frozen=True)
class Host:
    """A static reservation read from a host block in dhcpd.conf."""

    fixed_address: ipaddress.IPv4Address
    hardware_ethernet: MacAddress
    hostname: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'fixed_address': str(self.fixed_address),
            'hardware_ethernet': str(self.hardware_ethernet),
            'hostname': self.hostname,
        }


@dataclass(frozen=True)
class LeaseState:
    type: str
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def to_dict(self) -> dict:
        result = {'type': self.type}
        if self.type == LEASE_ACTIVE:
            result['since'] = format_time(self.since)
            result['until'] = format_time(self.until)
        elif self.type == LEASE_EXPIRED:
            result['since'] = format_time(self.since)
        return result


@dataclass(frozen=True)
class Device:
    """A lease or a static host, annotated with its vendor."""

    address: ipaddress.IPv4Address
    hardware_ethernet: MacAddress
    lease: LeaseState
    hostname: Optional[str] = None
    vendor: Optional[str] = None
    last_seen: Optional[datetime] = None

    @classmethod
    def from_lease(cls, lease: Lease, vendor_lookup: Optional[VendorLookup] = None,
                   now: Optional[datetime] = None) -> 'Device':
        if lease.is_expired(now):
            state = LeaseState(LEASE_EXPIRED, since=lease.ends)
        else:
            state = LeaseState(LEASE_ACTIVE, since=lease.starts, until=lease.ends)

        return cls(
            address=lease.address,
            hardware_ethernet=lease.hardware_ethernet,
            lease=state,
            hostname=lease.client_hostname,
            vendor=vendor_lookup(lease.hardware_ethernet) if vendor_lookup else None,
            last_seen=lease.cltt,
        )

    @classmethod
    def from_host(cls, host: Host, vendor_lookup: Optional[VendorLookup] = None) -> 'Device':
        return cls(
            address=host.fixed_address,
            hardware_ethernet=host.hardware_ethernet,
            lease=LeaseState(LEASE_STATIC),
            hostname=host.hostname,
            vendor=vendor_lookup(host.hardware_ethernet) if vendor_lookup else None,
        )

    @classmethod
    def from_leases_and_hosts(cls, leases: Iterable[Lease], hosts: Iterable[Host],
                              vendor_lookup: Optional[VendorLookup] = None,
                              now: Optional[datetime] = None) -> Tuple['Device', ...]:
        """Leases first, in file order, then hosts."""
        devices = [cls.from_lease(lease, vendor_lookup, now) for lease in leases]
        devices.extend(cls.from_host(host, vendor_lookup) for host in hosts)
        return tuple(devices)

    def to_dict(self) -> dict:
        result = {
            'address': str(self.address),
            'hardware_ethernet': str(self.hardware_ethernet),
        }
        if self.hostname is not None:
            result['hostname'] = self.hostname
        if self.vendor is not None:
            result['vendor'] = self.vendor
        result['lease'] = self.lease.to_dict()
        if self.last_seen is not None:
            result['last_seen'] = format_time(self.last_seen)
        return result


Record = Union[Lease, Host]


def _record_address(record: Record) -> ipaddress.IPv4Address:
    if isinstance(record, Lease):
        return record.address
    return record.fixed_address


def find_by_ip(records: Iterable[Record], ip: Union[str, ipaddress.IPv4Address]) -> Tuple[Record, ...]:
    """All leases or hosts bound to ``ip``, in their original order."""
    ip = ipaddress.IPv4Address(ip)
    return tuple(record for record in records if _record_address(record) == ip)


def find_by_mac(records: Iterable[Record], mac: Union[str, MacAddress]) -> Tuple[Record, ...]:
    """All leases or hosts for hardware address ``mac``, in their original order."""
    if not isinstance(mac, MacAddress):
        mac = MacAddress.parse(mac)
    return tuple(record for record in records if record.hardware_ethernet == mac)
