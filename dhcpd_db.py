#!/usr/bin/env python3
"""
DHCPd Database

Combines the lease database, the static host reservations and the vendor
table into one view. Each source is replaced as a whole when it is reloaded,
and readers work on an immutable snapshot taken under a lock.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from hosts_file import HostsFile
from leases_file import LeasesFile
from mac_trie import MacPrefixTrie
from models import Device, Host, Lease, MacAddress, find_by_ip, find_by_mac, format_time
from vendor_db import VendorDB, lookup_vendor

logger = logging.getLogger('dhcpd_db')


@dataclass(frozen=True)
class DatabaseSnapshot:
    leases: Tuple[Lease, ...]
    hosts: Tuple[Host, ...]
    vendors: Optional[MacPrefixTrie]
    last_update_leases: Optional[datetime]
    last_update_hosts: Optional[datetime]
    last_update_check: Optional[datetime]

    def vendor_lookup(self, mac: MacAddress) -> Optional[str]:
        if self.vendors is None:
            return None
        return lookup_vendor(self.vendors, mac)

    def devices(self, now: Optional[datetime] = None) -> Tuple[Device, ...]:
        return Device.from_leases_and_hosts(self.leases, self.hosts, self.vendor_lookup, now)


class DhcpdDatabase:
    """Leases, hosts and vendor names for one dhcpd installation."""

    def __init__(self, leases_path: str, config_path: str, vendor_db: Optional[VendorDB] = None):
        self.lock = threading.RLock()
        self.leases_file = LeasesFile(leases_path)
        self.hosts_file = HostsFile(config_path)
        self.vendor_db = vendor_db
        self.last_update_check: Optional[datetime] = None

    @property
    def loaded(self) -> bool:
        return self.leases_file.loaded and self.hosts_file.loaded

    def refresh(self) -> bool:
        """
        Reload whichever files changed since the last load.

        Returns:
            True if either file was reloaded
        """
        leases_changed = self.leases_file.check_for_updates()
        hosts_changed = self.hosts_file.check_for_updates()
        with self.lock:
            self.last_update_check = datetime.now(timezone.utc)
        logger.debug(f"Refreshed (leases changed: {leases_changed}, hosts changed: {hosts_changed})")
        return leases_changed or hosts_changed

    def snapshot(self) -> DatabaseSnapshot:
        with self.lock:
            leases, last_update_leases = self.leases_file.snapshot()
            hosts, last_update_hosts = self.hosts_file.snapshot()
            return DatabaseSnapshot(
                leases=leases,
                hosts=hosts,
                vendors=self.vendor_db.trie if self.vendor_db else None,
                last_update_leases=last_update_leases,
                last_update_hosts=last_update_hosts,
                last_update_check=self.last_update_check,
            )

    def devices(self, now: Optional[datetime] = None) -> Tuple[Device, ...]:
        return self.snapshot().devices(now)

    def devices_for_ip(self, ip, now: Optional[datetime] = None) -> Tuple[Device, ...]:
        snap = self.snapshot()
        return Device.from_leases_and_hosts(find_by_ip(snap.leases, ip), find_by_ip(snap.hosts, ip),
                                            snap.vendor_lookup, now)

    def devices_for_mac(self, mac, now: Optional[datetime] = None) -> Tuple[Device, ...]:
        snap = self.snapshot()
        return Device.from_leases_and_hosts(find_by_mac(snap.leases, mac), find_by_mac(snap.hosts, mac),
                                            snap.vendor_lookup, now)

    def vendors(self) -> List[str]:
        """Sorted names of every vendor seen among the leases and hosts."""
        return sorted({device.vendor for device in self.devices() if device.vendor is not None})

    def status(self, now: Optional[datetime] = None) -> dict:
        snap = self.snapshot()
        return {
            'devices': [device.to_dict() for device in snap.devices(now)],
            'last_update': {
                'leases': format_time(snap.last_update_leases),
                'hosts': format_time(snap.last_update_hosts),
                'check': format_time(snap.last_update_check),
            },
        }
