#!/usr/bin/env python3
"""
DHCPd Inspector

Command line front-end that reads an ISC dhcpd lease database and
configuration file and prints the known devices, with their vendors, as JSON.
"""

import os
import sys
import json
import logging
import argparse
import ipaddress
from typing import List, Optional

from dhcpd_db import DhcpdDatabase
from errors import InvalidMacAddress
from models import MacAddress
from vendor_db import VENDOR_MACS_URL, VendorDB

logger = logging.getLogger('dhcpd_api')

DEFAULT_LEASES = '/var/dhcpd/var/db/dhcpd.leases'
DEFAULT_CONFIG = '/var/dhcpd/etc/dhcpd.conf'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Report devices from ISC dhcpd leases and host reservations')

    parser.add_argument('--dhcpd-leases', default=os.environ.get('DHCPD_LEASES', DEFAULT_LEASES),
                        help=f'Path to the dhcpd lease database (default: {DEFAULT_LEASES})')
    parser.add_argument('--dhcpd-config', default=os.environ.get('DHCPD_CONFIG', DEFAULT_CONFIG),
                        help=f'Path to dhcpd.conf (default: {DEFAULT_CONFIG})')
    parser.add_argument('--vendor-xml', default=os.environ.get('VENDOR_MACS_XML'),
                        help='Read the MAC vendor table from this XML file instead of downloading it')
    parser.add_argument('--vendor-url', default=os.environ.get('VENDOR_MACS_URL', VENDOR_MACS_URL),
                        help='URL of the MAC vendor table')
    parser.add_argument('--no-vendors', action='store_true', help='Do not resolve vendor names')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Command to execute (default: devices)')

    subparsers.add_parser('devices', help='List every lease and host reservation')

    ip_parser = subparsers.add_parser('ip', help='Show devices using an IP address')
    ip_parser.add_argument('address', help='IPv4 address to look up')

    mac_parser = subparsers.add_parser('mac', help='Show devices with a MAC address')
    mac_parser.add_argument('address', help='MAC address to look up (aa:bb:cc:dd:ee:ff)')

    subparsers.add_parser('vendors', help='List the vendors of all known devices')

    vendor_parser = subparsers.add_parser('vendor', help='Look up the vendor of a MAC address')
    vendor_parser.add_argument('address', help='MAC address to look up (aa:bb:cc:dd:ee:ff)')

    return parser


def load_vendor_db(args: argparse.Namespace) -> Optional[VendorDB]:
    """Load the vendor table requested on the command line. Raises RuntimeError on failure."""
    if args.no_vendors:
        return None

    vendor_db = VendorDB()
    if args.vendor_xml:
        loaded = vendor_db.load_file(args.vendor_xml)
    else:
        loaded = vendor_db.update_database(args.vendor_url)

    if not loaded:
        raise RuntimeError("MAC vendor table could not be loaded (use --no-vendors to skip it)")
    return vendor_db


def print_results(result: dict) -> None:
    print(json.dumps(result, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for command-line usage."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    command = args.command or 'devices'

    # Validate lookup arguments before doing any work
    try:
        if command == 'ip':
            address = ipaddress.IPv4Address(args.address)
        elif command in ('mac', 'vendor'):
            address = MacAddress.parse(args.address)
    except (ipaddress.AddressValueError, InvalidMacAddress) as e:
        logger.error(f"Invalid address {args.address!r}: {e}")
        return 1

    try:
        vendor_db = load_vendor_db(args)
    except RuntimeError as e:
        logger.error(str(e))
        return 1

    if command == 'vendor':
        print_results({
            'mac': str(address),
            'vendor': vendor_db.lookup_vendor(address) if vendor_db else None,
        })
        return 0

    database = DhcpdDatabase(args.dhcpd_leases, args.dhcpd_config, vendor_db)
    if not database.loaded:
        logger.error("Failed to load the dhcpd lease database or configuration")
        return 1

    if command == 'ip':
        result = {'devices': [device.to_dict() for device in database.devices_for_ip(address)]}
    elif command == 'mac':
        result = {'devices': [device.to_dict() for device in database.devices_for_mac(address)]}
    elif command == 'vendors':
        result = {'vendors': database.vendors()}
    else:
        result = database.status()

    print_results(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
