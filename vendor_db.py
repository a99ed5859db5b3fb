#!/usr/bin/env python3
"""
MAC Vendor Database

This module loads the vendor table that maps MAC address prefixes to
manufacturer names. The table is an XML document of self-closed elements:

    <MacAddressVendorMappings>
      <VendorMapping mac_prefix="00:00:0C" vendor_name="Cisco Systems, Inc"/>
      <VendorMapping mac_prefix="70:B3:D5:0F:3" vendor_name="Some MA-S Vendor"/>
    </MacAddressVendorMappings>

Rows missing either attribute are skipped, as are elements with children or
text. A mac_prefix that is present but invalid rejects the whole document,
even on a row that has no vendor_name.
"""

import re
import sys
import logging
import threading
import urllib.request
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional, Union

from errors import InvalidMacPrefix, VendorTableError
from mac_trie import MacPrefix, MacPrefixTrie
from models import MacAddress

# Setup logging
logger = logging.getLogger('vendor_db')

VENDOR_MACS_URL = "https://devtools360.com/en/macaddress/vendorMacs.xml?download=true"
VENDOR_MAPPING_TAG = 'VendorMapping'


def build_vendor_trie(xml_text: str) -> MacPrefixTrie:
    """
    Build a prefix trie from vendor table XML.

    Raises:
        VendorTableError: the XML cannot be parsed or a mac_prefix is invalid
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise VendorTableError(f"Invalid vendor table XML: {e}") from e

    trie = MacPrefixTrie()
    skipped = 0

    for element in root.iter(VENDOR_MAPPING_TAG):
        # Only self-closed rows carry mappings
        if len(element) or (element.text and element.text.strip()):
            skipped += 1
            continue

        mac_prefix = element.get('mac_prefix')
        prefix = None
        if mac_prefix is not None:
            try:
                prefix = MacPrefix.parse(mac_prefix)
            except InvalidMacPrefix as e:
                raise VendorTableError(f"Invalid mac_prefix ({e})", mac_prefix) from e

        vendor_name = element.get('vendor_name')
        if prefix is None or vendor_name is None:
            skipped += 1
            continue

        trie.insert(prefix, vendor_name.strip())

    logger.debug(f"Built vendor trie with {len(trie)} prefixes, skipped {skipped} incomplete rows")
    return trie


def normalize_mac(mac_address: Optional[str]) -> Optional[MacAddress]:
    """
    Normalize a MAC address in any common notation.

    Returns:
        The MacAddress, or None if the string does not hold exactly 12 hex digits
    """
    if not mac_address:
        return None

    # Remove any non-hex characters
    digits = re.sub(r'[^0-9a-fA-F]', '', mac_address)
    if len(digits) != 12:
        return None

    return MacAddress(bytes.fromhex(digits))


def lookup_vendor(trie: MacPrefixTrie, mac: Union[MacAddress, str, None]) -> Optional[str]:
    """Vendor name of the longest registered prefix of ``mac``."""
    if not isinstance(mac, MacAddress):
        mac = normalize_mac(mac)
        if mac is None:
            return None
    return trie.lookup(mac)


class VendorDB:
    """Holds the current vendor trie and replaces it on reload."""

    def __init__(self, trie: Optional[MacPrefixTrie] = None):
        self.lock = threading.RLock()
        self._trie = trie if trie is not None else MacPrefixTrie()
        self.source: Optional[str] = None
        self.last_updated: Optional[datetime] = None

    @classmethod
    def from_file(cls, file_path: str) -> 'VendorDB':
        db = cls()
        db.load_file(file_path)
        return db

    @property
    def trie(self) -> MacPrefixTrie:
        with self.lock:
            return self._trie

    @property
    def vendor_count(self) -> int:
        return len(self.trie)

    @property
    def loaded(self) -> bool:
        return self.last_updated is not None

    def load_xml(self, xml_text: str, source: str = '<string>') -> bool:
        """
        Replace the table with one built from ``xml_text``.

        Returns:
            True on success. On failure the previous table is kept.
        """
        try:
            trie = build_vendor_trie(xml_text)
        except VendorTableError as e:
            logger.error(f"Failed to load vendor table from {source}: {e}")
            return False

        with self.lock:
            self._trie = trie
            self.source = source
            self.last_updated = datetime.now(timezone.utc)

        logger.info(f"Loaded {len(trie)} vendor prefixes from {source}")
        return True

    def load_file(self, file_path: str) -> bool:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                xml_text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read vendor table {file_path}: {e}")
            return False
        return self.load_xml(xml_text, source=file_path)

    def update_database(self, url: str = VENDOR_MACS_URL, timeout: int = 30) -> bool:
        """
        Download the vendor table and load it.

        Returns:
            True if the update was successful, False otherwise
        """
        logger.info(f"Downloading MAC vendor table from {url}...")
        try:
            # Add a user agent to avoid being blocked
            headers = {'User-Agent': 'Mozilla/5.0 (compatible; dhcpd-inspect/1.0)'}
            req = urllib.request.Request(url, headers=headers)
            with urllib.request.urlopen(req, timeout=timeout) as response:
                xml_text = response.read().decode('utf-8', errors='replace')
        except OSError as e:
            logger.error(f"Failed to download vendor table from {url}: {e}")
            return False

        return self.load_xml(xml_text, source=url)

    def lookup_vendor(self, mac_address: Union[MacAddress, str, None]) -> Optional[str]:
        """
        Look up the vendor name for a MAC address.

        Args:
            mac_address: MAC address to look up (any format)

        Returns:
            Vendor name if found, None otherwise
        """
        return lookup_vendor(self.trie, mac_address)


# Simple command-line interface for testing
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        print("Usage:")
        print("  vendor_db.py <mac_address> [vendor_xml]   Look up a MAC address vendor")
        sys.exit(1)

    db = VendorDB()
    loaded = db.load_file(sys.argv[2]) if len(sys.argv) > 2 else db.update_database()
    if not loaded:
        sys.exit(1)

    vendor = db.lookup_vendor(sys.argv[1])
    if vendor:
        print(f"Vendor: {vendor}")
    else:
        print("Vendor not found")
