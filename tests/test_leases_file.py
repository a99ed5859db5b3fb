#!/usr/bin/env python3
"""
Test dhcpd.leases parsing
"""

import os
import sys
import unittest
import tempfile
import ipaddress
from datetime import datetime, timezone

# Add parent directory to the path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import DhcpdSyntaxError, LeaseSemanticError
from leases_file import LeasesFile, parse_leases
from models import MacAddress

SAMPLE_LEASES = r'''# The format of this file is documented in the dhcpd.leases(5) manual page.
# This lease file was written by isc-dhcp-4.4.3-P1

# authoring-byte-order entry is generated, DO NOT DELETE
authoring-byte-order little-endian;

server-duid "\000\001\000\001*\3335\220\000\015\271O\335\020";

lease 10.0.1.199 {
  starts 0 2022/11/20 21:27:34;
  ends 0 2022/11/20 21:29:34;
  tstp 0 2022/11/20 21:29:34;
  cltt 0 2022/11/20 21:27:34;
  binding state free;
  hardware ethernet 12:6d:88:95:58:89;
  uid "\001\022m\210\225X\211";
}
lease 10.0.1.200 {
  starts 1 2022/11/21 08:00:00;
  ends 1 2022/11/21 10:00:00;
  cltt 1 2022/11/21 08:00:00;
  binding state active;
  next binding state free;
  rewind binding state free;
  hardware ethernet a4:83:e7:0b:1c:2d;
  set vendor-class-identifier = "android-dhcp-13";
  client-hostname "Pixel-7";
}
lease 10.0.1.199 {
  starts 2 2022/11/22 09:00:00;
  ends never;
  tstp never;
  cltt 2 2022/11/22 09:00:00;
  binding state active;
  hardware ethernet 12:6D:88:95:58:89;
  client-hostname "laptop";
}
'''

SCENARIO_A = ('lease 10.0.1.199 { starts 0 2022/11/20 21:27:34; ends 0 2022/11/20 21:29:34; '
              'hardware ethernet 12:6d:88:95:58:89; }')


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestParseLeases(unittest.TestCase):
    """Test the lease file grammar and lease assembly."""

    def test_single_lease(self):
        leases = parse_leases(SCENARIO_A)
        self.assertEqual(len(leases), 1)

        lease = leases[0]
        self.assertEqual(lease.address, ipaddress.IPv4Address('10.0.1.199'))
        self.assertEqual(lease.starts, utc(2022, 11, 20, 21, 27, 34))
        self.assertEqual(lease.ends, utc(2022, 11, 20, 21, 29, 34))
        self.assertIsNone(lease.tstp)
        self.assertIsNone(lease.cltt)
        self.assertEqual(lease.hardware_ethernet, MacAddress.parse('12:6d:88:95:58:89'))
        self.assertIsNone(lease.client_hostname)

    def test_sample_file(self):
        leases = parse_leases(SAMPLE_LEASES)
        self.assertEqual(len(leases), 3)

        first, second, third = leases
        self.assertEqual(first.tstp, utc(2022, 11, 20, 21, 29, 34))
        self.assertEqual(first.cltt, utc(2022, 11, 20, 21, 27, 34))

        self.assertEqual(str(second.address), '10.0.1.200')
        self.assertEqual(second.client_hostname, 'Pixel-7')
        self.assertIsNone(second.tstp)

        self.assertEqual(third.starts, utc(2022, 11, 22, 9, 0, 0))
        self.assertIsNone(third.ends)
        self.assertIsNone(third.tstp)
        self.assertEqual(third.client_hostname, 'laptop')

    def test_blocks_for_same_address_are_not_merged(self):
        """Each lease block is its own record, in file order."""
        leases = parse_leases(SAMPLE_LEASES)
        same = [lease for lease in leases if str(lease.address) == '10.0.1.199']
        self.assertEqual(len(same), 2)
        self.assertEqual(same[0].hardware_ethernet, same[1].hardware_ethernet)
        self.assertEqual(same[0].ends, utc(2022, 11, 20, 21, 29, 34))
        self.assertIsNone(same[1].ends)

    def test_parsing_is_deterministic(self):
        self.assertEqual(parse_leases(SAMPLE_LEASES), parse_leases(SAMPLE_LEASES))

    def test_returns_tuple(self):
        self.assertIsInstance(parse_leases(SAMPLE_LEASES), tuple)

    def test_last_field_wins(self):
        leases = parse_leases('lease 10.0.0.5 {\n'
                              '  client-hostname "first";\n'
                              '  hardware ethernet 00:00:00:00:00:01;\n'
                              '  ends 3 2023/01/04 10:00:00;\n'
                              '  client-hostname "second";\n'
                              '  hardware ethernet 00:00:00:00:00:02;\n'
                              '  ends never;\n'
                              '}\n')
        self.assertEqual(leases[0].client_hostname, 'second')
        self.assertEqual(str(leases[0].hardware_ethernet), '00:00:00:00:00:02')
        self.assertIsNone(leases[0].ends)

    def test_missing_hardware_ethernet(self):
        """A lease block without hardware ethernet fails the whole parse."""
        text = SAMPLE_LEASES + 'lease 10.0.1.201 {\n  starts 0 2022/11/20 21:27:34;\n}\n'
        with self.assertRaises(LeaseSemanticError) as ctx:
            parse_leases(text)
        self.assertIn('10.0.1.201', str(ctx.exception))
        self.assertEqual(ctx.exception.line, SAMPLE_LEASES.count('\n') + 1)

    def test_missing_hardware_ethernet_is_value_error(self):
        with self.assertRaises(ValueError):
            parse_leases('lease 10.0.1.201 { binding state free; }')

    def test_unknown_field(self):
        with self.assertRaises(DhcpdSyntaxError) as ctx:
            parse_leases('lease 10.0.0.1 {\n  hardware ethernet 00:00:00:00:00:01;\n'
                         '  set ddns-fwd-name = "foo";\n}\n')
        self.assertEqual(ctx.exception.line, 3)

        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { hardware ethernet 00:00:00:00:00:01; foo bar; }')

    def test_unknown_statement(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases(SAMPLE_LEASES + 'failover peer "x" state { }\n')

    def test_empty_file(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('')
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('# only a comment\n')

    def test_header_only(self):
        """Header statements alone are a valid file without leases."""
        self.assertEqual(parse_leases('authoring-byte-order big-endian;\n'), ())

    def test_empty_lease_block(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { }')

    def test_unterminated_lease_block(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { hardware ethernet 00:00:00:00:00:01;')

    def test_missing_semicolon(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { hardware ethernet 00:00:00:00:00:01 }')

    def test_invalid_timestamps(self):
        for value in ('8 2022/11/20 21:27:34', '0 2022/13/20 21:27:34', '0 2022/11/20 25:27:34',
                      '0 2022-11-20 21:27:34', 'sometime'):
            with self.subTest(value=value):
                with self.assertRaises(DhcpdSyntaxError):
                    parse_leases(f'lease 10.0.0.1 {{ starts {value}; hardware ethernet 00:00:00:00:00:01; }}')

    def test_overlong_timestamp_numbers(self):
        """Digit runs too long for a date are reported with their position."""
        for value in ('0 ' + '9' * 5000 + '/01/01 00:00:00', '0 2022/011/20 21:27:34',
                      '0 2022/11/20 21:27:' + '3' * 5000):
            with self.subTest(value=value[:30]):
                with self.assertRaises(DhcpdSyntaxError) as ctx:
                    parse_leases(f'lease 10.0.0.1 {{\n  starts {value};\n  hardware ethernet 00:00:00:00:00:01;\n}}')
                self.assertEqual(ctx.exception.line, 2)

    def test_empty_strings(self):
        for field in ('uid ""', 'client-hostname ""', 'set vendor-class-identifier = ""'):
            with self.subTest(field=field):
                with self.assertRaises(DhcpdSyntaxError):
                    parse_leases(f'lease 10.0.0.1 {{ hardware ethernet 00:00:00:00:00:01; {field}; }}')
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('server-duid "";')

    def test_invalid_binding_state(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { binding state bogus; hardware ethernet 00:00:00:00:00:01; }')

    def test_invalid_byte_order(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('authoring-byte-order middle-endian;')

    def test_bad_string_escape(self):
        with self.assertRaises(DhcpdSyntaxError):
            parse_leases('lease 10.0.0.1 { hardware ethernet 00:00:00:00:00:01; client-hostname "a\\qb"; }')

    def test_hostname_escapes(self):
        leases = parse_leases('lease 10.0.0.1 { hardware ethernet 00:00:00:00:00:01; '
                              'client-hostname "Bob\\047s iPhone"; }')
        self.assertEqual(leases[0].client_hostname, "Bob's iPhone")


class TestLeasesFile(unittest.TestCase):
    """Test reloading a lease file from disk."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.temp_dir.name, 'dhcpd.leases')
        self._write(SAMPLE_LEASES)

    def tearDown(self):
        self.temp_dir.cleanup()

    def _write(self, text, mtime=None):
        with open(self.path, 'w') as f:
            f.write(text)
        if mtime is not None:
            os.utime(self.path, (mtime, mtime))

    def test_load(self):
        leases_file = LeasesFile(self.path)
        self.assertTrue(leases_file.loaded)
        self.assertEqual(len(leases_file.leases), 3)
        self.assertIsNotNone(leases_file.last_update)

    def test_unchanged_file_is_not_reloaded(self):
        leases_file = LeasesFile(self.path)
        self.assertFalse(leases_file.check_for_updates())

    def test_reload_on_change(self):
        leases_file = LeasesFile(self.path)
        self._write(SCENARIO_A, leases_file.last_modified + 10)
        self.assertTrue(leases_file.check_for_updates())
        self.assertEqual(len(leases_file.leases), 1)

    def test_failed_reload_keeps_previous_leases(self):
        leases_file = LeasesFile(self.path)
        previous = leases_file.leases

        self._write('lease 10.0.0.1 { starts never; }', leases_file.last_modified + 10)
        with self.assertLogs('watched_file', level='ERROR'):
            self.assertFalse(leases_file.check_for_updates())
        self.assertIs(leases_file.leases, previous)

    def test_missing_file(self):
        with self.assertLogs('watched_file', level='ERROR'):
            leases_file = LeasesFile(os.path.join(self.temp_dir.name, 'missing.leases'))
        self.assertFalse(leases_file.loaded)
        self.assertEqual(leases_file.leases, ())


if __name__ == '__main__':
    unittest.main()
