import struct
import unittest

from adb_client import constants
from adb_client.exceptions import InvalidCommandError
from adb_client.models import FileStatistics
from adb_client.sync_message import SyncMessage, pack_header, pack_stat, pack_stat_v2, unpack_command_id, unpack_header, unpack_stat, unpack_stat_v2


class TestSyncIds(unittest.TestCase):
    def test_wire_values(self):
        """The wire value of an ID is its ASCII bytes read as a little-endian integer."""
        self.assertEqual(constants.SYNC_ID_TO_WIRE[constants.STAT], 0x54415453)
        self.assertEqual(constants.SYNC_ID_TO_WIRE[constants.DATA], 0x41544144)
        for cmd_id, wire in constants.SYNC_ID_TO_WIRE.items():
            self.assertEqual(struct.pack('<I', wire), cmd_id)

    def test_unpack_command_id(self):
        self.assertEqual(unpack_command_id(b'DENT'), constants.DENT)
        self.assertEqual(unpack_command_id(bytearray(b'DNT2')), constants.DNT2)

        with self.assertRaises(InvalidCommandError):
            unpack_command_id(b'XXXX')


class TestHeader(unittest.TestCase):
    def test_pack_header(self):
        self.assertEqual(pack_header(constants.DATA, 5), b'DATA\x05\x00\x00\x00')
        self.assertEqual(len(pack_header(constants.DONE, 0xFFFFFFFF)), constants.SYNC_HEADER_SIZE)

    def test_unpack_header(self):
        self.assertEqual(unpack_header(b'DONE\x10\x00\x00\x00'), (constants.DONE, 16))

        with self.assertRaises(InvalidCommandError):
            unpack_header(b'ABCD\x00\x00\x00\x00')


class TestStat(unittest.TestCase):
    def test_stat(self):
        data = pack_stat(0o100644, 1234, 1600000000)
        self.assertEqual(len(data), constants.STAT_SIZE)
        self.assertEqual(unpack_stat(data, '/sdcard/file.txt'), FileStatistics('/sdcard/file.txt', 0o100644, 1234, 1600000000))

    def test_stat_v2(self):
        data = pack_stat_v2(error=0, device=1, inode=2, mode=0o40755, link_count=3, uid=1000, gid=1000, size=4096, access_time=-1, modified_time=1600000000, changed_time=1600000001)
        self.assertEqual(len(data), constants.STAT_V2_SIZE)
        self.assertEqual(len(data), 68)
        self.assertEqual(len(constants.STA2 + data), 72)

        stats = unpack_stat_v2(data, '/sdcard')
        self.assertEqual(stats.path, '/sdcard')
        self.assertEqual(stats.inode, 2)
        self.assertEqual(stats.mode, 0o40755)
        self.assertEqual(stats.uid, 1000)
        self.assertEqual(stats.size, 4096)
        self.assertEqual(stats.access_time, -1)
        self.assertEqual(stats.changed_time, 1600000001)
        self.assertTrue(stats.is_directory)
        self.assertFalse(stats.is_regular_file)

    def test_stat_v2_large_size(self):
        stats = unpack_stat_v2(pack_stat_v2(size=5 * 1024 ** 3))
        self.assertEqual(stats.size, 5 * 1024 ** 3)


class TestSyncMessage(unittest.TestCase):
    def test_pack_with_data(self):
        self.assertEqual(SyncMessage(constants.STAT, data='/sdcard').pack(), b'STAT\x07\x00\x00\x00/sdcard')

    def test_pack_with_value(self):
        message = SyncMessage(constants.DONE, 1600000000)
        self.assertEqual(message.data, b'')
        self.assertEqual(message.pack(), b'DONE' + struct.pack('<I', 1600000000))

    def test_pack_utf8(self):
        message = SyncMessage(constants.LIST, data='/sdcard/café')
        self.assertEqual(message.arg0, len('/sdcard/café'.encode('utf-8')))
