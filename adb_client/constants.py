# Copyright (c) 2021 Jeff Irion and contributors
#
# This file is part of the adb-client package.  It incorporates work
# covered by the following license notice:
#
#
#   Copyright 2014 Google Inc. All rights reserved.
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Constants used throughout the code.

"""


import struct


#: The address of the adb server
DEFAULT_ADB_SERVER_HOST = '127.0.0.1'

#: The port of the adb server
DEFAULT_ADB_SERVER_PORT = 5037

#: Maximum size of a sync ``DATA`` chunk
MAX_CHUNK_SIZE = 64 * 1024

#: Maximum length of a device path for the sync service
MAX_PATH_LENGTH = 1024

#: Default mode for pushed files
DEFAULT_PUSH_MODE = 0o666

#: Directory on the device where packages are staged before installation
TEMP_INSTALLATION_DIRECTORY = '/data/local/tmp/'

#: Default total timeout for reading the requested number of bytes
DEFAULT_READ_TIMEOUT_S = 10.

#: Default encoding for requests and shell output
DEFAULT_ENCODING = 'utf-8'

#: Replace undecodable bytes instead of raising
DECODE_ERRORS = 'backslashreplace'

#: Length of the hex length prefix of a host request or string
LENGTH_PREFIX_SIZE = 4

# adb host protocol status words
OKAY = b'OKAY'
FAIL = b'FAIL'

# Sync service IDs
DATA = b'DATA'
DENT = b'DENT'
DONE = b'DONE'
LIST = b'LIST'
QUIT = b'QUIT'
RECV = b'RECV'
SEND = b'SEND'
STAT = b'STAT'

# Sync service V2 IDs
DNT2 = b'DNT2'
LIS2 = b'LIS2'
LST2 = b'LST2'
RCV2 = b'RCV2'
SND2 = b'SND2'
STA2 = b'STA2'

SYNC_IDS = (DATA, DENT, DNT2, DONE, FAIL, LIS2, LIST, LST2, OKAY, QUIT, RCV2, RECV, SEND, SND2, STA2, STAT)

SYNC_ID_TO_WIRE = {cmd_id: sum(c << (i * 8) for i, c in enumerate(bytearray(cmd_id))) for cmd_id in SYNC_IDS}
SYNC_WIRE_TO_ID = {wire: cmd_id for cmd_id, wire in SYNC_ID_TO_WIRE.items()}

#: A sync header is a 4-byte ID and a little-endian length
SYNC_HEADER_FORMAT = b'<2I'

#: Size of a sync header
SYNC_HEADER_SIZE = 8

#: V1 stat record: mode, size, mtime
STAT_FORMAT = b'<3I'

#: Size of a V1 stat record
STAT_SIZE = struct.calcsize(STAT_FORMAT)

#: V2 stat record: error, dev, ino, mode, nlink, uid, gid, size, atime, mtime, ctime
STAT_V2_FORMAT = b'<IQQIIIIQqqq'

#: Size of a V2 stat record (68 bytes; with the 4-byte ``STA2`` / ``DNT2`` ID in front, a V2 reply is 72 bytes)
STAT_V2_SIZE = struct.calcsize(STAT_V2_FORMAT)

#: Size of the name length field that follows a stat record in ``DENT`` / ``DNT2``
DENT_NAME_LENGTH_SIZE = 4

#: No compression for ``SND2`` / ``RCV2``
SYNC_FLAG_NONE = 0

#: ``errno`` value for "No such file or directory"
ENOENT = 2

#: List all packages
LIST_FULL = 'pm list packages -f'

#: List only third party packages
LIST_THIRD_PARTY_ONLY = 'pm list packages -f -3'
