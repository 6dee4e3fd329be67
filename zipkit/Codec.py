#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# ZipKit - ZIP archive creation, extraction and inspection
# Copyright (C) 2025-2026 ZipKit contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Entry codec: turns one named payload into a ZIP local file record and back.

Encoding applies compression (stored or raw deflate) and optional password
encryption, then frames the result behind a local file header. Decoding
reverses the transform and verifies the stored size and CRC-32.
"""

import datetime
import struct
import zipfile
import zlib

from dataclasses import dataclass
from typing import Dict, Optional

from zipkit.Errors import (
    CorruptEntryError, EmptyNameError, UnsupportedCompressionError, UnsupportedEncryptionStrengthError,
    WrongPasswordError
)
from zipkit.Kernel import getLogger
from zipkit.Settings import ArchiveOptions, clampLevel
from zipkit.crypto import EncryptionMethod, createCipher

logger = getLogger(__name__)

# ZIP format constants (from PKZIP APPNOTE.TXT specification)
LOCAL_FILE_HEADER_SIGNATURE = struct.unpack('<I', zipfile.stringFileHeader)[0]  # 0x04034b50
CENTRAL_DIR_SIGNATURE = struct.unpack('<I', zipfile.stringCentralDir)[0]  # 0x02014b50
END_OF_CENTRAL_DIR_SIGNATURE = struct.unpack('<I', zipfile.stringEndArchive)[0]  # 0x06054b50
ZIP64_END_OF_CENTRAL_DIR_SIGNATURE = struct.unpack('<I', zipfile.stringEndArchive64)[0]  # 0x06064b50
ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE = struct.unpack('<I', zipfile.stringEndArchive64Locator)[0]  # 0x07064b50

LOCAL_FILE_HEADER_LENGTH = 30
CENTRAL_DIR_HEADER_LENGTH = 46
END_OF_CENTRAL_DIR_LENGTH = 22
ZIP64_END_OF_CENTRAL_DIR_LENGTH = 56
ZIP64_LOCATOR_LENGTH = 20

# Compression methods
STORE = zipfile.ZIP_STORED  # 0
DEFLATE = zipfile.ZIP_DEFLATED  # 8
AES_METHOD = 99  # WinZip AES marker; real method lives in the 0x9901 extra field

# General purpose bit flags
ENCRYPTED_FLAG = 0x0001
DEFLATE_MAXIMUM_FLAG = 0x0002
DEFLATE_FAST_FLAG = 0x0004
DEFLATE_SUPERFAST_FLAG = 0x0006
DATA_DESCRIPTOR_FLAG = 0x0008  # Bit 3: sizes/CRC in data descriptor
STRONG_ENCRYPTION_FLAG = 0x0040
UTF8_FLAG = 0x0800  # Bit 11: filename and comment UTF-8 encoded

# Extra field header IDs
ZIP64_EXTRA_ID = 0x0001
AES_EXTRA_ID = 0x9901

AES_VENDOR_ID = b'AE'
AES_VERSION_AE1 = 1
AES_VERSION_AE2 = 2

VERSION_DEFAULT = 20
VERSION_ZIP64 = 45
VERSION_AES = 51

ZIP64_LIMIT = 0xFFFFFFFF

# MS-DOS external attributes
DOS_DIRECTORY_ATTRIBUTE = 0x10
DOS_ARCHIVE_ATTRIBUTE = 0x20


def datetimeToDosTime(timestamp):
    """
    Convert a datetime to DOS time and date format

    Args:
        timestamp: datetime (naive = local time) or None

    Returns:
        tuple: (dosTime, dosDate) - both as 16-bit integers

    DOS time format (16 bits):
        bits 0-4: seconds / 2 (0-29)
        bits 5-10: minutes (0-59)
        bits 11-15: hours (0-23)

    DOS date format (16 bits):
        bits 0-4: day (1-31)
        bits 5-8: month (1-12)
        bits 9-15: year - 1980 (0-127, representing 1980-2107)
    """
    if timestamp is None:
        return 0, (1 << 5) | 1  # 1980-01-01 00:00:00

    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone().replace(tzinfo=None)

    # DOS date range is 1980-2107
    if timestamp.year < 1980:
        return 0, (1 << 5) | 1
    if timestamp.year > 2107:
        timestamp = datetime.datetime(2107, 12, 31, 23, 59, 58)

    dosTime = ((timestamp.hour & 0x1F) << 11) | ((timestamp.minute & 0x3F) << 5) | ((timestamp.second // 2) & 0x1F)
    dosDate = (((timestamp.year - 1980) & 0x7F) << 9) | ((timestamp.month & 0x0F) << 5) | (timestamp.day & 0x1F)

    return dosTime, dosDate


def unixToDosTime(timestamp):
    """Convert a Unix timestamp (seconds since epoch, or None) to (dosTime, dosDate)"""
    if timestamp is None or timestamp <= 0:
        return 0, (1 << 5) | 1

    try:
        return datetimeToDosTime(datetime.datetime.fromtimestamp(timestamp))
    except (ValueError, OSError, OverflowError):
        return 0, (1 << 5) | 1


def dosToDatetime(dosTime, dosDate):
    """Convert DOS time/date fields back to a naive local datetime, None if the fields are invalid"""
    try:
        return datetime.datetime(
            ((dosDate >> 9) & 0x7F) + 1980,
            (dosDate >> 5) & 0x0F,
            dosDate & 0x1F,
            (dosTime >> 11) & 0x1F,
            (dosTime >> 5) & 0x3F,
            min((dosTime & 0x1F) * 2, 59),
        )
    except ValueError:
        return None


def deflateFlags(level):
    """General purpose bits 1-2 describing the deflate effort"""
    if level >= 8:
        return DEFLATE_MAXIMUM_FLAG
    if level == 2:
        return DEFLATE_FAST_FLAG
    if level == 1:
        return DEFLATE_SUPERFAST_FLAG
    return 0


def makeExtraField(headerId, payload):
    return struct.pack('<HH', headerId, len(payload)) + payload


def parseExtraFields(extra) -> Dict[int, bytes]:
    """Split an extra field block into {headerId: payload}; malformed tails are ignored"""
    fields = {}
    pos = 0
    while pos + 4 <= len(extra):
        headerId, size = struct.unpack_from('<HH', extra, pos)
        pos += 4
        if pos + size > len(extra):
            break
        fields.setdefault(headerId, bytes(extra[pos:pos + size]))
        pos += size
    return fields


@dataclass
class Payload:
    """A named byte payload, the unit stored in and extracted from an archive"""
    name: str  # Archive-relative, '/' separated
    data: bytes
    lastModified: Optional[datetime.datetime] = None
    comment: Optional[str] = None

    @property
    def isDirectory(self) -> bool:
        return self.name.endswith('/') and not self.data


@dataclass
class EntryRecord:
    """One encoded entry: header fields plus the stored (compressed/encrypted) bytes"""
    name: str
    flags: int
    method: int  # Method written in the headers (99 for AES)
    compressionMethod: int  # Method applied to the data itself
    dosTime: int
    dosDate: int
    crc: int  # Stored CRC-32 (0 for AE-2 entries)
    compressedSize: int
    uncompressedSize: int
    data: bytes
    encryption: EncryptionMethod = EncryptionMethod.NONE
    aesStrength: Optional[int] = None
    aesVersion: int = AES_VERSION_AE2
    comment: Optional[str] = None
    externalAttr: int = 0

    @property
    def nameBytes(self) -> bytes:
        if self.flags & UTF8_FLAG:
            return self.name.encode('utf-8')
        return self.name.encode('cp437')

    @property
    def commentBytes(self) -> bytes:
        if not self.comment:
            return b''
        if self.flags & UTF8_FLAG:
            return self.comment.encode('utf-8')
        return self.comment.encode('cp437')

    @property
    def isDirectory(self) -> bool:
        return self.name.endswith('/') and self.uncompressedSize == 0

    @property
    def isEncrypted(self) -> bool:
        return bool(self.flags & ENCRYPTED_FLAG)

    @property
    def lastModified(self):
        return dosToDatetime(self.dosTime, self.dosDate)

    @property
    def needsZip64Sizes(self) -> bool:
        return self.compressedSize >= ZIP64_LIMIT or self.uncompressedSize >= ZIP64_LIMIT

    @property
    def versionNeeded(self) -> int:
        if self.method == AES_METHOD:
            return VERSION_AES
        if self.needsZip64Sizes:
            return VERSION_ZIP64
        return VERSION_DEFAULT

    def makeAesExtraField(self) -> bytes:
        if self.method != AES_METHOD:
            return b''
        return makeExtraField(
            AES_EXTRA_ID,
            struct.pack('<H2sBH', self.aesVersion, AES_VENDOR_ID, self.aesStrength, self.compressionMethod)
        )

    def makeLocalFileHeader(self) -> bytes:
        """Create ZIP local file header"""
        nameBytes = self.nameBytes

        extraField = b''
        compressedSize = self.compressedSize
        uncompressedSize = self.uncompressedSize
        if self.needsZip64Sizes:
            # Local Zip64 extra must carry both sizes
            extraField += makeExtraField(ZIP64_EXTRA_ID, struct.pack('<QQ', uncompressedSize, compressedSize))
            compressedSize = ZIP64_LIMIT
            uncompressedSize = ZIP64_LIMIT
        extraField += self.makeAesExtraField()

        header = struct.pack('<I', LOCAL_FILE_HEADER_SIGNATURE)
        header += struct.pack('<H', self.versionNeeded)  # Version needed to extract
        header += struct.pack('<H', self.flags)  # General purpose bit flag
        header += struct.pack('<H', self.method)  # Compression method
        header += struct.pack('<H', self.dosTime)  # File last modification time
        header += struct.pack('<H', self.dosDate)  # File last modification date
        header += struct.pack('<I', self.crc & 0xFFFFFFFF)  # CRC-32
        header += struct.pack('<I', compressedSize)  # Compressed size
        header += struct.pack('<I', uncompressedSize)  # Uncompressed size
        header += struct.pack('<H', len(nameBytes))  # Filename length
        header += struct.pack('<H', len(extraField))  # Extra field length
        header += nameBytes
        header += extraField

        return header

    def toBytes(self) -> bytes:
        """Local file header followed by the stored data"""
        return self.makeLocalFileHeader() + self.data


def compressData(data, level):
    """
    Compress with the given level: 0 stores, 1-9 raw-deflate with increasing effort.

    Returns:
        tuple: (method, compressedBytes)
    """
    level = clampLevel(level)
    if level == 0:
        return STORE, bytes(data)

    compressor = zlib.compressobj(level, zlib.DEFLATED, -zlib.MAX_WBITS)
    return DEFLATE, compressor.compress(data) + compressor.flush()


def decompressData(data, method):
    """Reverse compressData; raises zlib.error for damaged deflate streams"""
    if method == STORE:
        return bytes(data)

    if method == DEFLATE:
        decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        result = decompressor.decompress(data) + decompressor.flush()
        if not decompressor.eof:
            raise zlib.error("Deflate stream is truncated")
        return result

    raise UnsupportedCompressionError(f"Unsupported compression method: {method}")


def encodeEntry(name, data, options: ArchiveOptions = None, lastModified=None, comment=None) -> EntryRecord:
    """
    Encode one payload into an entry record.

    Args:
        name: Archive-relative name ('/' separated; a trailing '/' with no data is a directory)
        data: Payload bytes
        options: ArchiveOptions (level, password, encryptionStrength, zipCrypto)
        lastModified: datetime stored as the entry's DOS timestamp (default: now)
        comment: Optional entry comment

    Raises:
        EmptyNameError: If name is empty
        UnsupportedEncryptionStrengthError: If the configured strength is not 1, 2 or 3
    """
    if not name:
        raise EmptyNameError("Entry name must not be empty")

    if options is None:
        options = ArchiveOptions()

    data = bytes(data)
    if lastModified is None:
        lastModified = datetime.datetime.now()
    dosTime, dosDate = datetimeToDosTime(lastModified)

    if name.endswith('/') and not data:
        return EntryRecord(
            name=name,
            flags=UTF8_FLAG,
            method=STORE,
            compressionMethod=STORE,
            dosTime=dosTime,
            dosDate=dosDate,
            crc=0,
            compressedSize=0,
            uncompressedSize=0,
            data=b'',
            comment=comment,
            externalAttr=DOS_DIRECTORY_ATTRIBUTE,
        )

    crc = zlib.crc32(data) & 0xFFFFFFFF
    level = clampLevel(options.level)
    method, stored = compressData(data, level)

    flags = UTF8_FLAG
    if method == DEFLATE:
        flags |= deflateFlags(level)

    record = EntryRecord(
        name=name,
        flags=flags,
        method=method,
        compressionMethod=method,
        dosTime=dosTime,
        dosDate=dosDate,
        crc=crc,
        compressedSize=len(stored),
        uncompressedSize=len(data),
        data=stored,
        comment=comment,
        externalAttr=DOS_ARCHIVE_ATTRIBUTE,
    )

    if options.isEncrypted:
        _encryptRecord(record, options)

    logger.debug(f"Encoded {name}: {record.uncompressedSize} -> {record.compressedSize} bytes (method {record.method})")
    return record


def _encryptRecord(record: EntryRecord, options: ArchiveOptions):
    record.flags |= ENCRYPTED_FLAG

    if options.zipCrypto:
        cipher = createCipher(EncryptionMethod.ZIP_CRYPTO)
        record.data = cipher.encrypt(record.data, options.password, record.crc >> 24)
        record.encryption = EncryptionMethod.ZIP_CRYPTO
    else:
        strength = options.effectiveStrength
        cipher = createCipher(EncryptionMethod.AES, strength)
        record.data = cipher.encrypt(record.data, options.password)
        record.encryption = EncryptionMethod.AES
        record.aesStrength = strength
        record.aesVersion = AES_VERSION_AE2
        record.method = AES_METHOD
        record.crc = 0  # AE-2 relies on the authentication code instead of the CRC

    record.compressedSize = len(record.data)


def decodeEntry(record: EntryRecord, password=None) -> Optional[bytes]:
    """
    Decode an entry record back into its payload bytes.

    Returns:
        bytes, or None for directory entries (no payload)

    Raises:
        WrongPasswordError: Encrypted entry without a password or with a wrong one
        CorruptEntryError: Decompressed size or CRC-32 differs from the stored metadata
        UnsupportedEncryptionStrengthError: Unknown AES strength or PKWARE strong encryption
        UnsupportedCompressionError: Compression method other than stored/deflated
    """
    if record.isDirectory:
        return None

    if record.flags & STRONG_ENCRYPTION_FLAG:
        raise UnsupportedEncryptionStrengthError(
            f"Entry {record.name} uses PKWARE strong encryption, which is not supported", name=record.name
        )

    if record.compressionMethod not in (STORE, DEFLATE):
        raise UnsupportedCompressionError(
            f"Entry {record.name} uses unsupported compression method {record.compressionMethod}", name=record.name
        )

    data = record.data
    # Traditional encryption has no authentication, so any later mismatch means a wrong password.
    failure = CorruptEntryError

    if record.isEncrypted:
        if not password:
            raise WrongPasswordError(f"Entry {record.name} is encrypted, a password is required", name=record.name)

        try:
            if record.encryption == EncryptionMethod.AES:
                data = createCipher(EncryptionMethod.AES, record.aesStrength).decrypt(data, password)
            else:
                if record.flags & DATA_DESCRIPTOR_FLAG:
                    checkByte = (record.dosTime >> 8) & 0xFF
                else:
                    checkByte = (record.crc >> 24) & 0xFF
                data = createCipher(EncryptionMethod.ZIP_CRYPTO).decrypt(data, password, checkByte)
                failure = WrongPasswordError
        except (WrongPasswordError, CorruptEntryError, UnsupportedEncryptionStrengthError) as e:
            e.name = record.name
            raise

    try:
        result = decompressData(data, record.compressionMethod)
    except zlib.error as e:
        raise failure(f"Entry {record.name} could not be decompressed: {e}", name=record.name) from e

    if len(result) != record.uncompressedSize:
        raise failure(
            f"Entry {record.name} size mismatch (expected {record.uncompressedSize}, got {len(result)})",
            name=record.name
        )

    checkCrc = not (record.encryption == EncryptionMethod.AES and record.aesVersion == AES_VERSION_AE2)
    if checkCrc and (zlib.crc32(result) & 0xFFFFFFFF) != record.crc:
        raise failure(f"Entry {record.name} CRC-32 mismatch", name=record.name)

    return result
