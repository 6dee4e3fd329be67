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
Archive reader: locates the end of central directory, parses the central
directory into entry descriptors and decodes entries on demand.

Nothing is decompressed or decrypted until readEntry()/iterPayloads() is called.
"""

import datetime
import struct

from dataclasses import dataclass
from typing import Iterator, List, Optional

from zipkit.Codec import (
    AES_EXTRA_ID, AES_METHOD, CENTRAL_DIR_HEADER_LENGTH, CENTRAL_DIR_SIGNATURE, ENCRYPTED_FLAG,
    END_OF_CENTRAL_DIR_LENGTH, END_OF_CENTRAL_DIR_SIGNATURE, LOCAL_FILE_HEADER_LENGTH, LOCAL_FILE_HEADER_SIGNATURE,
    UTF8_FLAG, ZIP64_END_OF_CENTRAL_DIR_LENGTH, ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE,
    ZIP64_END_OF_CENTRAL_DIR_SIGNATURE, ZIP64_EXTRA_ID, ZIP64_LIMIT, ZIP64_LOCATOR_LENGTH, EntryRecord, Payload,
    decodeEntry, dosToDatetime, parseExtraFields
)
from zipkit.Errors import CorruptEntryError, NotAZipError
from zipkit.Kernel import getLogger
from zipkit.crypto import EncryptionMethod

logger = getLogger(__name__)

# The archive comment is at most 65535 bytes, so the EOCD must start within this window
MAX_EOCD_SEARCH = END_OF_CENTRAL_DIR_LENGTH + 0xFFFF

END_OF_CENTRAL_DIR_STRUCT = '<IHHHHIIH'
ZIP64_END_OF_CENTRAL_DIR_STRUCT = '<IQHHIIQQQQ'
ZIP64_LOCATOR_STRUCT = '<IIQI'
CENTRAL_DIR_STRUCT = '<IHHHHHHIIIHHHHHII'
LOCAL_FILE_HEADER_STRUCT = '<IHHHHHIIIHH'


@dataclass(frozen=True)
class ArchiveEntryMetadata:
    """Immutable summary of one archive entry"""
    filename: str
    uncompressedSize: int
    compressedSize: int
    lastModified: datetime.datetime
    isDirectory: bool
    isEncrypted: bool
    comment: Optional[str] = None


@dataclass
class EntryDescriptor:
    """One parsed central directory record"""
    index: int
    name: str
    flags: int
    method: int
    compressionMethod: int
    dosTime: int
    dosDate: int
    crc: int
    compressedSize: int
    uncompressedSize: int
    localHeaderOffset: int
    externalAttr: int = 0
    comment: Optional[str] = None
    encryption: EncryptionMethod = EncryptionMethod.NONE
    aesStrength: Optional[int] = None
    aesVersion: Optional[int] = None

    @property
    def isDirectory(self) -> bool:
        return self.name.endswith('/') and self.uncompressedSize == 0

    @property
    def isEncrypted(self) -> bool:
        return bool(self.flags & ENCRYPTED_FLAG)

    @property
    def lastModified(self) -> datetime.datetime:
        # Invalid DOS fields fall back to the DOS epoch
        return dosToDatetime(self.dosTime, self.dosDate) or datetime.datetime(1980, 1, 1)

    def toMetadata(self) -> ArchiveEntryMetadata:
        return ArchiveEntryMetadata(
            filename=self.name,
            uncompressedSize=self.uncompressedSize,
            compressedSize=self.compressedSize,
            lastModified=self.lastModified,
            isDirectory=self.isDirectory,
            isEncrypted=self.isEncrypted,
            comment=self.comment,
        )


def _decodeName(raw, flags):
    if flags & UTF8_FLAG:
        return raw.decode('utf-8', errors='replace')
    return raw.decode('cp437')


class ArchiveReader:
    """
    Read-only view over an archive held in memory.

    Use ArchiveReader.open(data) to parse; entries keep central directory order.
    """

    def __init__(self, data: bytes, entries: List[EntryDescriptor], comment: bytes, concat: int = 0):
        self.data = data
        self.entries = entries
        self.comment = comment  # Raw archive comment bytes
        self.concat = concat  # Bytes prepended before the archive (self-extracting stubs)

    def __len__(self):
        return len(self.entries)

    @classmethod
    def open(cls, data) -> 'ArchiveReader':
        """
        Parse the trailer and central directory of an archive.

        Raises:
            NotAZipError: Missing trailer, central directory outside the buffer,
                          missing central record signature or inconsistent entry count
        """
        data = bytes(data)

        eocdPos = cls._findEndOfCentralDir(data)
        (_, _, _, _, entryCount, centralDirSize, centralDirOffset,
         commentLength) = struct.unpack_from(END_OF_CENTRAL_DIR_STRUCT, data, eocdPos)
        commentStart = eocdPos + END_OF_CENTRAL_DIR_LENGTH
        comment = data[commentStart:commentStart + commentLength]

        trailerStart = eocdPos
        zip64 = cls._readZip64EndOfCentralDir(data, eocdPos)
        if zip64 is not None:
            trailerStart, entryCount, centralDirSize, centralDirOffset = zip64

        # Same approach as standard tools: everything before the expected central directory start is prefix data
        concat = trailerStart - centralDirSize - centralDirOffset
        if concat < 0:
            raise NotAZipError("Central directory lies outside the archive data")
        if concat:
            logger.debug(f"Archive has {concat} bytes of prepended data")

        centralDirStart = centralDirOffset + concat
        entries = cls._parseCentralDirectory(data, centralDirStart, centralDirSize, entryCount, concat)

        return cls(data, entries, comment, concat)

    @staticmethod
    def _findEndOfCentralDir(data) -> int:
        """Scan backward from the end of the buffer for the end of central directory record"""
        if len(data) < END_OF_CENTRAL_DIR_LENGTH:
            raise NotAZipError(f"Data too short to be a ZIP archive ({len(data)} bytes)")

        signature = struct.pack('<I', END_OF_CENTRAL_DIR_SIGNATURE)
        searchStart = max(0, len(data) - MAX_EOCD_SEARCH)
        pos = data.rfind(signature, searchStart)

        while pos >= 0:
            if pos + END_OF_CENTRAL_DIR_LENGTH <= len(data):
                commentLength = struct.unpack_from('<H', data, pos + 20)[0]
                if pos + END_OF_CENTRAL_DIR_LENGTH + commentLength <= len(data):
                    return pos
            pos = data.rfind(signature, searchStart, pos)

        raise NotAZipError("End of central directory record not found")

    @staticmethod
    def _readZip64EndOfCentralDir(data, eocdPos):
        """Return (recordStart, entryCount, centralDirSize, centralDirOffset) if a Zip64 trailer is present"""
        locatorPos = eocdPos - ZIP64_LOCATOR_LENGTH
        if locatorPos < 0:
            return None

        signature, _, _, _ = struct.unpack_from(ZIP64_LOCATOR_STRUCT, data, locatorPos)
        if signature != ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE:
            return None

        # The Zip64 record directly precedes its locator
        recordPos = locatorPos - ZIP64_END_OF_CENTRAL_DIR_LENGTH
        if recordPos < 0:
            raise NotAZipError("Zip64 end of central directory record is missing")

        (signature, _, _, _, _, _, _, entryCount, centralDirSize,
         centralDirOffset) = struct.unpack_from(ZIP64_END_OF_CENTRAL_DIR_STRUCT, data, recordPos)
        if signature != ZIP64_END_OF_CENTRAL_DIR_SIGNATURE:
            raise NotAZipError("Zip64 end of central directory record is corrupt")

        return recordPos, entryCount, centralDirSize, centralDirOffset

    @staticmethod
    def _parseCentralDirectory(data, start, size, entryCount, concat=0) -> List[EntryDescriptor]:
        end = start + size
        if end > len(data):
            raise NotAZipError("Central directory extends beyond the archive data")

        entries = []
        pos = start
        for index in range(entryCount):
            if pos + CENTRAL_DIR_HEADER_LENGTH > end:
                raise NotAZipError(f"Central directory holds fewer than {entryCount} entries")

            (signature, _, _, flags, method, dosTime, dosDate, crc, compressedSize, uncompressedSize,
             nameLength, extraLength, commentLength, _, _, externalAttr,
             localHeaderOffset) = struct.unpack_from(CENTRAL_DIR_STRUCT, data, pos)

            if signature != CENTRAL_DIR_SIGNATURE:
                raise NotAZipError(f"Bad central directory signature at offset {pos}")

            nameStart = pos + CENTRAL_DIR_HEADER_LENGTH
            extraStart = nameStart + nameLength
            commentStart = extraStart + extraLength
            pos = commentStart + commentLength
            if pos > end:
                raise NotAZipError("Central directory record extends beyond the central directory")

            name = _decodeName(data[nameStart:extraStart], flags)
            extraFields = parseExtraFields(data[extraStart:commentStart])
            comment = _decodeName(data[commentStart:pos], flags) if commentLength else None

            if ZIP64_EXTRA_ID in extraFields:
                uncompressedSize, compressedSize, localHeaderOffset = _applyZip64Extra(
                    extraFields[ZIP64_EXTRA_ID], uncompressedSize, compressedSize, localHeaderOffset, name
                )

            # Local headers precede the central directory
            if localHeaderOffset + concat + LOCAL_FILE_HEADER_LENGTH > start:
                raise NotAZipError(f"Local header offset of {name} points outside the archive data")

            descriptor = EntryDescriptor(
                index=index,
                name=name,
                flags=flags,
                method=method,
                compressionMethod=method,
                dosTime=dosTime,
                dosDate=dosDate,
                crc=crc,
                compressedSize=compressedSize,
                uncompressedSize=uncompressedSize,
                localHeaderOffset=localHeaderOffset,
                externalAttr=externalAttr,
                comment=comment,
            )

            if descriptor.isEncrypted:
                descriptor.encryption = EncryptionMethod.ZIP_CRYPTO
            if method == AES_METHOD and AES_EXTRA_ID in extraFields:
                _applyAesExtra(descriptor, extraFields[AES_EXTRA_ID])

            entries.append(descriptor)

        # More records than the trailer claims means the count is inconsistent
        if pos + 4 <= end and struct.unpack_from('<I', data, pos)[0] == CENTRAL_DIR_SIGNATURE:
            raise NotAZipError(f"Central directory holds more than {entryCount} entries")

        return entries

    def listEntries(self) -> List[ArchiveEntryMetadata]:
        """Metadata for every entry, directories included, in central directory order"""
        return [entry.toMetadata() for entry in self.entries]

    def readEntry(self, descriptor: EntryDescriptor, password=None) -> Optional[bytes]:
        """
        Decode one entry. Returns None for directory entries.

        Raises:
            CorruptEntryError: Local header missing/inconsistent or data truncated
            WrongPasswordError, UnsupportedEncryptionStrengthError, UnsupportedCompressionError: From decoding
        """
        record = EntryRecord(
            name=descriptor.name,
            flags=descriptor.flags,
            method=descriptor.method,
            compressionMethod=descriptor.compressionMethod,
            dosTime=descriptor.dosTime,
            dosDate=descriptor.dosDate,
            crc=descriptor.crc,
            compressedSize=descriptor.compressedSize,
            uncompressedSize=descriptor.uncompressedSize,
            data=self._readEntryData(descriptor),
            encryption=descriptor.encryption,
            aesStrength=descriptor.aesStrength,
            comment=descriptor.comment,
            externalAttr=descriptor.externalAttr,
        )
        if descriptor.aesVersion is not None:
            record.aesVersion = descriptor.aesVersion

        return decodeEntry(record, password)

    def _readEntryData(self, descriptor: EntryDescriptor) -> bytes:
        pos = descriptor.localHeaderOffset + self.concat
        if pos + LOCAL_FILE_HEADER_LENGTH > len(self.data):
            raise CorruptEntryError(f"Local header of {descriptor.name} is outside the archive", name=descriptor.name)

        (signature, _, _, _, _, _, _, _, _, nameLength,
         extraLength) = struct.unpack_from(LOCAL_FILE_HEADER_STRUCT, self.data, pos)
        if signature != LOCAL_FILE_HEADER_SIGNATURE:
            raise CorruptEntryError(f"Bad local header signature for {descriptor.name}", name=descriptor.name)

        dataStart = pos + LOCAL_FILE_HEADER_LENGTH + nameLength + extraLength
        dataEnd = dataStart + descriptor.compressedSize
        if dataEnd > len(self.data):
            raise CorruptEntryError(f"Data of {descriptor.name} is truncated", name=descriptor.name)

        return self.data[dataStart:dataEnd]

    def iterPayloads(self, password=None) -> Iterator[Payload]:
        """Lazily decode non-directory entries in archive order"""
        for descriptor in self.entries:
            if descriptor.isDirectory:
                continue
            yield Payload(
                name=descriptor.name,
                data=self.readEntry(descriptor, password),
                lastModified=descriptor.lastModified,
                comment=descriptor.comment,
            )


def _applyZip64Extra(extra, uncompressedSize, compressedSize, localHeaderOffset, name):
    """Replace 0xFFFFFFFF sentinels with the 64-bit values from the Zip64 extra field"""
    values = []
    pos = 0
    for value in (uncompressedSize, compressedSize, localHeaderOffset):
        if value == ZIP64_LIMIT:
            if pos + 8 > len(extra):
                raise NotAZipError(f"Zip64 extra field of {name} is truncated")
            value = struct.unpack_from('<Q', extra, pos)[0]
            pos += 8
        values.append(value)
    return tuple(values)


def _applyAesExtra(descriptor, extra):
    if len(extra) < 7:
        raise NotAZipError(f"AES extra field of {descriptor.name} is truncated")

    version, vendor, strength, actualMethod = struct.unpack_from('<H2sBH', extra)
    descriptor.encryption = EncryptionMethod.AES
    descriptor.aesVersion = version
    descriptor.aesStrength = strength
    descriptor.compressionMethod = actualMethod


def openArchive(data) -> ArchiveReader:
    return ArchiveReader.open(data)
