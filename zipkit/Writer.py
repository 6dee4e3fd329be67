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
Archive writer: encodes an ordered list of payloads into one ZIP byte buffer.

Layout: [local header + data]... [central directory] [Zip64 EOCD + locator]? [EOCD]
"""

import struct

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List

from zipkit.Codec import (
    CENTRAL_DIR_SIGNATURE, END_OF_CENTRAL_DIR_SIGNATURE, VERSION_ZIP64, ZIP64_END_OF_CENTRAL_DIR_LENGTH,
    ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE, ZIP64_END_OF_CENTRAL_DIR_SIGNATURE, ZIP64_EXTRA_ID, ZIP64_LIMIT,
    EntryRecord, Payload, encodeEntry, makeExtraField
)
from zipkit.Errors import EmptyNameError
from zipkit.Kernel import ZipKitEvent, getLogger
from zipkit.Settings import ArchiveOptions

logger = getLogger(__name__)

ZIP64_ENTRY_LIMIT = 0xFFFF


class ArchiveWriter:
    """
    Builds a complete archive in memory. Never touches the filesystem.

    Output is deterministic for identical payloads when timestamps are fixed
    and no password is set (encryption salts are random).
    """

    def __init__(self, options: ArchiveOptions = None):
        self.options = options or ArchiveOptions()

    def _encodePayload(self, payload: Payload) -> EntryRecord:
        return encodeEntry(
            payload.name, payload.data, self.options, lastModified=payload.lastModified, comment=payload.comment
        )

    def _encodeAll(self, payloads: List[Payload]) -> List[EntryRecord]:
        workers = self.options.workers
        if workers > 1 and len(payloads) > 1:
            logger.debug(f"Encoding {len(payloads)} entries with {workers} workers")
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # map() keeps input order regardless of completion order
                return list(executor.map(self._encodePayload, payloads))

        return [self._encodePayload(payload) for payload in payloads]

    def write(self, payloads: Iterable[Payload]) -> bytes:
        """
        Encode payloads into an archive.

        Args:
            payloads: Payloads in the order they should appear in the archive

        Returns:
            bytes: The complete archive

        Raises:
            EmptyNameError: If any payload name is empty (checked before encoding)
        """
        payloads = list(payloads)

        # Validate every name up front so no partial archive is ever produced
        for index, payload in enumerate(payloads):
            if not payload.name:
                raise EmptyNameError(f"Payload #{index} has an empty name")

        records = self._encodeAll(payloads)

        buffer = bytearray()
        centralDir = []

        for record in records:
            offset = len(buffer)
            buffer.extend(record.toBytes())
            centralDir.append((record, offset))

            ZipKitEvent.entryEncoded.trigger(
                name=record.name, size=record.uncompressedSize, compressedSize=record.compressedSize
            )

        centralDirStart = len(buffer)
        for record, offset in centralDir:
            buffer.extend(self._makeCentralDirHeader(record, offset))
        centralDirSize = len(buffer) - centralDirStart

        self._writeEndOfCentralDirectory(buffer, len(centralDir), centralDirSize, centralDirStart)

        logger.debug(f"Archive written: {len(records)} entries, {len(buffer)} bytes")
        return bytes(buffer)

    def _makeCentralDirHeader(self, record: EntryRecord, offset: int) -> bytes:
        """Create ZIP central directory header with Zip64 support"""
        nameBytes = record.nameBytes
        commentBytes = record.commentBytes

        # Determine if Zip64 extra field is needed
        needsZip64 = (record.compressedSize >= ZIP64_LIMIT or
                      record.uncompressedSize >= ZIP64_LIMIT or
                      offset >= ZIP64_LIMIT)

        extraField = b''
        if needsZip64:
            # Fields in order: uncompressed size, compressed size, relative header offset
            extraData = b''
            if record.uncompressedSize >= ZIP64_LIMIT:
                extraData += struct.pack('<Q', record.uncompressedSize)
            if record.compressedSize >= ZIP64_LIMIT:
                extraData += struct.pack('<Q', record.compressedSize)
            if offset >= ZIP64_LIMIT:
                extraData += struct.pack('<Q', offset)
            extraField += makeExtraField(ZIP64_EXTRA_ID, extraData)
        extraField += record.makeAesExtraField()

        versionNeeded = max(record.versionNeeded, VERSION_ZIP64) if needsZip64 else record.versionNeeded

        # Use 0xFFFFFFFF markers for Zip64 fields
        cdCompressedSize = min(record.compressedSize, ZIP64_LIMIT)
        cdUncompressedSize = min(record.uncompressedSize, ZIP64_LIMIT)
        cdOffset = min(offset, ZIP64_LIMIT)

        header = struct.pack('<I', CENTRAL_DIR_SIGNATURE)
        header += struct.pack('<H', versionNeeded)  # Version made by
        header += struct.pack('<H', versionNeeded)  # Version needed to extract
        header += struct.pack('<H', record.flags)  # General purpose bit flag
        header += struct.pack('<H', record.method)  # Compression method
        header += struct.pack('<H', record.dosTime)  # Last mod file time
        header += struct.pack('<H', record.dosDate)  # Last mod file date
        header += struct.pack('<I', record.crc & 0xFFFFFFFF)  # CRC-32
        header += struct.pack('<I', cdCompressedSize)  # Compressed size
        header += struct.pack('<I', cdUncompressedSize)  # Uncompressed size
        header += struct.pack('<H', len(nameBytes))  # Filename length
        header += struct.pack('<H', len(extraField))  # Extra field length
        header += struct.pack('<H', len(commentBytes))  # File comment length
        header += struct.pack('<H', 0)  # Disk number start
        header += struct.pack('<H', 0)  # Internal file attributes
        header += struct.pack('<I', record.externalAttr)  # External file attributes
        header += struct.pack('<I', cdOffset)  # Relative offset of local header
        header += nameBytes
        header += extraField
        header += commentBytes

        return header

    def _writeEndOfCentralDirectory(self, buffer, entryCount, centralDirSize, centralDirStart):
        """Write EOCD (and Zip64 EOCD/locator if needed) to buffer"""
        needsZip64 = (entryCount > ZIP64_ENTRY_LIMIT or
                      centralDirSize >= ZIP64_LIMIT or
                      centralDirStart >= ZIP64_LIMIT)

        if needsZip64:
            zip64EocdOffset = len(buffer)
            buffer.extend(self._makeZip64EndOfCentralDir(entryCount, centralDirSize, centralDirStart))
            buffer.extend(self._makeZip64Locator(zip64EocdOffset))

        buffer.extend(self._makeEndOfCentralDir(entryCount, centralDirSize, centralDirStart))

    def _makeZip64EndOfCentralDir(self, entryCount: int, centralDirSize: int, centralDirStart: int):
        """Create Zip64 end of central directory record"""
        record = struct.pack('<I', ZIP64_END_OF_CENTRAL_DIR_SIGNATURE)
        record += struct.pack('<Q', ZIP64_END_OF_CENTRAL_DIR_LENGTH - 12)  # Size of remaining record
        record += struct.pack('<H', VERSION_ZIP64)  # Version made by
        record += struct.pack('<H', VERSION_ZIP64)  # Version needed to extract
        record += struct.pack('<I', 0)  # Number of this disk
        record += struct.pack('<I', 0)  # Disk where central directory starts
        record += struct.pack('<Q', entryCount)  # Number of entries on this disk
        record += struct.pack('<Q', entryCount)  # Total number of entries
        record += struct.pack('<Q', centralDirSize)  # Size of central directory
        record += struct.pack('<Q', centralDirStart)  # Offset of start of central directory

        return record

    def _makeZip64Locator(self, zip64EocdOffset: int):
        """Create Zip64 end of central directory locator"""
        locator = struct.pack('<I', ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE)
        locator += struct.pack('<I', 0)  # Disk number with zip64 EOCD
        locator += struct.pack('<Q', zip64EocdOffset)  # Offset of zip64 EOCD
        locator += struct.pack('<I', 1)  # Total number of disks

        return locator

    def _makeEndOfCentralDir(self, entryCount: int, centralDirSize: int, centralDirStart: int):
        """Create end of central directory record"""
        commentBytes = (self.options.comment or '').encode('utf-8')

        # For Zip64, use 0xFFFF/0xFFFFFFFF as markers
        maxEntries = min(entryCount, ZIP64_ENTRY_LIMIT)
        maxSize = min(centralDirSize, ZIP64_LIMIT)
        maxOffset = min(centralDirStart, ZIP64_LIMIT)

        eocd = struct.pack('<I', END_OF_CENTRAL_DIR_SIGNATURE)
        eocd += struct.pack('<H', 0)  # Number of this disk
        eocd += struct.pack('<H', 0)  # Disk where central directory starts
        eocd += struct.pack('<H', maxEntries)  # Number of entries on this disk
        eocd += struct.pack('<H', maxEntries)  # Total number of entries
        eocd += struct.pack('<I', maxSize)  # Size of central directory
        eocd += struct.pack('<I', maxOffset)  # Offset of start of central directory
        eocd += struct.pack('<H', len(commentBytes))  # Comment length
        eocd += commentBytes

        return eocd


def writeArchive(payloads: Iterable[Payload], options: ArchiveOptions = None) -> bytes:
    """Encode payloads into a ZIP archive"""
    return ArchiveWriter(options).write(payloads)
