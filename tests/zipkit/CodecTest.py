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

import datetime
import struct
import unittest
import zlib

from zipkit.Codec import (
    AES_METHOD, DEFLATE, DEFLATE_FAST_FLAG, DEFLATE_MAXIMUM_FLAG, DEFLATE_SUPERFAST_FLAG, ENCRYPTED_FLAG, STORE,
    STRONG_ENCRYPTION_FLAG, UTF8_FLAG, datetimeToDosTime, decodeEntry, dosToDatetime, encodeEntry,
    parseExtraFields, unixToDosTime
)
from zipkit.Errors import (
    CorruptEntryError, EmptyNameError, UnsupportedCompressionError, UnsupportedEncryptionStrengthError,
    WrongPasswordError
)
from zipkit.Settings import ArchiveOptions
from zipkit.crypto import EncryptionMethod

FIXED_TIME = datetime.datetime(2024, 5, 17, 10, 30, 42)
SAMPLE = b'The quick brown fox jumps over the lazy dog. ' * 50


class EncodeEntryTest(unittest.TestCase):

    def testLevelZeroStores(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=0), lastModified=FIXED_TIME)
        self.assertEqual(record.method, STORE)
        self.assertEqual(record.data, SAMPLE)
        self.assertEqual(record.compressedSize, len(SAMPLE))
        self.assertEqual(record.crc, zlib.crc32(SAMPLE))

    def testDeflateLevelsRoundTrip(self):
        for level in range(1, 10):
            with self.subTest(level=level):
                record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=level), lastModified=FIXED_TIME)
                self.assertEqual(record.method, DEFLATE)
                self.assertLess(record.compressedSize, len(SAMPLE))
                self.assertEqual(decodeEntry(record), SAMPLE)

    def testDeflateFlagsFollowLevel(self):
        expected = {1: DEFLATE_SUPERFAST_FLAG, 2: DEFLATE_FAST_FLAG, 5: 0, 8: DEFLATE_MAXIMUM_FLAG, 9: DEFLATE_MAXIMUM_FLAG}
        for level, flag in expected.items():
            with self.subTest(level=level):
                record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=level))
                self.assertEqual(record.flags & 0x0006, flag)

    def testNamesAreFlaggedUtf8(self):
        record = encodeEntry('日本語.txt', b'x', ArchiveOptions())
        self.assertTrue(record.flags & UTF8_FLAG)
        self.assertEqual(record.nameBytes, '日本語.txt'.encode('utf-8'))

    def testEmptyNameRejected(self):
        with self.assertRaises(EmptyNameError):
            encodeEntry('', b'data', ArchiveOptions())

    def testDirectoryEntryIsStoredAndNeverEncrypted(self):
        record = encodeEntry('folder/', b'', ArchiveOptions(password='secret'))
        self.assertEqual(record.method, STORE)
        self.assertFalse(record.flags & ENCRYPTED_FLAG)
        self.assertIsNone(decodeEntry(record))
        self.assertIsNone(decodeEntry(record, password='secret'))

    def testEmptyFileDecodesToEmptyBytes(self):
        record = encodeEntry('empty.txt', b'', ArchiveOptions())
        self.assertEqual(decodeEntry(record), b'')

    def testLevelClamping(self):
        high = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=15), lastModified=FIXED_TIME)
        nine = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=9), lastModified=FIXED_TIME)
        self.assertEqual(high.toBytes(), nine.toBytes())

        low = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=-3), lastModified=FIXED_TIME)
        zero = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=0), lastModified=FIXED_TIME)
        self.assertEqual(low.toBytes(), zero.toBytes())

    def testLocalFileHeaderLayout(self):
        record = encodeEntry('dir/file.txt', SAMPLE, ArchiveOptions(level=6), lastModified=FIXED_TIME)
        raw = record.toBytes()

        (signature, _, flags, method, dosTime, dosDate, crc, compressedSize, uncompressedSize, nameLength,
         extraLength) = struct.unpack_from('<IHHHHHIIIHH', raw)
        self.assertEqual(signature, 0x04034b50)
        self.assertEqual(flags, record.flags)
        self.assertEqual(method, DEFLATE)
        self.assertEqual((dosTime, dosDate), datetimeToDosTime(FIXED_TIME))
        self.assertEqual(crc, zlib.crc32(SAMPLE))
        self.assertEqual(compressedSize, record.compressedSize)
        self.assertEqual(uncompressedSize, len(SAMPLE))
        self.assertEqual(raw[30:30 + nameLength], b'dir/file.txt')
        self.assertEqual(extraLength, 0)
        self.assertEqual(raw[30 + nameLength:], record.data)


class EncryptedEntryTest(unittest.TestCase):

    def testAesRoundTripAllStrengths(self):
        for strength in (1, 2, 3):
            with self.subTest(strength=strength):
                options = ArchiveOptions(password='pa55word', encryptionStrength=strength)
                record = encodeEntry('secret.txt', SAMPLE, options)

                self.assertEqual(record.method, AES_METHOD)
                self.assertEqual(record.compressionMethod, DEFLATE)
                self.assertEqual(record.encryption, EncryptionMethod.AES)
                self.assertEqual(record.aesStrength, strength)
                self.assertEqual(record.crc, 0)
                self.assertTrue(record.flags & ENCRYPTED_FLAG)

                extra = parseExtraFields(record.makeAesExtraField())
                self.assertEqual(extra[0x9901], struct.pack('<H2sBH', 2, b'AE', strength, DEFLATE))

                self.assertEqual(decodeEntry(record, 'pa55word'), SAMPLE)

    def testPasswordWithoutStrengthUsesDefault(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw'))
        self.assertEqual(record.encryption, EncryptionMethod.AES)
        self.assertIn(record.aesStrength, (1, 2, 3))

    def testZipCryptoRoundTrip(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw', zipCrypto=True))
        self.assertEqual(record.method, DEFLATE)
        self.assertEqual(record.encryption, EncryptionMethod.ZIP_CRYPTO)
        self.assertEqual(record.crc, zlib.crc32(SAMPLE))
        self.assertEqual(decodeEntry(record, 'pw'), SAMPLE)

    def testMissingPassword(self):
        for zipCrypto in (False, True):
            with self.subTest(zipCrypto=zipCrypto):
                record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw', zipCrypto=zipCrypto))
                with self.assertRaises(WrongPasswordError):
                    decodeEntry(record)
                with self.assertRaises(WrongPasswordError):
                    decodeEntry(record, password='')

    def testWrongPassword(self):
        for zipCrypto in (False, True):
            with self.subTest(zipCrypto=zipCrypto):
                record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='right', zipCrypto=zipCrypto))
                with self.assertRaises(WrongPasswordError) as ctx:
                    decodeEntry(record, 'wrong')
                self.assertEqual(ctx.exception.name, 'a.txt')

    def testTamperedAesDataFailsAuthentication(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw', encryptionStrength=1))
        tampered = bytearray(record.data)
        tampered[20] ^= 0xFF
        record.data = bytes(tampered)
        with self.assertRaises(WrongPasswordError):
            decodeEntry(record, 'pw')

    def testStrongEncryptionFlagUnsupported(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw', zipCrypto=True))
        record.flags |= STRONG_ENCRYPTION_FLAG
        with self.assertRaises(UnsupportedEncryptionStrengthError):
            decodeEntry(record, 'pw')

    def testUnknownAesStrengthUnsupported(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(password='pw'))
        record.aesStrength = 4
        with self.assertRaises(UnsupportedEncryptionStrengthError):
            decodeEntry(record, 'pw')

    def testInvalidStrengthOptionRejected(self):
        with self.assertRaises(UnsupportedEncryptionStrengthError):
            ArchiveOptions(password='pw', encryptionStrength=5)


class CorruptEntryTest(unittest.TestCase):

    def testStoredDataCrcMismatch(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=0))
        tampered = bytearray(record.data)
        tampered[0] ^= 0x01
        record.data = bytes(tampered)
        with self.assertRaises(CorruptEntryError):
            decodeEntry(record)

    def testSizeMismatch(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=6))
        record.uncompressedSize += 1
        with self.assertRaises(CorruptEntryError):
            decodeEntry(record)

    def testTruncatedDeflateStream(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=6))
        record.data = record.data[:len(record.data) // 2]
        with self.assertRaises(CorruptEntryError):
            decodeEntry(record)

    def testUnsupportedCompressionMethod(self):
        record = encodeEntry('a.txt', SAMPLE, ArchiveOptions(level=6))
        record.method = record.compressionMethod = 12  # bzip2
        with self.assertRaises(UnsupportedCompressionError):
            decodeEntry(record)


class DosTimeTest(unittest.TestCase):

    def testRoundTrip(self):
        dosTime, dosDate = datetimeToDosTime(FIXED_TIME)
        self.assertEqual(dosToDatetime(dosTime, dosDate), FIXED_TIME)

    def testOddSecondsTruncate(self):
        dosTime, dosDate = datetimeToDosTime(datetime.datetime(2020, 1, 2, 3, 4, 5))
        self.assertEqual(dosToDatetime(dosTime, dosDate), datetime.datetime(2020, 1, 2, 3, 4, 4))

    def testRangeClamping(self):
        self.assertEqual(datetimeToDosTime(datetime.datetime(1970, 6, 1)), (0, (1 << 5) | 1))
        self.assertEqual(datetimeToDosTime(None), (0, (1 << 5) | 1))
        self.assertEqual(
            dosToDatetime(*datetimeToDosTime(datetime.datetime(2200, 1, 1))), datetime.datetime(2107, 12, 31, 23, 59, 58)
        )

    def testUnixTimestamps(self):
        self.assertEqual(unixToDosTime(None), (0, (1 << 5) | 1))
        self.assertEqual(unixToDosTime(0), (0, (1 << 5) | 1))
        timestamp = FIXED_TIME.timestamp()
        self.assertEqual(unixToDosTime(timestamp), datetimeToDosTime(FIXED_TIME))

    def testInvalidFieldsDecodeToNone(self):
        self.assertIsNone(dosToDatetime(0, 0))  # month 0


if __name__ == '__main__':
    unittest.main()
