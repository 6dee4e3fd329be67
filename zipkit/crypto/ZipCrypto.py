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
Traditional PKWARE encryption ("ZipCrypto").

Weak by modern standards, but it is the scheme every ZIP tool understands.
The 12-byte encryption header ends with a check byte that lets a reader
reject most wrong passwords before decompressing anything.
"""

import os

from zipkit.Errors import WrongPasswordError
from zipkit.Kernel import getLogger
from zipkit.crypto import ZipCipher, encodePassword

logger = getLogger(__name__)

ENCRYPTION_HEADER_LENGTH = 12


def _buildCrcTable():
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            if c & 1:
                c = (c >> 1) ^ 0xEDB88320
            else:
                c >>= 1
        table.append(c)
    return table


CRC_TABLE = _buildCrcTable()


class _Keys:
    """The three 32-bit keys of the traditional cipher"""

    def __init__(self, password: bytes):
        self.key0 = 0x12345678
        self.key1 = 0x23456789
        self.key2 = 0x34567890
        for c in password:
            self.update(c)

    def update(self, c):
        self.key0 = (self.key0 >> 8) ^ CRC_TABLE[(self.key0 ^ c) & 0xFF]
        self.key1 = (self.key1 + (self.key0 & 0xFF)) & 0xFFFFFFFF
        self.key1 = (self.key1 * 134775813 + 1) & 0xFFFFFFFF
        self.key2 = (self.key2 >> 8) ^ CRC_TABLE[(self.key2 ^ (self.key1 >> 24)) & 0xFF]

    def transform(self, data: bytes, decrypting: bool) -> bytes:
        key0, key1, key2 = self.key0, self.key1, self.key2
        table = CRC_TABLE
        out = bytearray(len(data))

        for i, c in enumerate(data):
            k = key2 | 2
            streamByte = ((k * (k ^ 1)) >> 8) & 0xFF
            result = c ^ streamByte
            plain = result if decrypting else c
            out[i] = result

            key0 = (key0 >> 8) ^ table[(key0 ^ plain) & 0xFF]
            key1 = (key1 + (key0 & 0xFF)) & 0xFFFFFFFF
            key1 = (key1 * 134775813 + 1) & 0xFFFFFFFF
            key2 = (key2 >> 8) ^ table[(key2 ^ (key1 >> 24)) & 0xFF]

        self.key0, self.key1, self.key2 = key0, key1, key2
        return bytes(out)


class ZipCryptoCipher(ZipCipher):

    def getName(self):
        return "zipcrypto"

    def encrypt(self, data, password, checkByte):
        """
        Encrypt data, prefixing the 12-byte header.

        Args:
            data: Compressed entry data
            password: Password (str or bytes)
            checkByte: High byte of the CRC-32 (or of the DOS time when a data descriptor is used)
        """
        keys = _Keys(encodePassword(password))
        header = os.urandom(ENCRYPTION_HEADER_LENGTH - 1) + bytes([checkByte & 0xFF])
        return keys.transform(header + bytes(data), decrypting=False)

    def decrypt(self, data, password, checkByte):
        if len(data) < ENCRYPTION_HEADER_LENGTH:
            raise WrongPasswordError("Encrypted entry is too short to hold an encryption header")

        keys = _Keys(encodePassword(password))
        header = keys.transform(bytes(data[:ENCRYPTION_HEADER_LENGTH]), decrypting=True)
        if header[-1] != (checkByte & 0xFF):
            raise WrongPasswordError("Wrong password")

        return keys.transform(bytes(data[ENCRYPTION_HEADER_LENGTH:]), decrypting=True)
