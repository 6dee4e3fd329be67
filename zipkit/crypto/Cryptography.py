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
WinZip AES encryption (AE-1 / AE-2) backed by the 'cryptography' library.

Stored layout: salt | password verifier (2) | ciphertext | HMAC-SHA1 (10).
Keys come from PBKDF2-HMAC-SHA1 (1000 iterations); the cipher is AES in CTR
mode with a little-endian counter starting at 1, which is why the counter
blocks are built here and encrypted with ECB instead of using modes.CTR.
"""

import os

from cryptography.hazmat.primitives import constant_time, hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from zipkit.Errors import CorruptEntryError, UnsupportedEncryptionStrengthError, WrongPasswordError
from zipkit.Kernel import getLogger
from zipkit.crypto import ZipCipher, encodePassword

logger = getLogger(__name__)

AES_KEY_LENGTHS = {1: 16, 2: 24, 3: 32}
AES_SALT_LENGTHS = {1: 8, 2: 12, 3: 16}
PASSWORD_VERIFIER_LENGTH = 2
AUTHENTICATION_CODE_LENGTH = 10
KEY_DERIVATION_ITERATIONS = 1000

AES_BLOCK_SIZE = 16
CTR_CHUNK_SIZE = 64 * 1024  # Multiple of the block size


class WinZipAesCipher(ZipCipher):
    """AES cipher for one strength tier (1 = AES-128, 2 = AES-192, 3 = AES-256)"""

    def __init__(self, strength):
        if strength not in AES_KEY_LENGTHS:
            raise UnsupportedEncryptionStrengthError(f"Unsupported AES strength: {strength}")

        self.strength = strength
        self.keyLength = AES_KEY_LENGTHS[strength]
        self.saltLength = AES_SALT_LENGTHS[strength]

    def getName(self):
        return f"aes-{self.keyLength * 8}"

    @property
    def overhead(self):
        return self.saltLength + PASSWORD_VERIFIER_LENGTH + AUTHENTICATION_CODE_LENGTH

    def _deriveKeys(self, password, salt):
        """Derive (encryptionKey, macKey, passwordVerifier) from the password and salt"""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA1(),
            length=2 * self.keyLength + PASSWORD_VERIFIER_LENGTH,
            salt=salt,
            iterations=KEY_DERIVATION_ITERATIONS,
        )
        derived = kdf.derive(encodePassword(password))
        return (
            derived[:self.keyLength],
            derived[self.keyLength:2 * self.keyLength],
            derived[2 * self.keyLength:],
        )

    def _authenticate(self, macKey, ciphertext):
        mac = hmac.HMAC(macKey, hashes.SHA1())
        mac.update(ciphertext)
        return mac.finalize()[:AUTHENTICATION_CODE_LENGTH]

    def _ctrTransform(self, key, data):
        """AES-CTR with the WinZip little-endian counter; encryption and decryption are identical"""
        encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
        out = bytearray()
        counter = 1

        for start in range(0, len(data), CTR_CHUNK_SIZE):
            chunk = bytes(data[start:start + CTR_CHUNK_SIZE])
            blockCount = (len(chunk) + AES_BLOCK_SIZE - 1) // AES_BLOCK_SIZE
            counterBlocks = b''.join(
                ((counter + i) & ((1 << 128) - 1)).to_bytes(AES_BLOCK_SIZE, 'little') for i in range(blockCount)
            )
            keystream = encryptor.update(counterBlocks)[:len(chunk)]
            counter += blockCount

            mixed = int.from_bytes(chunk, 'little') ^ int.from_bytes(keystream, 'little')
            out.extend(mixed.to_bytes(len(chunk), 'little'))

        encryptor.finalize()
        return bytes(out)

    def encrypt(self, data, password, checkByte=None):
        salt = os.urandom(self.saltLength)
        encryptionKey, macKey, verifier = self._deriveKeys(password, salt)

        ciphertext = self._ctrTransform(encryptionKey, data)
        return salt + verifier + ciphertext + self._authenticate(macKey, ciphertext)

    def decrypt(self, data, password, checkByte=None):
        if len(data) < self.overhead:
            raise CorruptEntryError("AES encrypted entry is shorter than its salt, verifier and authentication code")

        data = bytes(data)
        salt = data[:self.saltLength]
        verifier = data[self.saltLength:self.saltLength + PASSWORD_VERIFIER_LENGTH]
        ciphertext = data[self.saltLength + PASSWORD_VERIFIER_LENGTH:-AUTHENTICATION_CODE_LENGTH]
        authenticationCode = data[-AUTHENTICATION_CODE_LENGTH:]

        encryptionKey, macKey, expectedVerifier = self._deriveKeys(password, salt)
        if not constant_time.bytes_eq(verifier, expectedVerifier):
            raise WrongPasswordError("Wrong password")

        if not constant_time.bytes_eq(authenticationCode, self._authenticate(macKey, ciphertext)):
            raise WrongPasswordError("Authentication failed: wrong password or tampered entry data")

        return self._ctrTransform(encryptionKey, ciphertext)
