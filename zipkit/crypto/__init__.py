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

from abc import ABC, abstractmethod
from enum import Enum

from zipkit.Kernel import getLogger

logger = getLogger(__name__)


class EncryptionMethod(Enum):
    NONE = 'none'
    ZIP_CRYPTO = 'zipcrypto'  # Traditional PKWARE encryption
    AES = 'aes'  # WinZip AES (AE-1 / AE-2)


class ZipCipher(ABC):
    """Abstract base class for per-entry password ciphers"""

    @abstractmethod
    def getName(self):
        """Get cipher name"""
        pass

    @abstractmethod
    def encrypt(self, data, password, checkByte):
        """Encrypt entry data, returns the stored bytes (headers/trailers included)"""
        pass

    @abstractmethod
    def decrypt(self, data, password, checkByte):
        """Decrypt stored bytes, raises WrongPasswordError if the password is rejected"""
        pass


def encodePassword(password):
    if isinstance(password, bytes):
        return password
    return password.encode('utf-8')


def createCipher(method, strength=None):
    """Create the cipher for an encryption method (strength only applies to AES)"""
    if method == EncryptionMethod.ZIP_CRYPTO:
        from zipkit.crypto.ZipCrypto import ZipCryptoCipher
        return ZipCryptoCipher()

    if method == EncryptionMethod.AES:
        from zipkit.crypto.Cryptography import WinZipAesCipher
        return WinZipAesCipher(strength)

    raise ValueError(f"No cipher for encryption method: {method}")
