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

from dataclasses import dataclass, field
from typing import Optional

from zipkit.Errors import UnsupportedEncryptionStrengthError
from zipkit.Kernel import getLogger
from zipkit.Utils import getEnv

MIN_COMPRESSION_LEVEL = 0
MAX_COMPRESSION_LEVEL = 9

# Strength tiers: 1 = AES-128, 2 = AES-192, 3 = AES-256
ENCRYPTION_STRENGTHS = (1, 2, 3)

DEFAULT_COMPRESSION_LEVEL = getEnv('ZIPKIT_COMPRESSION_LEVEL', 5)
DEFAULT_ENCRYPTION_STRENGTH = getEnv('ZIPKIT_ENCRYPTION_STRENGTH', 3)
DEFAULT_WORKERS = getEnv('ZIPKIT_WORKERS', 1)

# Archive and entry comments are stored with a 16-bit length
MAX_COMMENT_LENGTH = 0xFFFF

# A comment holding this signature would be mistaken for the end of central directory record
END_OF_CENTRAL_DIR_MARKER = b'PK\x05\x06'

logger = getLogger(__name__)


def clampLevel(level):
    """
    Clamp a compression level into [0, 9]. Out-of-range values are corrected, not rejected.
    """
    if level is None:
        level = DEFAULT_COMPRESSION_LEVEL

    level = int(level)
    clamped = max(MIN_COMPRESSION_LEVEL, min(MAX_COMPRESSION_LEVEL, level))
    if clamped != level:
        logger.debug(f"Compression level {level} clamped to {clamped}")
    return clamped


def validateEncryptionStrength(strength):
    if strength not in ENCRYPTION_STRENGTHS:
        raise UnsupportedEncryptionStrengthError(
            f"Unsupported encryption strength: {strength} (expected one of {ENCRYPTION_STRENGTHS})"
        )
    return strength


@dataclass
class ArchiveOptions:
    """Options for building an archive"""
    level: int = DEFAULT_COMPRESSION_LEVEL
    password: Optional[str] = field(default=None, repr=False)
    encryptionStrength: Optional[int] = None
    comment: Optional[str] = None
    zipCrypto: bool = False  # Traditional PKWARE encryption instead of AES
    workers: int = DEFAULT_WORKERS  # Threads used to encode entries

    def __post_init__(self):
        self.level = clampLevel(self.level)

        if self.encryptionStrength is not None:
            validateEncryptionStrength(self.encryptionStrength)

        if self.comment is not None:
            commentBytes = self.comment.encode('utf-8')
            if len(commentBytes) > MAX_COMMENT_LENGTH:
                raise ValueError(f"Archive comment exceeds {MAX_COMMENT_LENGTH} bytes")
            if END_OF_CENTRAL_DIR_MARKER in commentBytes:
                raise ValueError("Archive comment must not contain the end of central directory signature")

        self.workers = max(1, int(self.workers or 1))

    @property
    def isEncrypted(self) -> bool:
        return bool(self.password)

    @property
    def effectiveStrength(self) -> int:
        """Strength actually used when a password is set"""
        if self.encryptionStrength is not None:
            return self.encryptionStrength
        return validateEncryptionStrength(DEFAULT_ENCRYPTION_STRENGTH)


@dataclass
class ExtractionOptions:
    """Options for reading and extracting an archive"""
    password: Optional[str] = field(default=None, repr=False)
    overwriteExisting: bool = False
    createMissingDirectories: bool = True
