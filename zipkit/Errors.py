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

# =============================================================================
# Archive Exception Classes
# =============================================================================


class ArchiveError(Exception):
    """Base exception for archive-related errors"""

    def __init__(self, message, path=None, name=None):
        super().__init__(message)
        self.path = path  # Filesystem path involved, if any
        self.name = name  # Archive entry name involved, if any


class PathNotFoundError(ArchiveError):
    """Raised when an input path does not exist"""
    pass


class OutputNotADirectoryError(ArchiveError):
    """Raised when the extraction target exists but is not a directory"""
    pass


class OutputDirectoryMissingError(ArchiveError):
    """Raised when the extraction target is absent and may not be created"""
    pass


class OutputExistsError(ArchiveError):
    """Raised when an output archive already exists and overwrite is disabled"""
    pass


class EmptyNameError(ArchiveError):
    """Raised when a payload to be archived has an empty name"""
    pass


class NotAZipError(ArchiveError):
    """Raised when a buffer is not a ZIP archive, or is truncated/inconsistent"""
    pass


class WrongPasswordError(ArchiveError):
    """Raised when an encrypted entry is read without the correct password"""
    pass


class CorruptEntryError(ArchiveError):
    """Raised when an entry's data does not match its stored size or checksum"""
    pass


class UnsupportedEncryptionStrengthError(ArchiveError):
    """Raised for encryption strengths/schemes this engine cannot handle"""
    pass


class UnsupportedCompressionError(ArchiveError):
    """Raised for compression methods other than stored and deflated"""
    pass


class UnsafePathError(ArchiveError):
    """Raised when an entry name would be extracted outside the output directory"""
    pass


class PathConflictError(ArchiveError):
    """Raised when an entry collides with an existing file or directory of the other kind"""
    pass
