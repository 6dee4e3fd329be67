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

from dataclasses import dataclass
from typing import List, Optional

from zipkit.Reader import ArchiveEntryMetadata, ArchiveReader
from zipkit.Utils import decodeText, formatRatio


@dataclass(frozen=True)
class ArchiveMetadata:
    """Archive-level totals, computed over non-directory entries"""
    entries: List[ArchiveEntryMetadata]
    totalUncompressedSize: int
    totalCompressedSize: int
    archiveComment: Optional[str] = None

    @property
    def compressionRatio(self) -> float:
        # An empty archive reports 0 instead of dividing by zero
        if self.totalUncompressedSize == 0:
            return 0.0
        return 1 - self.totalCompressedSize / self.totalUncompressedSize

    @property
    def files(self) -> List[ArchiveEntryMetadata]:
        return [entry for entry in self.entries if not entry.isDirectory]

    @property
    def formattedRatio(self) -> str:
        return formatRatio(self.compressionRatio, self.totalUncompressedSize)


def summarize(reader: ArchiveReader) -> ArchiveMetadata:
    entries = reader.listEntries()
    files = [entry for entry in entries if not entry.isDirectory]

    return ArchiveMetadata(
        entries=entries,
        totalUncompressedSize=sum(entry.uncompressedSize for entry in files),
        totalCompressedSize=sum(entry.compressedSize for entry in files),
        archiveComment=decodeText(reader.comment) if reader.comment else None,
    )
