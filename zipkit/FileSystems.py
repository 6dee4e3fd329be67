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
FileSystem abstraction for Projection.py

Gather and scatter only talk to a FileSystem, so they can be exercised
against any backend. LocalFileSystem wraps os.* calls.
"""

import os
import stat as _stat

from dataclasses import dataclass
from typing import List, Optional, Protocol

from zipkit.Kernel import getLogger

logger = getLogger(__name__)


@dataclass
class Stat:
    """File/directory metadata"""
    size: int
    mtime: Optional[float]
    isDir: bool


class FileSystem(Protocol):
    """FileSystem protocol that all implementations must follow"""

    def exists(self, path: str) -> bool:
        ...

    def isFile(self, path: str) -> bool:
        ...

    def isDir(self, path: str) -> bool:
        ...

    def stat(self, path: str) -> Stat:
        ...

    def listDir(self, path: str) -> List[str]:
        ...  # Child names, sorted

    def realPath(self, path: str) -> str:
        ...  # Canonical path used to detect symlink cycles

    def readBytes(self, path: str) -> bytes:
        ...

    def writeBytes(self, path: str, data: bytes) -> None:
        ...

    def makeDirs(self, path: str) -> None:
        ...

    # Path operations (FS-specific)
    def joinPath(self, parent: str, name: str) -> str:
        ...

    def relPath(self, path: str, base: str) -> str:
        ...

    def normPath(self, path: str) -> str:
        ...

    def absPath(self, path: str) -> str:
        ...

    def baseName(self, path: str) -> str:
        ...

    def dirName(self, path: str) -> str:
        ...


class LocalFileSystem:
    """
    Local filesystem backend.

    Wraps os.* calls to provide the FileSystem interface.
    """

    def stat(self, path: str) -> Stat:
        """
        Get file/directory metadata.

        Args:
            path: Path to file or directory

        Returns:
            Stat object with size, mtime, isDir
        """
        # A single stat() call instead of os.path.isdir() + getsize() + getmtime()
        st = os.stat(path)
        isDir = _stat.S_ISDIR(st.st_mode)
        return Stat(size=int(st.st_size), mtime=float(st.st_mtime), isDir=isDir)

    def exists(self, path: str) -> bool:
        """Check if path exists"""
        return os.path.exists(path)

    def isFile(self, path: str) -> bool:
        """Check if path is a file"""
        return os.path.isfile(path)

    def isDir(self, path: str) -> bool:
        """Check if path is a directory"""
        return os.path.isdir(path)

    def listDir(self, path: str) -> List[str]:
        return sorted(os.listdir(path))

    def realPath(self, path: str) -> str:
        return os.path.realpath(path)

    def readBytes(self, path: str) -> bytes:
        with open(path, 'rb') as f:
            return f.read()

    def writeBytes(self, path: str, data: bytes) -> None:
        with open(path, 'wb') as f:
            f.write(data)

    def makeDirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def joinPath(self, parent: str, name: str) -> str:
        """Join paths using OS-specific separator"""
        return os.path.join(parent, name)

    def relPath(self, path: str, base: str) -> str:
        """Get relative path from base to path"""
        rel = os.path.relpath(path, base)
        return "" if rel == "." else rel

    def normPath(self, path: str) -> str:
        """Normalize path"""
        return os.path.normpath(path)

    def absPath(self, path: str) -> str:
        return os.path.abspath(path)

    def baseName(self, path: str) -> str:
        """Get base name of path"""
        return os.path.basename(path)

    def dirName(self, path: str) -> str:
        """Get directory name of path"""
        return os.path.dirname(path)
