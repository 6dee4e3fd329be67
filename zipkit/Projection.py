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
Filesystem projection: gather files into payloads, scatter payloads into files.

Both directions go through a FileSystem (LocalFileSystem by default).
"""

import re

from dataclasses import dataclass
from typing import Iterable, List, Optional

from zipkit.Codec import Payload
from zipkit.Errors import (
    OutputDirectoryMissingError, OutputNotADirectoryError, PathConflictError, PathNotFoundError, UnsafePathError
)
from zipkit.FileSystems import FileSystem, LocalFileSystem
from zipkit.Kernel import ZipKitEvent, getLogger
from zipkit.Settings import ExtractionOptions
from zipkit.Utils import toLocalDatetime

logger = getLogger(__name__)

WINDOWS_DRIVE_PATTERN = re.compile(r'^[A-Za-z]:')


@dataclass(frozen=True)
class FileRecord:
    """One file found by walkFiles()"""
    path: str  # Filesystem path
    relativePath: str  # '/' separated, relative to the walked directory
    size: int
    mtime: Optional[float]


def walkFiles(root: str, fileSystem: FileSystem = None) -> List[FileRecord]:
    """
    Depth-first walk of a directory, children in sorted order.

    Uses an explicit stack of child iterators. Each real directory is entered
    once, so symlink cycles are not followed twice.
    """
    fs = fileSystem or LocalFileSystem()

    records = []
    visited = {fs.realPath(root)}
    stack = [(root, iter(fs.listDir(root)))]

    while stack:
        directory, children = stack[-1]
        name = next(children, None)
        if name is None:
            stack.pop()
            continue

        path = fs.joinPath(directory, name)
        if fs.isDir(path):
            realPath = fs.realPath(path)
            if realPath in visited:
                logger.warning(f"Skipping directory already visited (symlink cycle): {path}")
                continue
            visited.add(realPath)
            stack.append((path, iter(fs.listDir(path))))
        elif fs.isFile(path):
            st = fs.stat(path)
            relativePath = '/'.join(_splitPath(fs.relPath(path, root)))
            records.append(FileRecord(path=path, relativePath=relativePath, size=st.size, mtime=st.mtime))
        else:
            logger.debug(f"Skipping non-regular file: {path}")

    return records


def _splitPath(path):
    return [part for part in re.split(r'[\\/]', path) if part]


def gather(inputPaths: Iterable[str], fileSystem: FileSystem = None) -> List[Payload]:
    """
    Turn filesystem paths into payloads.

    A file becomes one payload named by its base name. A directory contributes
    every descendant file, named "<directory base name>/<relative path>".
    Inputs are processed in the given order; names are not deduplicated.

    Raises:
        PathNotFoundError: If an input path does not exist
    """
    fs = fileSystem or LocalFileSystem()
    payloads = []

    for inputPath in inputPaths:
        if not fs.exists(inputPath):
            raise PathNotFoundError(f"Path not found: {inputPath}", path=inputPath)

        baseName = fs.baseName(fs.normPath(fs.absPath(inputPath))) or "folder"

        if fs.isDir(inputPath):
            records = walkFiles(inputPath, fs)
            logger.debug(f"Gathered {len(records)} files from {inputPath}")
            for record in records:
                payloads.append(Payload(
                    name=f"{baseName}/{record.relativePath}",
                    data=fs.readBytes(record.path),
                    lastModified=toLocalDatetime(record.mtime),
                ))
        else:
            st = fs.stat(inputPath)
            payloads.append(Payload(
                name=baseName,
                data=fs.readBytes(inputPath),
                lastModified=toLocalDatetime(st.mtime),
            ))

    return payloads


def _resolveDestination(fs: FileSystem, root: str, name: str) -> str:
    """Map an entry name to a path under root, rejecting names that would escape it"""
    if name.startswith(('/', '\\')) or WINDOWS_DRIVE_PATTERN.match(name):
        raise UnsafePathError(f"Refusing absolute entry name: {name}", name=name)

    parts = [part for part in _splitPath(name) if part != '.']
    if '..' in parts:
        raise UnsafePathError(f"Refusing entry name with parent references: {name}", name=name)
    if not parts:
        raise UnsafePathError(f"Entry name has no file component: {name!r}", name=name)

    destination = root
    for part in parts:
        destination = fs.joinPath(destination, part)
    destination = fs.normPath(destination)

    relative = fs.relPath(destination, root)
    if not relative or _splitPath(relative)[0] == '..':
        raise UnsafePathError(f"Entry {name} resolves outside {root}", name=name)

    return destination


def scatter(payloads: Iterable[Payload], outputDir: str, options: ExtractionOptions = None,
            fileSystem: FileSystem = None) -> List[str]:
    """
    Write payloads as files under outputDir.

    Parent directories are always created. Existing files are skipped (logged and
    announced on ZipKitEvent.entrySkipped) unless overwriteExisting is set. The
    first failing entry aborts the whole scatter; files already written are kept.

    Returns:
        list: Names of the entries actually written, in payload order

    Raises:
        OutputNotADirectoryError: outputDir exists but is not a directory
        OutputDirectoryMissingError: outputDir is absent and createMissingDirectories is off
        UnsafePathError: An entry name would land outside outputDir
        PathConflictError: An entry collides with an existing directory, or a parent path is a file
    """
    fs = fileSystem or LocalFileSystem()
    options = options or ExtractionOptions()

    if fs.exists(outputDir):
        if not fs.isDir(outputDir):
            raise OutputNotADirectoryError(f"Output path is not a directory: {outputDir}", path=outputDir)
    elif not options.createMissingDirectories:
        raise OutputDirectoryMissingError(f"Output directory does not exist: {outputDir}", path=outputDir)
    else:
        logger.debug(f"Creating output directory: {outputDir}")
        fs.makeDirs(outputDir)

    root = fs.normPath(fs.absPath(outputDir))
    written = []

    for payload in payloads:
        if payload.isDirectory or payload.data is None:
            continue

        destination = _resolveDestination(fs, root, payload.name)

        if fs.isDir(destination):
            raise PathConflictError(
                f"Cannot extract {payload.name}: {destination} is a directory", path=destination, name=payload.name
            )

        if fs.exists(destination) and not options.overwriteExisting:
            logger.warning(f"Skipping existing file: {destination}")
            ZipKitEvent.entrySkipped.trigger(name=payload.name, path=destination)
            continue

        try:
            fs.makeDirs(fs.dirName(destination))
            fs.writeBytes(destination, payload.data)
        except (FileExistsError, NotADirectoryError, IsADirectoryError) as e:
            # A parent component of the destination exists as a file
            raise PathConflictError(
                f"Cannot extract {payload.name}: a parent of {destination} is not a directory",
                path=destination,
                name=payload.name
            ) from e

        written.append(payload.name)

        ZipKitEvent.entryExtracted.trigger(name=payload.name, path=destination)

    return written
