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
Outward interfaces of the archive engine.

Byte-level operations (compress, decompress, inspect) never touch the
filesystem; gatherFromPaths/scatterToDirectory and the file-level helpers
(compressPaths, decompressFile, getZipInfo) do.
"""

from typing import Iterable, List

from zipkit.Codec import Payload
from zipkit.Errors import OutputExistsError, PathNotFoundError
from zipkit.FileSystems import FileSystem, LocalFileSystem
from zipkit.Kernel import getLogger
from zipkit.Projection import gather, scatter
from zipkit.Reader import ArchiveReader
from zipkit.Settings import ArchiveOptions, ExtractionOptions
from zipkit.Summary import ArchiveMetadata, summarize
from zipkit.Writer import writeArchive

logger = getLogger(__name__)


def compress(payloads: Iterable[Payload], options: ArchiveOptions = None) -> bytes:
    return writeArchive(payloads, options)


def decompress(data, options: ExtractionOptions = None) -> List[Payload]:
    """Decode every non-directory entry of an archive, in archive order"""
    options = options or ExtractionOptions()
    return list(ArchiveReader.open(data).iterPayloads(options.password))


def inspect(data, options: ExtractionOptions = None) -> ArchiveMetadata:
    # Nothing is decrypted, so the password in options is not needed
    return summarize(ArchiveReader.open(data))


def gatherFromPaths(paths: Iterable[str], fileSystem: FileSystem = None) -> List[Payload]:
    return gather(paths, fileSystem)


def scatterToDirectory(payloads: Iterable[Payload], outputDir: str, options: ExtractionOptions = None,
                       fileSystem: FileSystem = None) -> List[str]:
    return scatter(payloads, outputDir, options, fileSystem)


def compressPaths(inputs: Iterable[str], output: str, options: ArchiveOptions = None, overwrite: bool = False,
                  fileSystem: FileSystem = None) -> int:
    """
    Gather inputs, compress them and write the archive to output.

    Returns:
        int: Number of entries written

    Raises:
        OutputExistsError: output exists and overwrite is False
        PathNotFoundError: An input does not exist
    """
    fs = fileSystem or LocalFileSystem()

    if fs.exists(output) and not overwrite:
        raise OutputExistsError(f"Output file already exists: {output}", path=output)

    payloads = gather(inputs, fs)
    data = compress(payloads, options)

    outputDir = fs.dirName(fs.absPath(output))
    fs.makeDirs(outputDir)
    fs.writeBytes(output, data)

    logger.info(f"Compressed {len(payloads)} entries into {output} ({len(data)} bytes)")
    return len(payloads)


def _readArchiveFile(fs, path):
    if not fs.isFile(path):
        raise PathNotFoundError(f"Archive not found: {path}", path=path)
    return fs.readBytes(path)


def decompressFile(inputPath: str, outputDir: str, options: ExtractionOptions = None,
                   fileSystem: FileSystem = None) -> List[str]:
    """
    Extract an archive file into outputDir. Entries are decoded lazily, one at a time.

    Returns:
        list: Entry names written (existing files skipped under the overwrite policy are excluded)
    """
    fs = fileSystem or LocalFileSystem()
    options = options or ExtractionOptions()

    reader = ArchiveReader.open(_readArchiveFile(fs, inputPath))
    written = scatter(reader.iterPayloads(options.password), outputDir, options, fs)

    logger.info(f"Extracted {len(written)} files from {inputPath} into {outputDir}")
    return written


def getZipInfo(inputPath: str, fileSystem: FileSystem = None) -> ArchiveMetadata:
    fs = fileSystem or LocalFileSystem()
    return inspect(_readArchiveFile(fs, inputPath))
