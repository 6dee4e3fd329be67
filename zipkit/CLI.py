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

import argparse
import json
import os
import logging
import logging.config
import platform

from zipkit.Engine import compressPaths, decompressFile, getZipInfo
from zipkit.Errors import ArchiveError
from zipkit.Kernel import PUBLIC_VERSION, LOG_LEVEL_MAPPING, ZipKitEvent, configureGlobalLogLevel, getLogger
from zipkit.Settings import DEFAULT_WORKERS, ENCRYPTION_STRENGTHS, ArchiveOptions, ExtractionOptions
from zipkit.Utils import flushPrint, formatSize, formatTimestamp, getEnv

logger = getLogger(__name__)


def configureLogging(logLevel):
    """Configure logging level using Kernel's centralized configuration or a config file

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. ZIPKIT_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name (DEBUG, INFO, WARNING, ERROR) or a path
    to a logging configuration JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    # Priority: CLI argument > environment variable > None (no change)
    if logLevel is None:
        logLevel = getEnv('ZIPKIT_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    # Check if logLevel is a file path
    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def showVersion():
    flushPrint(f"ZipKit v{PUBLIC_VERSION}")
    uname = platform.uname()
    flushPrint(f"Architecture: {uname.system} {uname.release} {uname.machine}")


def configureCLIParser():
    """Build the argument parser with compress/decompress/info subcommands

    Returns:
        tuple: (parser, globalsParent)
    """

    def validatePositive(valueStr):
        """Validate positive integer values for argparse"""
        try:
            value = int(valueStr)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid number: {valueStr}")
        if value < 1:
            raise argparse.ArgumentTypeError(f"{value} must be at least 1")
        return value

    def validateLevel(levelStr):
        # Out-of-range levels are clamped later, only the type is checked here
        try:
            return int(levelStr)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid compression level: {levelStr}")

    def validateLogLevel(logLevel):
        """Validate log level for argparse"""
        # Allow file paths (they'll be validated later)
        if os.path.exists(logLevel):
            return logLevel

        validLevels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if logLevel.upper() not in validLevels:
            raise argparse.ArgumentTypeError(
                f"Invalid log level '{logLevel}'. Valid levels are: {', '.join(validLevels)}"
            )
        return logLevel.upper()

    # === 1) Global parameters in a parent parser ===
    globalsParent = argparse.ArgumentParser(add_help=False)
    globalsParent.add_argument("--version", action="store_true", help="Show version information")
    globalsParent.add_argument(
        "--log-level",
        type=validateLogLevel,
        help="Set logging level (DEBUG, INFO, WARNING, ERROR) or path to logging config JSON file",
        metavar="LEVEL_OR_FILE",
        dest="logLevel"
    )
    globalsParent.add_argument(
        "--verbose", "-v", action="store_true", default=False, help="Print every entry as it is processed"
    )

    # === 2) Main parser + subparsers; all inherit from globalsParent ===
    parser = argparse.ArgumentParser(
        prog="zipkit",
        description="ZipKit creates, extracts and inspects ZIP archives.",
        parents=[globalsParent],
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    compressParser = subparsers.add_parser(
        'compress', help='Compress files and folders into a ZIP archive', parents=[globalsParent]
    )
    compressParser.add_argument("inputs", metavar="INPUT", nargs='+', help="Files or folders to compress")
    compressParser.add_argument("--output", "-o", metavar="ZIP_FILE", required=True, help="Output archive path")
    compressParser.add_argument(
        "--level", type=validateLevel, default=None, help="Compression level 0-9 (out-of-range values are clamped)"
    )
    compressParser.add_argument("--password", metavar="PASSWORD", help="Encrypt entries with this password")
    compressParser.add_argument(
        "--encryption-strength",
        type=int,
        choices=ENCRYPTION_STRENGTHS,
        help="AES strength: 1 = AES-128, 2 = AES-192, 3 = AES-256",
        dest="encryptionStrength"
    )
    compressParser.add_argument(
        "--zip-crypto",
        action="store_true",
        default=False,
        help="Use traditional PKWARE encryption instead of AES (weak, for legacy tools)",
        dest="zipCrypto"
    )
    compressParser.add_argument("--comment", help="Archive comment")
    compressParser.add_argument(
        "--overwrite", action="store_true", default=False, help="Replace the output archive if it exists"
    )
    compressParser.add_argument(
        "--workers", type=validatePositive, default=DEFAULT_WORKERS, help="Threads used to encode entries"
    )

    decompressParser = subparsers.add_parser(
        'decompress', help='Extract a ZIP archive into a folder', parents=[globalsParent]
    )
    decompressParser.add_argument("input", metavar="ZIP_FILE", help="Archive to extract")
    decompressParser.add_argument("--output", "-o", metavar="DIR", required=True, help="Output folder")
    decompressParser.add_argument("--password", metavar="PASSWORD", help="Password for encrypted entries")
    decompressParser.add_argument(
        "--overwrite", action="store_true", default=False, help="Overwrite files that already exist"
    )
    decompressParser.add_argument(
        "--no-create-directories",
        action="store_false",
        default=True,
        help="Fail instead of creating a missing output folder",
        dest="createDirectories"
    )

    infoParser = subparsers.add_parser('info', help='Show archive information', parents=[globalsParent])
    infoParser.add_argument("input", metavar="ZIP_FILE", help="Archive to inspect")

    return parser, globalsParent


def _printEncoded(name, size, compressedSize, **kwargs):
    flushPrint(f"  adding: {name} ({formatSize(size)} -> {formatSize(compressedSize)})")


def _printExtracted(name, path, **kwargs):
    flushPrint(f"  extracting: {name}")


def _printSkipped(name, path, **kwargs):
    flushPrint(f"  skipped (exists): {name}")


def runCompress(args):
    try:
        options = ArchiveOptions(
            level=args.level,
            password=args.password,
            encryptionStrength=args.encryptionStrength,
            comment=args.comment,
            zipCrypto=args.zipCrypto,
            workers=args.workers,
        )
        count = compressPaths(args.inputs, args.output, options, overwrite=args.overwrite)
    except (ArchiveError, ValueError) as e:
        flushPrint(f"Compression failed: {e}")
        return 1

    flushPrint(f"Compression completed. Created {args.output} file containing {count} files.")
    return 0


def runDecompress(args):
    try:
        options = ExtractionOptions(
            password=args.password,
            overwriteExisting=args.overwrite,
            createMissingDirectories=args.createDirectories,
        )
        written = decompressFile(args.input, args.output, options)
    except ArchiveError as e:
        flushPrint(f"Decompression failed: {e}")
        return 1

    flushPrint(f"Decompression completed. Extracted {len(written)} files to {args.output}")
    return 0


def runInfo(args):
    try:
        metadata = getZipInfo(args.input)
    except ArchiveError as e:
        flushPrint(f"Failed to get ZIP information: {e}")
        return 1

    flushPrint(f'ZIP file "{os.path.basename(args.input)}" information overview:')
    flushPrint(f"Total files: {len(metadata.files)}")
    flushPrint(f"Total size: {formatSize(metadata.totalUncompressedSize)}")
    flushPrint(f"Compressed size: {formatSize(metadata.totalCompressedSize)}")
    flushPrint(f"Compression ratio: {metadata.formattedRatio}")
    if metadata.archiveComment:
        flushPrint(f"Comment: {metadata.archiveComment}")

    flushPrint("\nFile details:")
    for entry in metadata.files:
        encrypted = ", Encrypted" if entry.isEncrypted else ""
        flushPrint(
            f"- {entry.filename}: Original size={formatSize(entry.uncompressedSize)}, "
            f"Compressed={formatSize(entry.compressedSize)}, "
            f"Modified date={formatTimestamp(entry.lastModified)}{encrypted}"
        )
    return 0


COMMANDS = {
    'compress': runCompress,
    'decompress': runDecompress,
    'info': runInfo,
}


def main(argv=None):
    """
    Parse arguments and run one command.

    Returns:
        int: Exit code (0 for success, 1 for error, 2 for usage errors)
    """
    parser, _ = configureCLIParser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 2

    configureLogging(args.logLevel)

    if args.version:
        showVersion()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    observers = []
    if args.verbose:
        observers = [
            (ZipKitEvent.entryEncoded, _printEncoded),
            (ZipKitEvent.entryExtracted, _printExtracted),
            (ZipKitEvent.entrySkipped, _printSkipped),
        ]
        for event, observer in observers:
            event.subscribe(observer)

    try:
        return COMMANDS[args.command](args)
    except Exception as e:
        logger.exception(f"Unexpected error running {args.command}: {e}")
        flushPrint(f"Error: {e}")
        return 1
    finally:
        for event, observer in observers:
            event.unsubscribe(observer)
