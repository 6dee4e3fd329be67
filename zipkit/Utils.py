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

import os
import datetime

import bitmath
import chardet

from zipkit.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


# flush is required when output is piped into another tool.
def flushPrint(text):
    try:
        print(text, flush=True)
    except UnicodeEncodeError as e:
        logger.debug(f"UnicodeEncodeError during print, using replacement characters: {e}")
        print(text.encode('ascii', errors='replace').decode('ascii'), flush=True)


def formatSize(size, decimal=2):
    """
    Format a byte count with binary prefixes, e.g. 512 B, 1.50 KB, 2.00 MB.
    """
    if size < ONE_KB:
        return f'{int(size)} B'

    sizeStr = bitmath.Byte(size).best_prefix(system=bitmath.NIST).format("{value:.%df} {unit}" % decimal)
    return sizeStr.replace('iB', 'B')


def formatRatio(ratio, totalSize):
    """
    Format a compression ratio (0.0 - 1.0) as a percentage.

    A zero total is reported as exactly "0%" rather than a computed value.
    """
    if totalSize <= 0:
        return "0%"
    return f"{ratio * 100:.2f}%"


def formatTimestamp(timestamp):
    if timestamp is None:
        return "-"
    return timestamp.strftime('%Y-%m-%d %H:%M:%S')


def decodeText(data, encodings=None):
    """
    Decode archive text (comments) to str.

    UTF-8 is tried first, then the encoding detected by chardet, then the
    given fallbacks. CP437 is always the last resort since it cannot fail.
    """
    if data is None:
        return None

    if isinstance(data, str):
        return data

    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        pass

    candidates = []
    detected = chardet.detect(data)
    if detected.get('encoding') and detected.get('confidence', 0) > 0.5:
        candidates.append(detected['encoding'])
    candidates.extend(encodings or [])

    for encoding in candidates:
        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.debug(f"Failed to decode text as {encoding}: {e}")

    return data.decode('cp437')


def toLocalDatetime(timestamp):
    if timestamp is None:
        return None
    return datetime.datetime.fromtimestamp(timestamp)


# Helper functions for environment variable configuration
def getEnv(envVar, default):
    """Safely get value from environment variable with automatic type detection based on default"""
    try:
        value = os.getenv(envVar)
        if value is not None:
            if default is None:
                return value

            # Automatically detect type based on default value
            if isinstance(default, bool):
                return value == "True"
            elif isinstance(default, int):
                return int(value)
            elif isinstance(default, float):
                return float(value)
            elif isinstance(default, str):
                return str(value)
            else:
                return type(default)(value)
        return default
    except (ValueError, TypeError):
        logger.warning(f"Ignoring invalid value for {envVar}: {os.getenv(envVar)!r}")
        return default


def loadEnvFile(envFilePath=None):
    """
    Load environment variables from a .env file (default: ./.env).
    Only sets variables that are not already defined in os.environ.
    """
    if envFilePath is None:
        envFilePath = os.path.join(os.getcwd(), '.env')

    if not os.path.isfile(envFilePath):
        return 0

    loadedCount = 0
    try:
        logger.debug(f'Loading .env file from: {envFilePath}')

        with open(envFilePath, 'r', encoding='utf-8') as f:
            for lineNum, line in enumerate(f, 1):
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith('#'):
                    continue

                # Parse KEY=VALUE format
                if '=' not in line:
                    logger.warning(f'.env line {lineNum}: Invalid format (missing =): {line}')
                    continue

                key, _, value = line.partition('=')
                key = key.strip()
                value = value.strip()

                if not key:
                    logger.warning(f'.env line {lineNum}: Empty key')
                    continue

                # Remove quotes if present (both single and double)
                if (value.startswith('"') and value.endswith('"')) or \
                   (value.startswith("'") and value.endswith("'")):
                    value = value[1:-1]

                # Only set if not already in environment (environment takes precedence)
                if key not in os.environ:
                    os.environ[key] = value
                    loadedCount += 1
                else:
                    logger.debug(f'.env: Skipped {key} (already set in environment)')

        logger.debug(f'Loaded {loadedCount} environment variables from .env')

    except (OSError, UnicodeDecodeError) as e:
        logger.error(f'Unexpected error loading .env file: {e}', exc_info=True)

    return loadedCount
