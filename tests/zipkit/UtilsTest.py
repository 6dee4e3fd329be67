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
import unittest
from unittest.mock import patch

from zipkit.Utils import (
    ONE_GB, ONE_KB, ONE_MB, decodeText, formatRatio, formatSize, formatTimestamp, getEnv, loadEnvFile
)

from tests.ZipKitTestBase import ZipKitTestBase


class TestFormatSize(unittest.TestCase):
    """Test cases for the formatSize utility function."""

    def testBytes(self):
        self.assertEqual(formatSize(0), '0 B')
        self.assertEqual(formatSize(1), '1 B')
        self.assertEqual(formatSize(1023), '1023 B')

    def testBinaryPrefixes(self):
        testCases = [
            (ONE_KB, '1.00 KB'),
            (ONE_KB * 1.5, '1.50 KB'),
            (ONE_MB * 2, '2.00 MB'),
            (ONE_GB * 3, '3.00 GB'),
        ]
        for size, expected in testCases:
            with self.subTest(size=size):
                self.assertEqual(formatSize(size), expected)

    def testCustomDecimalPlaces(self):
        self.assertEqual(formatSize(ONE_MB * 1.234, decimal=1), '1.2 MB')
        self.assertEqual(formatSize(ONE_MB * 1.234, decimal=0), '1 MB')


class TestFormatRatio(unittest.TestCase):

    def testZeroTotalIsZeroPercent(self):
        self.assertEqual(formatRatio(0.0, 0), '0%')
        self.assertEqual(formatRatio(0.5, 0), '0%')

    def testPercentage(self):
        self.assertEqual(formatRatio(0.5, 100), '50.00%')
        self.assertEqual(formatRatio(0.125, 100), '12.50%')


class TestFormatTimestamp(unittest.TestCase):

    def testFormatting(self):
        self.assertEqual(formatTimestamp(datetime.datetime(2024, 1, 2, 3, 4, 6)), '2024-01-02 03:04:06')
        self.assertEqual(formatTimestamp(None), '-')


class TestDecodeText(unittest.TestCase):

    def testUtf8(self):
        self.assertEqual(decodeText('Résumé'.encode('utf-8')), 'Résumé')

    def testPassThrough(self):
        self.assertIsNone(decodeText(None))
        self.assertEqual(decodeText('already text'), 'already text')

    def testNonUtf8AlwaysDecodes(self):
        result = decodeText(b'legacy bytes caf\x82 na\x8bve')
        self.assertIsInstance(result, str)
        self.assertIn('legacy bytes', result)


class TestGetEnv(unittest.TestCase):

    def testTypeFollowsDefault(self):
        with patch.dict(os.environ, {'ZIPKIT_TEST_INT': '7', 'ZIPKIT_TEST_BOOL': 'True', 'ZIPKIT_TEST_STR': 'abc'}):
            self.assertEqual(getEnv('ZIPKIT_TEST_INT', 1), 7)
            self.assertIs(getEnv('ZIPKIT_TEST_BOOL', False), True)
            self.assertEqual(getEnv('ZIPKIT_TEST_STR', 'x'), 'abc')
            self.assertEqual(getEnv('ZIPKIT_TEST_STR', None), 'abc')

    def testMissingAndInvalid(self):
        with patch.dict(os.environ, {'ZIPKIT_TEST_INT': 'seven'}):
            self.assertEqual(getEnv('ZIPKIT_TEST_INT', 3), 3)
        self.assertEqual(getEnv('ZIPKIT_TEST_NOT_SET_ANYWHERE', 5), 5)


class TestLoadEnvFile(ZipKitTestBase):

    def testLoadsWithoutOverriding(self):
        envFile = self.createFile('.env', '\n'.join([
            '# comment line',
            'ZIPKIT_TEST_A=1',
            'ZIPKIT_TEST_B="quoted value"',
            "ZIPKIT_TEST_C='single'",
            'not a pair',
            '=missingKey',
            'ZIPKIT_TEST_EXISTING=fromFile',
            '',
        ]))

        with patch.dict(os.environ, {'ZIPKIT_TEST_EXISTING': 'fromEnv'}):
            self.assertEqual(loadEnvFile(envFile), 3)
            self.assertEqual(os.environ['ZIPKIT_TEST_A'], '1')
            self.assertEqual(os.environ['ZIPKIT_TEST_B'], 'quoted value')
            self.assertEqual(os.environ['ZIPKIT_TEST_C'], 'single')
            self.assertEqual(os.environ['ZIPKIT_TEST_EXISTING'], 'fromEnv')

        self.assertNotIn('ZIPKIT_TEST_A', os.environ)

    def testMissingFile(self):
        self.assertEqual(loadEnvFile(os.path.join(self.tempDir, 'nothing.env')), 0)


if __name__ == '__main__':
    unittest.main()
