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

from zipkit.Codec import Payload
from zipkit.Errors import (
    OutputDirectoryMissingError, OutputNotADirectoryError, PathConflictError, PathNotFoundError, UnsafePathError
)
from zipkit.Kernel import ZipKitEvent
from zipkit.Projection import gather, scatter, walkFiles
from zipkit.Settings import ExtractionOptions

from tests.ZipKitTestBase import ZipKitTestBase


class WalkFilesTest(ZipKitTestBase):

    def testDepthFirstSortedOrder(self):
        self.createFile('root/b.txt', 'b')
        self.createFile('root/a/z.txt', 'z')
        self.createFile('root/a/deeper/x.txt', 'x')
        self.createFile('root/c/y.txt', 'yy')
        os.makedirs(os.path.join(self.tempDir, 'root', 'emptyDir'))

        records = walkFiles(os.path.join(self.tempDir, 'root'))
        self.assertEqual(
            [r.relativePath for r in records],
            ['a/deeper/x.txt', 'a/z.txt', 'b.txt', 'c/y.txt']
        )
        self.assertEqual(records[3].size, 2)
        self.assertEqual(records[3].path, os.path.join(self.tempDir, 'root', 'c', 'y.txt'))
        self.assertIsNotNone(records[0].mtime)

    def testSymlinkCycleIsNotFollowed(self):
        root = os.path.join(self.tempDir, 'root')
        self.createFile('root/sub/file.txt', 'data')
        try:
            os.symlink(root, os.path.join(root, 'sub', 'loop'), target_is_directory=True)
        except (OSError, NotImplementedError) as e:
            self.skipTest(f"Symlinks not supported: {e}")

        with self.assertLogs('zipkit.Projection', level='WARNING'):
            records = walkFiles(root)
        self.assertEqual([r.relativePath for r in records], ['sub/file.txt'])

    def testDeepTreeDoesNotRecurse(self):
        parts = ['d'] * 200
        self.createFile('root/' + '/'.join(parts) + '/leaf.txt', 'leaf')
        records = walkFiles(os.path.join(self.tempDir, 'root'))
        self.assertEqual(len(records), 1)
        self.assertTrue(records[0].relativePath.endswith('/leaf.txt'))


class GatherTest(ZipKitTestBase):

    def testSingleFile(self):
        path = self.createFile('notes.txt', 'hello')
        payloads = gather([path])

        self.assertEqual(len(payloads), 1)
        self.assertEqual(payloads[0].name, 'notes.txt')
        self.assertEqual(payloads[0].data, b'hello')
        self.assertIsInstance(payloads[0].lastModified, datetime.datetime)

    def testDirectoryNamesArePrefixed(self):
        self.createFile('project/main.py', 'print(1)')
        self.createFile('project/pkg/util.py', 'x = 1')

        for inputPath in (os.path.join(self.tempDir, 'project'), os.path.join(self.tempDir, 'project') + os.sep):
            with self.subTest(inputPath=inputPath):
                payloads = gather([inputPath])
                self.assertEqual([p.name for p in payloads], ['project/main.py', 'project/pkg/util.py'])
                self.assertEqual(payloads[1].data, b'x = 1')

    def testRelativeInputUsesRealBaseName(self):
        self.createFile('project/main.py', 'print(1)')
        cwd = os.getcwd()
        os.chdir(os.path.join(self.tempDir, 'project'))
        try:
            payloads = gather(['.'])
        finally:
            os.chdir(cwd)
        self.assertEqual([p.name for p in payloads], ['project/main.py'])

    def testMultipleInputsKeepOrderWithoutDeduplication(self):
        fileA = self.createFile('a.txt', 'A')
        fileB = self.createFile('b.txt', 'B')
        payloads = gather([fileB, fileA, fileB])
        self.assertEqual([p.name for p in payloads], ['b.txt', 'a.txt', 'b.txt'])

    def testMissingPath(self):
        existing = self.createFile('a.txt', 'A')
        missing = os.path.join(self.tempDir, 'missing.txt')
        with self.assertRaises(PathNotFoundError) as ctx:
            gather([existing, missing])
        self.assertEqual(ctx.exception.path, missing)


class ScatterTest(ZipKitTestBase):

    def setUp(self):
        super().setUp()
        self.outputDir = os.path.join(self.tempDir, 'out')

    def testWritesNestedFiles(self):
        payloads = [
            Payload(name='top.txt', data=b'top'),
            Payload(name='nested/', data=b''),
            Payload(name='nested/deep/file.bin', data=b'\x00\x01'),
        ]
        written = scatter(payloads, self.outputDir)

        self.assertEqual(written, ['top.txt', 'nested/deep/file.bin'])
        self.assertEqual(self.readFile(os.path.join(self.outputDir, 'nested', 'deep', 'file.bin')), b'\x00\x01')

    def testOutputIsAFile(self):
        path = self.createFile('out', 'not a directory')
        with self.assertRaises(OutputNotADirectoryError):
            scatter([Payload(name='a.txt', data=b'a')], path)

    def testMissingOutputWithoutCreation(self):
        options = ExtractionOptions(createMissingDirectories=False)
        with self.assertRaises(OutputDirectoryMissingError):
            scatter([Payload(name='a.txt', data=b'a')], self.outputDir, options)
        self.assertFalse(os.path.exists(self.outputDir))

    def testExistingOutputWithoutCreation(self):
        os.makedirs(self.outputDir)
        options = ExtractionOptions(createMissingDirectories=False)
        written = scatter([Payload(name='sub/a.txt', data=b'a')], self.outputDir, options)
        self.assertEqual(written, ['sub/a.txt'])

    def testExistingFileIsSkipped(self):
        existing = self.createFile('out/keep.txt', 'original')
        skipped = []

        def onSkipped(name, path, **kwargs):
            skipped.append((name, path))

        ZipKitEvent.entrySkipped.subscribe(onSkipped)

        payloads = [Payload(name='keep.txt', data=b'replacement'), Payload(name='new.txt', data=b'new')]
        with self.assertLogs('zipkit.Projection', level='WARNING') as logs:
            written = scatter(payloads, self.outputDir)

        self.assertEqual(written, ['new.txt'])
        self.assertEqual(self.readFile(existing), b'original')
        self.assertEqual(skipped, [('keep.txt', existing)])
        self.assertTrue(any('keep.txt' in line for line in logs.output))

    def testExistingFileIsOverwritten(self):
        existing = self.createFile('out/keep.txt', 'original')
        written = scatter(
            [Payload(name='keep.txt', data=b'replacement')], self.outputDir, ExtractionOptions(overwriteExisting=True)
        )
        self.assertEqual(written, ['keep.txt'])
        self.assertEqual(self.readFile(existing), b'replacement')

    def testUnsafeNames(self):
        for name in ('../evil.txt', 'a/../../evil.txt', '/etc/evil.txt', '\\evil.txt', 'C:/evil.txt', '..\\evil.txt'):
            with self.subTest(name=name):
                with self.assertRaises(UnsafePathError):
                    scatter([Payload(name=name, data=b'evil')], self.outputDir)
        self.assertFalse(os.path.exists(os.path.join(self.tempDir, 'evil.txt')))

    def testDotSegmentsStayInside(self):
        written = scatter([Payload(name='a/./b.txt', data=b'b')], self.outputDir)
        self.assertEqual(written, ['a/./b.txt'])
        self.assertEqual(self.readFile(os.path.join(self.outputDir, 'a', 'b.txt')), b'b')

    def testFailureAbortsWithoutRollback(self):
        payloads = [
            Payload(name='first.txt', data=b'1'),
            Payload(name='../escape.txt', data=b'2'),
            Payload(name='third.txt', data=b'3'),
        ]
        with self.assertRaises(UnsafePathError):
            scatter(payloads, self.outputDir)

        self.assertTrue(os.path.exists(os.path.join(self.outputDir, 'first.txt')))
        self.assertFalse(os.path.exists(os.path.join(self.outputDir, 'third.txt')))

    def testEntryBelowAFileIsAConflict(self):
        payloads = [Payload(name='a', data=b'file'), Payload(name='a/b', data=b'child')]
        with self.assertRaises(PathConflictError) as ctx:
            scatter(payloads, self.outputDir)

        self.assertEqual(ctx.exception.name, 'a/b')
        self.assertEqual(self.readFile(os.path.join(self.outputDir, 'a')), b'file')

    def testEntryDeepBelowAFileIsAConflict(self):
        self.createFile('out/a', 'file')
        with self.assertRaises(PathConflictError):
            scatter([Payload(name='a/b/c.txt', data=b'c')], self.outputDir)

    def testEntryOverExistingDirectoryIsAConflict(self):
        os.makedirs(os.path.join(self.outputDir, 'taken'))
        for overwrite in (False, True):
            with self.subTest(overwrite=overwrite):
                with self.assertRaises(PathConflictError) as ctx:
                    scatter(
                        [Payload(name='taken', data=b'x')], self.outputDir,
                        ExtractionOptions(overwriteExisting=overwrite)
                    )
                self.assertEqual(ctx.exception.path, os.path.join(self.outputDir, 'taken'))

    def testExtractedEvents(self):
        extracted = []

        def onExtracted(name, path, **kwargs):
            extracted.append(name)

        ZipKitEvent.entryExtracted.subscribe(onExtracted)
        scatter([Payload(name='a.txt', data=b'a'), Payload(name='b/c.txt', data=b'c')], self.outputDir)
        self.assertEqual(extracted, ['a.txt', 'b/c.txt'])


if __name__ == '__main__':
    unittest.main()
