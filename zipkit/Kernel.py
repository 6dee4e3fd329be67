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
import logging
import threading

# Error reporting is disabled unless ZIPKIT_SENTRY_DSN is explicitly configured.
import sentry_sdk

from signalslot import Signal

from sentry_sdk.integrations.logging import EventHandler, LoggingIntegration

PUBLIC_VERSION = '1.0.3'

# Map string levels to logging constants for standard level names
LOG_LEVEL_MAPPING = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}

_sentryLock = threading.Lock()
_sentryState = {'initialized': False}


def configureGlobalLogLevel(logLevel):
    """
    Configure the global logging level for the application.
    This affects all loggers created via getLogger().

    Args:
        logLevel: Logging level (logging.DEBUG, logging.INFO, etc.)
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    # Add console handler if none exists
    if not rootLogger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(logLevel)
        consoleHandler.setFormatter(formatter)
        rootLogger.addHandler(consoleHandler)
    else:
        # Update existing handlers
        for handler in rootLogger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, EventHandler):
                handler.setLevel(logLevel)
                handler.setFormatter(formatter)


if os.getenv('ZIPKIT_LOGGING_LEVEL'):
    _envLevel = LOG_LEVEL_MAPPING.get(os.getenv('ZIPKIT_LOGGING_LEVEL').upper())
    if _envLevel is not None:
        configureGlobalLogLevel(_envLevel)


def _initializeSentry():
    """Initialize Sentry once if a DSN is configured, returns whether reporting is active"""
    with _sentryLock:
        if _sentryState['initialized']:
            return True

        sentryDsn = os.getenv('ZIPKIT_SENTRY_DSN')
        if not sentryDsn:
            return False

        sentry_sdk.init(
            dsn=sentryDsn,
            release=PUBLIC_VERSION,
            default_integrations=False,
            integrations=[LoggingIntegration()],
        )
        _sentryState['initialized'] = True
        return True


def getLogger(name):
    """
    Get a logger, attaching a Sentry event handler when reporting has been enabled
    through ZIPKIT_SENTRY_DSN.

    Args:
        name: Logger name
    """
    logger = logging.getLogger(name)

    try:
        if _initializeSentry() and not any(isinstance(h, EventHandler) for h in logger.handlers):
            sentryHandler = EventHandler(level=logging.ERROR)
            sentryHandler.setFormatter(logging.Formatter('%(asctime)s version[' + PUBLIC_VERSION + '] : %(message)s'))
            logger.addHandler(sentryHandler)
    except Exception as e:
        # If Sentry setup fails, log the error and continue with standard logging
        logger.warning(f"Failed to initialize Sentry: {e}")

    return logger


class Singleton:
    """
    Thread-safe singleton base class that can be inherited by other classes.
    Subclasses override initialize() for custom initialization.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not hasattr(self, '_initialized'):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        """
        Static access method for the singleton instance.
        """
        if cls not in cls._instances:
            cls()
        return cls._instances[cls]


class EventService(Singleton):
    """
    Dispatches engine events to observers. Backed by 'signalslot', so every
    observer must accept **kwargs.
    """

    def initialize(self):
        self.signals = {}
        self._lock = threading.RLock()

    def reset(self):
        """
        Disconnect every observer while keeping events registered.
        Should only be used in test suites to ensure test isolation.
        """
        with self._lock:
            for event in list(self.signals):
                self.signals[event] = Signal(name=event, threadsafe=True)

    def isRegistered(self, event):
        return event in self.signals

    def register(self, event):
        with self._lock:
            if self.isRegistered(event):
                return False
            self.signals[event] = Signal(name=event, threadsafe=True)
            return True

    def unregister(self, event):
        with self._lock:
            if not self.isRegistered(event):
                return False
            del self.signals[event]
            return True

    def subscribe(self, event, observer):
        if not self.isRegistered(event):
            raise KeyError(f"You must register event '{event}' first.")
        self.signals[event].connect(observer)

    def unsubscribe(self, event, observer):
        if not self.isRegistered(event):
            return
        self.signals[event].disconnect(observer)

    def trigger(self, event, **kwargs):
        """
        Trigger an event, calling all connected observers with keyword arguments.
        """
        signal = self.signals.get(event)
        if signal is None:
            return None
        return signal.emit(**kwargs)


class Event:
    """ Simple Event wrapper"""

    def __init__(self, key):
        self.key = key

        self.eventService = EventService.getInstance()

    def subscribe(self, observer):
        return self.eventService.subscribe(self.key, observer)

    def unsubscribe(self, observer):
        return self.eventService.unsubscribe(self.key, observer)

    def trigger(self, **kwargs):
        return self.eventService.trigger(self.key, **kwargs)


class ZipKitEvent:
    entryEncoded = Event('/archive/entry/encoded')
    entryExtracted = Event('/archive/entry/extracted')
    entrySkipped = Event('/archive/entry/skipped')


eventService = EventService.getInstance()

eventService.register(ZipKitEvent.entryEncoded.key)
eventService.register(ZipKitEvent.entryExtracted.key)
eventService.register(ZipKitEvent.entrySkipped.key)
