"""Shared fixtures for the workspace tests."""
from __future__ import annotations

import os
import random
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine.codec import PersistenceCodec
from engine.controller import InteractionController
from engine.session import WorkspaceSession
from engine.storage import MemoryStorage
from settings import AppSettings


@pytest.fixture()
def settings():
    """Default settings with a small drawing surface to keep tests fast."""
    s = AppSettings()
    s.raster.width = 200
    s.raster.height = 150
    return s


@pytest.fixture()
def session(settings):
    return WorkspaceSession(settings, rng=random.Random(1234))


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def codec(storage):
    return PersistenceCodec(storage)


@pytest.fixture()
def renders():
    """List collecting (reason, object_id) render notifications."""
    return []


@pytest.fixture()
def controller(session, codec, renders):
    return InteractionController(session, codec, on_render=lambda reason, oid: renders.append((reason, oid)))
