"""Shared test fixtures."""

from __future__ import annotations

import os
from contextlib import contextmanager

import pytest
from PIL import Image

import adpack.storage as storage
from adpack.settings import Settings


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect storage to a temp directory."""
    data_dir = tmp_path / "adpack_data"
    data_dir.mkdir()
    history_file = data_dir / "history.json"
    monkeypatch.setattr(storage, "HISTORY_FILE", history_file)
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    return history_file


@pytest.fixture(autouse=True)
def isolate_settings(tmp_path, monkeypatch):
    """Point settings at an empty temp config dir and drop the singleton."""
    config_dir = tmp_path / "adpack_config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setattr(Settings, "_instance", None)
    return config_dir


@pytest.fixture
def asset_root(tmp_path):
    """Empty asset root, separate from the config and data dirs."""
    root = tmp_path / "assets"
    root.mkdir()
    return root


def make_image(path, size=(64, 48), fmt="PNG", noise=True):
    """Write a real image; noise keeps it hard to compress losslessly."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if noise:
        img = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    else:
        img = Image.new("RGB", size, (200, 40, 40))
    img.save(path, format=fmt)
    return path


def write_bytes(path, size):
    """Write *size* filler bytes to *path*, creating parents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    return path


@pytest.fixture
def image_file():
    return make_image


@pytest.fixture
def filler_file():
    return write_bytes


class _UnstatableEntry:
    """Directory entry whose stat() fails, as for a file removed mid-walk."""

    def __init__(self, entry):
        self._entry = entry

    def __getattr__(self, name):
        return getattr(self._entry, name)

    def stat(self, **kwargs):
        raise PermissionError(13, "Permission denied", self._entry.path)


@pytest.fixture
def flaky_fs(monkeypatch):
    """Make named directories unreadable and named files unstatable.

    Works when tests run as root, where chmod would not.
    """
    real_scandir = os.scandir

    def apply(unreadable=(), unstatable=()):
        @contextmanager
        def scandir(path="."):
            if os.path.basename(path) in unreadable:
                raise PermissionError(13, "Permission denied", path)
            with real_scandir(path) as it:
                yield [_UnstatableEntry(e) if e.name in unstatable else e for e in it]

        monkeypatch.setattr(os, "scandir", scandir)

    return apply
