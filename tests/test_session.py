"""Tests for root handling and path containment."""

from __future__ import annotations

import os

import pytest

from adpack.core.errors import NotFoundError, OutOfBoundsError, RootBusyError
from adpack.core.session import Session
from adpack.settings import Settings


@pytest.fixture
def session(asset_root):
    (asset_root / "img").mkdir()
    (asset_root / "img" / "hero.png").write_bytes(b"x")
    return Session(asset_root)


class TestResolve:
    def test_relative_path(self, session, asset_root):
        assert session.resolve("img/hero.png") == (asset_root / "img" / "hero.png").resolve()

    def test_root_itself(self, session):
        assert session.resolve(".") == session.root

    def test_dotdot_inside_root(self, session):
        assert session.resolve("img/../img/hero.png") == session.root / "img" / "hero.png"

    def test_traversal_rejected(self, session):
        with pytest.raises(OutOfBoundsError):
            session.resolve("../../etc/passwd")

    def test_absolute_outside_rejected(self, session):
        with pytest.raises(OutOfBoundsError):
            session.resolve("/etc/passwd")

    def test_sibling_prefix_rejected(self, session, tmp_path):
        # /tmp/x/assets-evil shares a string prefix with /tmp/x/assets
        evil = tmp_path / "assets-evil"
        evil.mkdir()
        with pytest.raises(OutOfBoundsError):
            session.resolve(str(evil))

    def test_symlink_escape_rejected(self, session, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        os.symlink(outside, session.root / "escape")
        with pytest.raises(OutOfBoundsError):
            session.resolve("escape/secret.png")

    def test_require_existing(self, session):
        assert session.require_existing("img/hero.png").is_file()
        with pytest.raises(NotFoundError):
            session.require_existing("img/missing.png")


class TestChangeRoot:
    def test_missing_root(self, tmp_path):
        with pytest.raises(NotFoundError):
            Session(tmp_path / "nope")

    def test_change(self, session, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        assert session.change_root(other) == other.resolve()
        assert session.root == other.resolve()

    def test_change_to_missing_keeps_root(self, session, tmp_path):
        before = session.root
        with pytest.raises(NotFoundError):
            session.change_root(tmp_path / "nope")
        assert session.root == before

    def test_busy_during_operation(self, session, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        with session.operation() as pinned:
            assert session.busy
            with pytest.raises(RootBusyError):
                session.change_root(other)
            assert pinned == session.root
        assert not session.busy
        session.change_root(other)

    def test_from_settings(self, asset_root, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        settings.set("root", str(asset_root))
        assert Session.from_settings(settings).root == asset_root.resolve()

    def test_from_settings_defaults_to_cwd(self, asset_root, tmp_path, monkeypatch):
        monkeypatch.chdir(asset_root)
        assert Session.from_settings(Settings(tmp_path / "settings.json")).root == asset_root.resolve()
