"""Tests for path-safe operations on the asset root."""

from __future__ import annotations

import pytest
from fakes import FakeCompressor, make_registry

from adpack.compressors.image import ImageCompressor
from adpack.core.errors import NotFoundError, OutOfBoundsError, RootBusyError, ValidationError
from adpack.core.session import Session
from adpack.core.workspace import Workspace
from adpack.settings import Settings


@pytest.fixture
def workspace(asset_root, filler_file):
    filler_file(asset_root / "a.png", 1000)
    filler_file(asset_root / "levels" / "b.png", 2000)
    filler_file(asset_root / "music" / "c.wav", 3000)
    return Workspace(Session(asset_root), registry=make_registry(FakeCompressor()))


class TestWorkspace:
    def test_scan(self, workspace):
        result = workspace.scan()
        assert result.file_count == 3
        assert result.type_stats["image"].size_bytes == 3000

    def test_estimate(self, workspace):
        result = workspace.estimate("image")
        assert result.total_count == 2
        assert result.estimated_saving_bytes == 900

    def test_estimate_unknown_kind(self, workspace):
        with pytest.raises(ValidationError):
            workspace.estimate("video")

    def test_run_batch_on_target(self, workspace, asset_root):
        result = workspace.run_batch("image", target="levels")
        assert [p for p, _ in result.per_file] == ["b.png"]
        assert (asset_root / "a.png").stat().st_size == 1000

    def test_run_batch_target_escapes(self, workspace):
        with pytest.raises(OutOfBoundsError):
            workspace.run_batch("image", target="../..")

    def test_run_batch_target_missing(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.run_batch("image", target="nope")

    def test_stream_batch_bad_target_is_error_event(self, workspace):
        events = list(workspace.stream_batch("image", target="../../etc"))
        assert [e.name for e in events] == ["error"]

    def test_stream_batch_pins_root(self, workspace, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        stream = workspace.stream_batch("image")
        next(stream)
        with pytest.raises(RootBusyError):
            workspace.change_root(other)
        list(stream)
        assert workspace.change_root(other) == other.resolve()

    def test_closed_stream_unpins_after_worker_stops(self, asset_root, filler_file):
        for i in range(8):
            filler_file(asset_root / f"{i}.png", 100)
        compressor = FakeCompressor(delay=0.05)
        workspace = Workspace(Session(asset_root), registry=make_registry(compressor))

        stream = workspace.stream_batch("image")
        next(stream)
        stream.close()
        done = len(compressor.log)

        assert not workspace.session.busy
        assert len(compressor.log) == done < 8

    def test_compress_one(self, workspace, asset_root):
        outcome = workspace.compress_one("levels/b.png")
        assert outcome.saved_bytes == 1000
        assert (asset_root / "levels" / "b.png").stat().st_size == 1000

    def test_compress_one_traversal(self, workspace):
        with pytest.raises(OutOfBoundsError):
            workspace.compress_one("../../etc/passwd")

    def test_compress_one_directory(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.compress_one("levels")

    def test_compress_one_missing(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.compress_one("missing.png")

    def test_resize_and_info(self, asset_root, image_file):
        image_file(asset_root / "hero.png", size=(400, 300))
        workspace = Workspace(Session(asset_root), registry=make_registry(ImageCompressor()))

        outcome = workspace.resize_one("hero.png", width=200)

        assert (outcome.new_width, outcome.new_height) == (200, 150)
        assert workspace.media_info("hero.png")["width"] == 200

    def test_media_info_unknown_type(self, workspace, asset_root, filler_file):
        filler_file(asset_root / "notes.txt", 5)
        with pytest.raises(ValidationError):
            workspace.media_info("notes.txt")

    def test_from_settings(self, asset_root, tmp_path):
        settings = Settings(tmp_path / "settings.json")
        settings.set("root", str(asset_root))
        settings.set("optimizer.max_workers", 3)
        settings.set("estimate.ratios", {"png": 0.5})

        workspace = Workspace.from_settings(settings)

        assert workspace.session.root == asset_root.resolve()
        assert workspace.optimizer.max_workers == 3
        assert workspace.ratios == {"png": 0.5}

    def test_from_settings_explicit_root_wins(self, asset_root, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        settings = Settings(tmp_path / "settings.json")
        settings.set("root", str(asset_root))
        assert Workspace.from_settings(settings, root=other).session.root == other.resolve()
