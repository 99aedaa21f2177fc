"""Tests for extension-based asset classification."""

from __future__ import annotations

import pytest

from adpack.core.classifier import FILE_TYPE_MAP, OTHER, classify, extension_of


class TestExtensionOf:
    def test_lowercases(self):
        assert extension_of("Hero.PNG") == ".png"

    def test_last_dot_wins(self):
        assert extension_of("bundle.min.js") == ".js"

    def test_no_extension(self):
        assert extension_of("README") == ""

    def test_dotfile_is_its_own_extension(self):
        assert extension_of(".gitignore") == ".gitignore"


class TestClassify:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("hero.png", "image"),
            ("photo.JPEG", "image"),
            ("main.ts", "script"),
            ("config.json", "script"),
            ("bgm.mp3", "audio"),
            ("click.WAV", "audio"),
            ("tree.glb", "model"),
            ("enemy.prefab", "prefab"),
            ("hero.png.meta", "meta"),
            ("wood.mtl", "material"),
            ("walk.anim", "animation"),
            ("level1.fire", "scene"),
        ],
    )
    def test_known_types(self, filename, expected):
        assert classify(filename) == expected

    def test_unknown_extension(self):
        assert classify("notes.txt") == OTHER

    def test_no_extension(self):
        assert classify("LICENSE") == OTHER

    def test_extensions_do_not_overlap(self):
        seen: set[str] = set()
        for extensions in FILE_TYPE_MAP.values():
            assert not seen & extensions
            seen |= extensions
