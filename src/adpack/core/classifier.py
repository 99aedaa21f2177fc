"""Asset type classification by file extension."""

from __future__ import annotations

# Checked in order, first match wins.
FILE_TYPE_MAP: dict[str, frozenset[str]] = {
    "image": frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tga", ".psd"}),
    "script": frozenset({".ts", ".js", ".json"}),
    "audio": frozenset({".mp3", ".wav", ".ogg", ".m4a", ".aac"}),
    "model": frozenset({".fbx", ".gltf", ".glb", ".obj", ".dae"}),
    "prefab": frozenset({".prefab"}),
    "meta": frozenset({".meta"}),
    "material": frozenset({".mtl", ".material"}),
    "animation": frozenset({".anim", ".animation"}),
    "scene": frozenset({".scene", ".fire"}),
}

OTHER = "other"


def extension_of(filename: str) -> str:
    """Return the lowercased dotted extension, or '' if there is none."""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return ""
    return "." + ext.lower()


def classify(filename: str) -> str:
    """Map *filename* to its asset type, ``other`` when nothing matches."""
    ext = extension_of(filename)
    if not ext:
        return OTHER
    for asset_type, extensions in FILE_TYPE_MAP.items():
        if ext in extensions:
            return asset_type
    return OTHER
