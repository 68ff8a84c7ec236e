from __future__ import annotations

from .errors import EntryNameError


def norm_entry_name(name: str) -> str:
    """Return the zip entry name stored for ``name``.

    Windows separators become ``/`` and redundant segments (``//``, ``./``,
    leading or trailing slashes) collapse, so ``\\en.lproj\\pass.strings``
    is stored as ``en.lproj/pass.strings``. A pass is unpacked by the wallet
    into a single directory, so names climbing out of it (``..``) and names
    with nothing left after cleanup raise ``EntryNameError``.
    """
    segments = []
    for seg in name.replace("\\", "/").split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            raise EntryNameError(f"Entry name escapes the pass directory: {name!r}")
        segments.append(seg)
    if not segments:
        raise EntryNameError(f"Empty entry name: {name!r}")
    return "/".join(segments)


def manifest_key(name: str) -> str:
    return name.lower()
