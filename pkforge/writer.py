from __future__ import annotations

import enum
import json
import os
import shutil
import struct
import time
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .constants import (
    DEFAULT_COMPRESSION,
    MANIFEST_JSON,
    MAX_ZIP_YEAR,
    MIN_ZIP_YEAR,
    PASS_JSON,
    READ_CHUNK_SIZE,
    SIGNATURE,
    UNHASHED_ENTRIES,
)
from .errors import (
    ArchiveOptionError,
    ArchiveReadError,
    ArchiveWriteError,
    BuilderReusedError,
    DescriptorError,
    EntryNameError,
    ManifestSealedError,
    SourceReadError,
)
from .hashutil import sha1_hex
from .pathutil import manifest_key, norm_entry_name
from .staging import StagingArea


Descriptor = Union[Mapping[str, Any], bytes, bytearray, memoryview]
DateTime = Tuple[int, int, int, int, int, int]


class BuilderState(enum.Enum):
    OPEN = "open"
    FINALIZED = "finalized"


def encode_json(obj: Mapping[str, Any]) -> bytes:
    """Canonical JSON encoding used for pass.json documents and manifest.json."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_descriptor(descriptor: Descriptor) -> bytes:
    """Return the bytes stored as pass.json.

    Mappings are encoded canonically. Raw bytes are kept verbatim once they
    are known to hold a JSON object.
    """
    if isinstance(descriptor, (bytes, bytearray, memoryview)):
        data = bytes(descriptor)
        try:
            doc = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise DescriptorError(f"pass.json is not valid JSON: {exc}") from exc
        if not isinstance(doc, dict):
            raise DescriptorError("pass.json must contain a JSON object")
        return data
    if isinstance(descriptor, Mapping):
        try:
            return encode_json(dict(descriptor))
        except (TypeError, ValueError) as exc:
            raise DescriptorError(f"pass.json document cannot be encoded: {exc}") from exc
    raise DescriptorError(f"Unsupported descriptor type: {type(descriptor).__name__}")


def check_date_time(date_time: Optional[DateTime]) -> Optional[DateTime]:
    """Validate a pinned zip timestamp (year, month, day, hour, minute, second)."""
    if date_time is None:
        return None
    try:
        fields = tuple(int(v) for v in date_time)
    except (TypeError, ValueError) as exc:
        raise ArchiveOptionError(f"Invalid date_time {date_time!r}: {exc}") from exc
    if len(fields) != 6:
        raise ArchiveOptionError(f"date_time needs 6 fields, got {len(fields)}")
    year, month, day, hour, minute, second = fields
    # DOS timestamps cover 1980..2107 with 2-second resolution.
    if not (MIN_ZIP_YEAR <= year <= MAX_ZIP_YEAR):
        raise ArchiveOptionError(f"Zip timestamps must fall in {MIN_ZIP_YEAR}..{MAX_ZIP_YEAR}, got {year}")
    if not (1 <= month <= 12 and 1 <= day <= 31 and 0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise ArchiveOptionError(f"Invalid date_time {date_time!r}")
    return fields  # type: ignore[return-value]


class PassWriter:
    """Accumulates named payloads into a .pkpass zip and writes its manifest.

    Usage::

        with PassWriter({"formatVersion": 1, ...}) as w:
            w.add_file_from_path("assets/icon.png")
            w.add_data("en.lproj/pass.strings", strings)
            unsigned = w.create_manifest()
            w.add_file_without_hash("signature", signer(w.manifest_data))
            pkpass = w.archived_data()

    ``create_manifest`` may be called exactly once; a second call raises
    ``BuilderReusedError``. Hashed adds after that point raise
    ``ManifestSealedError``; the unhashed path stays available for the
    signature. Instances are not thread-safe.
    """

    def __init__(
        self,
        descriptor: Descriptor,
        *,
        staging_root: Optional[str] = None,
        compression: int = DEFAULT_COMPRESSION,
        date_time: Optional[DateTime] = None,
    ):
        self.compression = compression
        self.date_time = check_date_time(date_time)
        self.state = BuilderState.OPEN
        self.manifest_data: Optional[bytes] = None
        self._hashes: Dict[str, str] = {}
        self._entry_names: List[str] = []
        self._staging = StagingArea(root=staging_root)
        try:
            pass_data = encode_descriptor(descriptor)
            self._staging.open()
            self._create_archive()
            self.add_file(PASS_JSON, pass_data)
        except Exception:
            self._staging.close()
            raise

    @classmethod
    def from_path(cls, path: str, **kwargs) -> "PassWriter":
        """Build from a pass.json file on disk."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise DescriptorError(f"Cannot read {path}: {exc}") from exc
        return cls(data, **kwargs)

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> "PassWriter":
        return cls(bytes(data), **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        """Release the staging directory (and the archive file inside it)."""
        self._staging.close()

    @property
    def closed(self) -> bool:
        return self._staging.closed

    @property
    def archive_path(self) -> Path:
        """Location of the archive file; valid until ``close()``."""
        self._require_not_closed()
        return self._staging.archive_path

    @property
    def digests(self) -> Dict[str, str]:
        return dict(self._hashes)

    @property
    def entry_names(self) -> List[str]:
        return list(self._entry_names)

    # File management

    def add_file_from_path(self, path: str, name: Optional[str] = None) -> None:
        """Add the file at ``path``, named ``name`` or the file's own basename."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise SourceReadError(f"Cannot read {path}: {exc}") from exc
        self.add_file(name or os.path.basename(path), data)

    def add_file(self, name: str, data: bytes) -> None:
        """Stage ``data`` and add it as ``name``, recording its digest."""
        name = self._check_hashed_add(name)
        staged = self._staging.write(name, data)
        self._write_staged_entry(name, staged)
        self._hashes[manifest_key(name)] = sha1_hex(data)

    def add_file_without_hash(self, name: str, data: bytes) -> None:
        """Stage and add ``data`` without recording a digest (e.g. the signature).

        manifest.json is always written by ``create_manifest``; the signature
        may only be added once the manifest exists.
        """
        self._require_not_closed()
        name = norm_entry_name(name)
        key = manifest_key(name)
        if key == MANIFEST_JSON:
            raise EntryNameError(f"{name} is written by create_manifest()")
        if key == SIGNATURE and self.state is BuilderState.OPEN:
            raise EntryNameError(f"Cannot add {name} before create_manifest()")
        self._add_unhashed(name, data)

    def add_data(self, name: str, data: bytes) -> None:
        """Write ``data`` straight into the archive as ``name`` and record its digest.

        Suited to nested entries such as ``en.lproj/pass.strings``.
        """
        name = self._check_hashed_add(name)
        self._write_direct_entry(name, data)
        self._hashes[manifest_key(name)] = sha1_hex(data)

    # Final encoding

    def create_manifest(self) -> bytes:
        """Write manifest.json and return the unsigned archive bytes.

        The builder is finalized before any I/O happens, so even a failed call
        consumes it.
        """
        if self.state is BuilderState.FINALIZED:
            raise BuilderReusedError("This PassWriter has already created its manifest and may not be used again.")
        self.state = BuilderState.FINALIZED
        self.manifest_data = encode_json(self._hashes)
        self._add_unhashed(MANIFEST_JSON, self.manifest_data)
        return self.archived_data()

    def archived_data(self) -> bytes:
        """Return the archive as currently written (signed once the signature is added)."""
        path = self.archive_path
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ArchiveReadError(f"Cannot read archive {path}: {exc}") from exc

    # internals

    def _require_not_closed(self) -> None:
        if self._staging.closed:
            raise RuntimeError("PassWriter is closed")

    def _add_unhashed(self, name: str, data: bytes) -> None:
        staged = self._staging.write(name, data)
        self._write_staged_entry(name, staged)

    def _check_hashed_add(self, name: str) -> str:
        self._require_not_closed()
        if self.state is BuilderState.FINALIZED:
            raise ManifestSealedError(f"Cannot add {name}: manifest.json has already been written")
        name = norm_entry_name(name)
        if name.lower() in UNHASHED_ENTRIES:
            raise EntryNameError(f"{name} is reserved and may not be hashed into the manifest")
        return name

    def _open_archive(self, mode: str = "a") -> zipfile.ZipFile:
        return zipfile.ZipFile(self._staging.archive_path, mode, compression=self.compression)

    def _create_archive(self) -> None:
        try:
            with self._open_archive("w"):
                pass
        except OSError as exc:
            raise ArchiveWriteError(f"Cannot create archive: {exc}") from exc

    def _write_staged_entry(self, name: str, staged: Path) -> None:
        try:
            zinfo = zipfile.ZipInfo.from_file(staged, arcname=name)
            zinfo.compress_type = self.compression
            if self.date_time is not None:
                zinfo.date_time = self.date_time
            with self._open_archive() as zf, open(staged, "rb") as src, zf.open(zinfo, "w") as dst:
                shutil.copyfileobj(src, dst, READ_CHUNK_SIZE)
        except (OSError, ValueError, struct.error, zipfile.BadZipFile) as exc:
            raise ArchiveWriteError(f"Cannot add {name} to archive: {exc}") from exc
        self._entry_names.append(name)

    def _write_direct_entry(self, name: str, data: bytes) -> None:
        date_time = self.date_time or time.localtime(time.time())[:6]
        try:
            zinfo = zipfile.ZipInfo(name, date_time=date_time)
            zinfo.compress_type = self.compression
            zinfo.external_attr = 0o644 << 16
            with self._open_archive() as zf:
                zf.writestr(zinfo, data)
        except (OSError, ValueError, struct.error, zipfile.BadZipFile) as exc:
            raise ArchiveWriteError(f"Cannot add {name} to archive: {exc}") from exc
        self._entry_names.append(name)
