from __future__ import annotations

import os
import sys
import time
import argparse
import json as _json
import zipfile

from pathlib import Path
from typing import List, Optional, Tuple

from pkforge import __version__
from pkforge.constants import (
    LOCALIZATION_SUFFIX,
    PASS_JSON,
    REPRODUCIBLE_DATE_TIME,
    UNHASHED_ENTRIES,
)
from pkforge.errors import PassError
from pkforge.hashutil import sha1_hex_file
from pkforge.signing import CommandSigner, sign_pass
from pkforge.writer import PassWriter


def _collect_pass_dir(pass_dir: str) -> Tuple[Path, List[Tuple[str, str]], List[Tuple[str, str]]]:
    """Scan a pass source directory.

    Args:
        pass_dir: Directory holding pass.json, images and ``*.lproj`` folders.

    Returns:
        ``(descriptor_path, files, localized)`` where ``files`` and ``localized``
        are ``(entry_name, fs_path)`` pairs in sorted order.

    Raises:
        FileNotFoundError: If the directory or its pass.json is missing.
    """
    root = Path(pass_dir)
    descriptor = root / PASS_JSON
    if not descriptor.is_file():
        raise FileNotFoundError(f"{descriptor} not found")

    files: List[Tuple[str, str]] = []
    localized: List[Tuple[str, str]] = []
    for name in sorted(os.listdir(root)):
        if name.startswith(".") or name == PASS_JSON:
            continue
        full = root / name
        if full.is_dir():
            if not name.endswith(LOCALIZATION_SUFFIX):
                print(f"Warning: skipping directory {full}", file=sys.stderr)
                continue
            for sub in sorted(os.listdir(full)):
                if sub.startswith(".") or not (full / sub).is_file():
                    continue
                localized.append((f"{name}/{sub}", str(full / sub)))
            continue
        if name.lower() in UNHASHED_ENTRIES:
            print(f"Warning: ignoring existing {full}; it is regenerated", file=sys.stderr)
            continue
        files.append((name, str(full)))
    return descriptor, files, localized


def _open_writer(pass_dir: str, *, reproducible: bool = False, store: bool = False, quiet: bool = False) -> PassWriter:
    """Create a PassWriter holding every payload entry of ``pass_dir`` (manifest not yet written)."""
    descriptor, files, localized = _collect_pass_dir(pass_dir)
    w = PassWriter.from_path(
        str(descriptor),
        compression=zipfile.ZIP_STORED if store else zipfile.ZIP_DEFLATED,
        date_time=REPRODUCIBLE_DATE_TIME if reproducible else None,
    )
    try:
        for arc, full in files:
            w.add_file_from_path(full, arc)
            if not quiet:
                print(f" adding: {arc}")
        for arc, full in localized:
            w.add_data(arc, Path(full).read_bytes())
            if not quiet:
                print(f" adding: {arc}")
    except Exception:
        w.close()
        raise
    return w


def cmd_build(
    pass_dir: str,
    output: str,
    *,
    sign_cmd: Optional[str] = None,
    reproducible: bool = False,
    store: bool = False,
    quiet: bool = False,
) -> bool:
    """Build a .pkpass from a pass source directory.

    Args:
        pass_dir: Directory holding pass.json, assets and ``*.lproj`` folders.
        output: Destination .pkpass path.
        sign_cmd: External signer command line. It receives manifest.json on
            stdin and must print the raw signature on stdout. When omitted the
            pass is written unsigned.
        reproducible: Pin every entry timestamp so identical inputs give identical bytes.
        store: Store entries uncompressed.
        quiet: Limit output to the summary line.
    """
    t0 = time.time()
    with _open_writer(pass_dir, reproducible=reproducible, store=store, quiet=quiet) as w:
        if sign_cmd:
            data = sign_pass(w, CommandSigner.from_string(sign_cmd))
        else:
            data = w.create_manifest()
            print("Warning: no --sign-cmd given; the pass is unsigned and Wallet will reject it", file=sys.stderr)
        n_entries = len(w.entry_names)
    out = Path(output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    dt = max(0.000001, time.time() - t0)
    print(f"Done: {n_entries} entries; {len(data)} bytes in {dt:.2f}s -> {out}")
    return True


def cmd_manifest(pass_dir: str) -> bool:
    """Print the manifest.json that ``build`` would embed for ``pass_dir``.

    Args:
        pass_dir: Directory holding pass.json, assets and ``*.lproj`` folders.
    """
    with _open_writer(pass_dir, quiet=True) as w:
        w.create_manifest()
        digests = w.digests
    print(_json.dumps(digests, indent=2, sort_keys=True))
    return True


def cmd_digest(paths: List[str]) -> bool:
    """Print the manifest digest (SHA-1) of each file."""
    for p in paths:
        print(f"{sha1_hex_file(p)}  {p}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(prog="pkforge", description="Build Apple Wallet .pkpass containers")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_build = sub.add_parser("build", help="Build a .pkpass from a pass directory")
    ap_build.add_argument("pass_dir", help="Directory containing pass.json and assets")
    ap_build.add_argument("-o", "--output", required=True, help="Output .pkpass path")
    ap_build.add_argument(
        "--sign-cmd",
        help=(
            "External signer command; reads manifest.json on stdin and writes the signature to stdout. "
            "Without it the pass is written unsigned."
        ),
    )
    ap_build.add_argument("--reproducible", action="store_true", help="Use fixed entry timestamps")
    ap_build.add_argument("--store", action="store_true", help="Store entries without compression")
    ap_build.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_manifest = sub.add_parser("manifest", help="Print the manifest.json for a pass directory")
    ap_manifest.add_argument("pass_dir", help="Directory containing pass.json and assets")

    ap_digest = sub.add_parser("digest", help="Print manifest digests of files")
    ap_digest.add_argument("paths", nargs="+", help="Files to hash")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "build":
            cmd_build(
                args.pass_dir,
                args.output,
                sign_cmd=args.sign_cmd,
                reproducible=args.reproducible,
                store=args.store,
                quiet=args.quiet,
            )
        elif args.cmd == "manifest":
            cmd_manifest(args.pass_dir)
        elif args.cmd == "digest":
            cmd_digest(args.paths)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (PassError, ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
