from __future__ import annotations

import io
import json
import os
import shlex
import subprocess
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path
from typing import Dict

from pkforge.hashutil import sha1_hex


def _build_fixture_pass(root: Path) -> Dict[str, bytes]:
    """Lay out a pass source directory and return entry name -> bytes."""
    files: Dict[str, bytes] = {}
    descriptor = json.dumps(
        {
            "formatVersion": 1,
            "passTypeIdentifier": "pass.com.example.boarding",
            "serialNumber": "GT-0001",
            "teamIdentifier": "A93A5CM278",
            "organizationName": "Example Air",
            "description": "Boarding pass",
            "boardingPass": {"transitType": "PKTransitTypeAir"},
        },
        indent=2,
    ).encode("utf-8")
    (root / "pass.json").write_bytes(descriptor)
    files["pass.json"] = descriptor

    icon = os.urandom(2048)
    (root / "icon.png").write_bytes(icon)
    files["icon.png"] = icon

    logo = os.urandom(1024)
    (root / "Logo@2x.png").write_bytes(logo)
    files["Logo@2x.png"] = logo

    (root / "en.lproj").mkdir()
    strings = b'"GATE" = "Gate";\n'
    (root / "en.lproj" / "pass.strings").write_bytes(strings)
    files["en.lproj/pass.strings"] = strings

    # stale outputs from an earlier build are regenerated, hidden files skipped
    (root / "manifest.json").write_text("{}")
    (root / "signature").write_bytes(b"old")
    (root / ".DS_Store").write_bytes(b"junk")
    return files


class CLIIntegrationTests(unittest.TestCase):
    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None):
        cmd = [sys.executable, "-m", "pkforge.cli"] + list(args)
        env = os.environ.copy()
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def test_build_signed_pass(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            src = root / "src"
            src.mkdir()
            files = _build_fixture_pass(src)
            out = root / "out" / "boarding.pkpass"
            script = "import sys; d = sys.stdin.buffer.read(); sys.stdout.buffer.write(b'SIG' + str(len(d)).encode())"
            sign_cmd = f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"

            proc = self.run_cli(["build", str(src), "-o", str(out), "--sign-cmd", sign_cmd])
            self.assertIn("adding: icon.png", proc.stdout)
            self.assertIn("Done: 6 entries", proc.stdout)
            self.assertIn("ignoring existing", proc.stderr)

            with zipfile.ZipFile(io.BytesIO(out.read_bytes())) as zf:
                names = zf.namelist()
                self.assertEqual(names[0], "pass.json")
                self.assertEqual(names[-2:], ["manifest.json", "signature"])
                self.assertNotIn(".DS_Store", names)
                for name, blob in files.items():
                    self.assertEqual(zf.read(name), blob)
                manifest_bytes = zf.read("manifest.json")
                self.assertEqual(zf.read("signature"), b"SIG" + str(len(manifest_bytes)).encode())
            manifest = json.loads(manifest_bytes)
            self.assertEqual(manifest, {name.lower(): sha1_hex(blob) for name, blob in files.items()})

    def test_build_unsigned_reproducible(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            src = root / "src"
            src.mkdir()
            _build_fixture_pass(src)
            first = root / "a.pkpass"
            second = root / "b.pkpass"
            proc = self.run_cli(["build", str(src), "-o", str(first), "--reproducible", "--quiet"])
            self.assertNotIn("adding:", proc.stdout)
            self.assertIn("unsigned", proc.stderr)
            self.run_cli(["build", str(src), "-o", str(second), "--reproducible", "--quiet"])
            self.assertEqual(first.read_bytes(), second.read_bytes())
            with zipfile.ZipFile(first) as zf:
                self.assertNotIn("signature", zf.namelist())

    def test_build_store(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            src = root / "src"
            src.mkdir()
            _build_fixture_pass(src)
            out = root / "stored.pkpass"
            self.run_cli(["build", str(src), "-o", str(out), "--store", "--quiet"])
            with zipfile.ZipFile(out) as zf:
                self.assertTrue(all(i.compress_type == zipfile.ZIP_STORED for i in zf.infolist()))

    def test_failing_signer_reports_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            src = root / "src"
            src.mkdir()
            _build_fixture_pass(src)
            out = root / "fail.pkpass"
            script = "import sys; sys.stderr.write('certificate expired'); sys.exit(1)"
            sign_cmd = f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"
            proc = self.run_cli(["build", str(src), "-o", str(out), "--sign-cmd", sign_cmd], expect=2)
            self.assertIn("certificate expired", proc.stderr)
            self.assertFalse(out.exists())

    def test_missing_pass_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            proc = self.run_cli(["build", tmp, "-o", str(Path(tmp) / "x.pkpass")], expect=2)
            self.assertIn("Error:", proc.stderr)
            self.assertIn("pass.json", proc.stderr)

    def test_invalid_pass_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "pass.json").write_text("[not an object]")
            proc = self.run_cli(["manifest", tmp], expect=2)
            self.assertIn("Error:", proc.stderr)

    def test_manifest_command(self):
        with tempfile.TemporaryDirectory() as tmp:
            files = _build_fixture_pass(Path(tmp))
            proc = self.run_cli(["manifest", tmp])
            self.assertEqual(json.loads(proc.stdout), {n.lower(): sha1_hex(b) for n, b in files.items()})

    def test_digest_command(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "blob.bin"
            path.write_bytes(b"abc")
            proc = self.run_cli(["digest", str(path)])
            self.assertEqual(proc.stdout.strip(), f"a9993e364706816aba3e25717850c26c9cd0d89d  {path}")
            missing = self.run_cli(["digest", str(Path(tmp) / "nope")], expect=2)
            self.assertIn("Error:", missing.stderr)


if __name__ == "__main__":
    unittest.main()
