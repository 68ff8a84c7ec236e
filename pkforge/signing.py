from __future__ import annotations

import shlex
import subprocess
from typing import Callable, List, Sequence

from .constants import SIGNATURE
from .errors import SignerError
from .writer import PassWriter


# Any callable turning manifest.json bytes into signature bytes.
Signer = Callable[[bytes], bytes]


class CommandSigner:
    """Delegate signing to an external program.

    The program receives manifest.json on stdin and must write the raw
    signature (typically a detached PKCS#7 / CMS blob) to stdout, e.g.::

        openssl smime -binary -sign -signer cert.pem -inkey key.pem \
            -certfile wwdr.pem -outform DER
    """

    def __init__(self, argv: Sequence[str]):
        if not argv:
            raise ValueError("Signer command is empty")
        self.argv: List[str] = list(argv)

    @classmethod
    def from_string(cls, cmd: str) -> "CommandSigner":
        return cls(shlex.split(cmd))

    def __call__(self, manifest: bytes) -> bytes:
        try:
            proc = subprocess.run(
                self.argv,
                input=manifest,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise SignerError(f"Cannot run signer {self.argv[0]}: {exc}") from exc
        if proc.returncode != 0:
            err = proc.stderr.decode("utf-8", "replace").strip()
            raise SignerError(f"Signer exited with status {proc.returncode}: {err}")
        if not proc.stdout:
            raise SignerError("Signer produced no output")
        return proc.stdout


def sign_pass(writer: PassWriter, signer: Signer) -> bytes:
    """Finalize ``writer``, embed the signature for its manifest and return the pass bytes."""
    writer.create_manifest()
    assert writer.manifest_data is not None
    signature = signer(writer.manifest_data)
    writer.add_file_without_hash(SIGNATURE, signature)
    return writer.archived_data()
