"""
pkforge — builder for Apple Wallet style ``.pkpass`` containers.

Features:

- Staged, append-only zip writer that keeps the archive valid after every entry.
- SHA-1 digest table for ``manifest.json`` (format mandated, lower-cased keys).
- One-shot manifest finalization; the signature entry is added unhashed afterwards.
- Localization entries (``en.lproj/pass.strings``) written straight into the archive.
- Pluggable external signer (any program reading the manifest on stdin and
  writing the signature on stdout).

Signing itself is out of scope: pkforge embeds whatever bytes the signer returns.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "hashutil",
    "pathutil",
    "staging",
    "writer",
    "signing",
]

# Programmatic API lives in pkforge.writer (PassWriter) and pkforge.signing
# (CommandSigner, sign_pass); pkforge.cli wraps them for the command line.
