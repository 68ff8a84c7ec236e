import zipfile


# Reserved entry names
PASS_JSON = "pass.json"
MANIFEST_JSON = "manifest.json"
SIGNATURE = "signature"

# Entries that never appear in their own manifest
UNHASHED_ENTRIES = frozenset({MANIFEST_JSON, SIGNATURE})

# Archive file kept inside the staging directory
ARCHIVE_NAME = "Pass.pkpass"
PASS_EXTENSION = ".pkpass"
LOCALIZATION_SUFFIX = ".lproj"

STAGING_PREFIX = "pkforge-"
STAGED_ENTRIES_DIR = "entries"

DEFAULT_COMPRESSION = zipfile.ZIP_DEFLATED

# Fixed zip timestamp for reproducible builds (zip epoch starts at 1980)
REPRODUCIBLE_DATE_TIME = (1980, 1, 1, 0, 0, 0)

READ_CHUNK_SIZE = 1_048_576  # 1 MiB

# DOS date range representable in zip headers
MIN_ZIP_YEAR = 1980
MAX_ZIP_YEAR = 2107
