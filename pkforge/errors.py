class PassError(Exception):
    """Base class for recoverable pkforge errors."""


# Staging / archive I/O
class StagingError(PassError):
    pass


class ArchiveWriteError(PassError):
    pass


class ArchiveReadError(PassError):
    pass


# Inputs
class DescriptorError(PassError):
    """pass.json could not be encoded, read or parsed as a JSON object."""


class SourceReadError(PassError):
    pass


class EntryNameError(PassError, ValueError):
    pass


# Lifecycle
class ArchiveOptionError(PassError, ValueError):
    """A writer option (such as a pinned timestamp) cannot be represented in a zip."""


class ManifestSealedError(PassError):
    """A hashed entry was added after manifest.json was written."""


class SignerError(PassError):
    pass


class BuilderReusedError(BaseException):
    """create_manifest() was called twice on the same PassWriter.

    This is a programming error, not a data condition. It derives from
    BaseException so generic ``except Exception`` handlers do not swallow it.
    """
