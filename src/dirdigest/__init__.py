"""
dirdigest - snapshot a source tree into a single text digest.

This package walks a directory, drops build outputs, lockfiles, binaries and
oversized files, and writes one document holding a tree view of the project
followed by the contents of every remaining file, ready to be read by people
or pasted into a large language model.
"""

__version__ = "0.1.0"

from .core import Digest, PathEntry, build_digest  # noqa: E402
from .errors import (  # noqa: E402
    ConfigError,
    DigestError,
    OutputError,
    PatternError,
    TraversalError,
)

__all__ = [
    "__version__",
    "Digest",
    "PathEntry",
    "build_digest",
    "DigestError",
    "ConfigError",
    "PatternError",
    "TraversalError",
    "OutputError",
]
