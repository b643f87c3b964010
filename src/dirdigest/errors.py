"""
Exceptions raised by the dirdigest pipeline.
"""


class DigestError(Exception):
    """Base exception for dirdigest errors."""
    pass


class ConfigError(DigestError):
    """Raised when the root path or a command-line setting is invalid."""
    pass


class PatternError(ConfigError):
    """Raised when an include or exclude glob cannot be compiled."""
    pass


class TraversalError(DigestError):
    """Raised when a directory entry cannot be listed or inspected."""
    pass


class OutputError(DigestError):
    """Raised when the digest file cannot be created or written."""
    pass
