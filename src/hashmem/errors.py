from __future__ import annotations


class HashmemError(RuntimeError):
    """Root of every failure raised by the frequency store."""


class CodecError(HashmemError):
    """Raised when a stored payload cannot be encoded or decoded."""


class StorageError(HashmemError):
    """Raised when a backend hits an I/O or engine failure other than absence."""


class ConfigError(HashmemError, ValueError):
    """Raised when a setting cannot be parsed."""


__all__ = ["CodecError", "ConfigError", "HashmemError", "StorageError"]
