"""
kvsample utility package.
Error taxonomy and config-file reading.
"""

from kvutil.error_handling import (
    KVSampleError,
    ConfigurationError,
    AuthenticationError,
    CleanupError,
    ErrorHandling,
    isolate,
)
from kvutil.fileio import FileIO

__all__ = [
    "KVSampleError",
    "ConfigurationError",
    "AuthenticationError",
    "CleanupError",
    "ErrorHandling",
    "isolate",
    "FileIO",
]
