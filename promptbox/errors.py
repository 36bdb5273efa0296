# promptbox/errors.py - Error classes and storage error classification
"""
Unified error handling for PromptBox.
Provides actionable warning messages for common storage failures.
"""

import errno
import logging

logger = logging.getLogger(__name__)


class PromptBoxError(Exception):
    """Base exception for PromptBox errors."""
    pass


class InvalidPromptError(PromptBoxError, ValueError):
    """Prompt data failed validation (empty title, bad rating, wrong shape)."""
    pass


class StorageError(PromptBoxError):
    """Key-value backend could not complete a read or write."""
    pass


class QuotaExceededError(StorageError):
    """Write would exceed the configured storage quota."""
    pass


def classify_storage_error(e: Exception) -> str:
    """
    Classify a storage exception and return a user-facing warning.

    Args:
        e: The exception raised by the storage backend or the encoder

    Returns:
        Human-readable warning text
    """
    if isinstance(e, QuotaExceededError):
        return (
            "Storage is full. Your changes are kept for this session but were not saved. "
            "Delete unused prompts or raise STORAGE_QUOTA_BYTES in settings."
        )

    if isinstance(e, (TypeError, ValueError)):
        return f"Could not encode data for storage: {e}"

    # Backends wrap OSError in StorageError; look at the original too
    os_error = e if isinstance(e, OSError) else e.__cause__
    err_no = os_error.errno if isinstance(os_error, OSError) else None
    err_str = str(e).lower()

    if err_no in (errno.EACCES, errno.EPERM, errno.EROFS) or any(
            x in err_str for x in ['permission denied', 'read-only file system']):
        return "Storage is read-only or access was denied. Changes were not saved."
    if err_no == errno.ENOSPC or 'no space left' in err_str:
        return "Disk is full. Changes were not saved."

    return f"Storage error: {type(e).__name__}: {e}"
