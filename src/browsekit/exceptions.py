"""Exception hierarchy for browsekit.

All exceptions inherit from :class:`BrowsekitError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`browsekit.exit_codes`.
The CLI entry point in :func:`browsekit.app.main` catches ``BrowsekitError``
and exits with the appropriate code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The TTL cache never raises: a miss (including an expired entry) is reported
as ``None``.  The paginator raises the errors below so that callers can tell
a failed fetch apart from a genuinely empty bucket.

Subclass hierarchy::

    BrowsekitError (exit 1)
    +-- ConfigError          (exit 1)
    +-- NotInitializedError  (exit 3)
    +-- RemoteFetchError     (exit 4)
    +-- FilterMismatchError  (exit 2)
    +-- StaleResponseError   (exit 5)
    +-- StoreError           (exit 6)
"""

from browsekit.exit_codes import (
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_INITIALIZED,
    EXIT_STALE_RESPONSE,
    EXIT_STORE_ERROR,
)


class BrowsekitError(Exception):
    """Base exception for all browsekit errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`browsekit.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(BrowsekitError):
    """Raised for configuration problems (invalid JSON, bad environment overrides)."""

    exit_code = EXIT_GENERIC_FAILURE


class NotInitializedError(BrowsekitError):
    """Raised when ``load_next_page`` is called for a bucket that was never initialized."""

    exit_code = EXIT_NOT_INITIALIZED


class RemoteFetchError(BrowsekitError):
    """Raised when the remote fetcher fails.

    The original exception is chained as ``__cause__`` and its message is
    passed through unchanged.  A failed ``load_next_page`` leaves the bucket
    as it was; a failed ``initialize`` leaves it uninitialized.  Either call
    can simply be retried.
    """

    exit_code = EXIT_FETCH_ERROR


class FilterMismatchError(BrowsekitError):
    """Raised when ``load_next_page`` is given a filter other than the one the bucket was initialized with.

    Changing the filter of a bucket means initializing it again; appending
    pages fetched with a different filter would mix two result sets.
    """

    exit_code = EXIT_INVALID_USAGE


class StaleResponseError(BrowsekitError):
    """Raised when a fetch completes after its bucket was reset or re-initialized.

    The late page is discarded and the current bucket state is untouched.
    """

    exit_code = EXIT_STALE_RESPONSE


class StoreError(BrowsekitError):
    """Raised when the durable key-value store cannot be read or written."""

    exit_code = EXIT_STORE_ERROR
