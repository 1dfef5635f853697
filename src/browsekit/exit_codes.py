"""Numeric process exit codes for the ``browsekit`` inspection CLI.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~browsekit.exceptions.BrowsekitError` subclass.
Host scripts can inspect the exit code to determine the failure class
without parsing stderr.

Example::

    $ browsekit recent list --type nope
    $ echo $?
    2   # EXIT_INVALID_USAGE -- unknown item type
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_INITIALIZED = 3
"""A pagination bucket was used before it was initialized."""

EXIT_FETCH_ERROR = 4
"""The remote fetcher failed to return a page."""

EXIT_STALE_RESPONSE = 5
"""A fetch result was discarded because its bucket was reset meanwhile."""

EXIT_STORE_ERROR = 6
"""The durable key-value store could not be read or written."""
