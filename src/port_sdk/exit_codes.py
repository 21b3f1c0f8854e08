"""Numeric process exit codes used by the ``port-sdk`` command line tool.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~port_sdk.exceptions.PortError` subclass. Shell
scripts wrapping ``port-sdk`` can inspect the exit code to determine the
failure class without parsing stderr.

Example::

    $ port-sdk check --live
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token exchange was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The request was rejected as invalid (bad arguments or HTTP 422)."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed (HTTP 401/403, token exchange)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RATE_LIMITED = 8
"""The API kept answering HTTP 429 after all retries."""

EXIT_CANCELLED = 130
"""The operation was cancelled by the caller (mirrors SIGINT)."""
