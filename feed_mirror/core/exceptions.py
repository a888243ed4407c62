"""
Exception classes for feed-mirror.

This module defines all custom exceptions used throughout the application.
Each exception is designed to provide clear, actionable error messages
and to distinguish between failures that abort a sync pass and failures
that are contained to a single feed or a single playlist item.

Exception Hierarchy:
    FeedMirrorError (base)
        ConfigError - Configuration file issues (aborts before any I/O)
        DatabaseError - SQLite state store issues
        FeedError - Feed retrieval/parsing issues (contained per feed)
            FetchError - Feed document could not be downloaded
            ParseError - Feed document could not be parsed
        ApiError - YouTube Data API issues
            AuthError - Missing, invalid or expired access token
            AppendError - A single playlist insert failed (contained per item)
            MembershipLookupError - Playlist contents could not be listed
"""


class FeedMirrorError(Exception):
    """
    Base exception for all feed-mirror errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all feed-mirror errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., channel id, URL).

    Example:
        try:
            # some operation
        except FeedMirrorError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'feed_key': Channel ID of the feed involved
                     - 'url': URL that caused the error
                     - 'status': HTTP status code returned by a remote service
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(FeedMirrorError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error: a sync pass that cannot read its
    configuration stops before touching the network or the state store.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Invalid field values (e.g., negative sync period)

    Example:
        raise ConfigError(
            "'sync.period_minutes' must be a non-negative integer",
            details={'field': 'sync.period_minutes', 'value': -5}
        )
    """
    pass


class DatabaseError(FeedMirrorError):
    """
    Raised when there's an issue with the SQLite state store.

    This is a CRITICAL error. The database holds the per-feed watermarks,
    so a failure to read or commit them must abort the pass rather than
    risk re-adding or skipping items.

    Common causes:
        - database.db is corrupted or locked
        - Permission denied when reading/writing
        - Schema version mismatch
    """
    pass


class FeedError(FeedMirrorError):
    """
    Base class for feed retrieval and parsing problems.

    This is a NON-CRITICAL error: the sync engine logs it, skips the
    feed for the current pass, and leaves the feed's watermark untouched
    so it is retried on the next pass.
    """
    pass


class FetchError(FeedError):
    """
    Raised when a feed document cannot be downloaded.

    Common causes:
        - Channel deleted or feed URL returns 404
        - Network connectivity issues or timeout
        - Unexpected HTTP status (5xx)

    Example:
        raise FetchError(
            "Feed request failed with status 404",
            details={'feed_key': 'UC...', 'url': url, 'status': 404}
        )
    """
    pass


class ParseError(FeedError):
    """
    Raised when a downloaded feed document cannot be parsed.

    Common causes:
        - Response body is HTML (consent page, error page) instead of Atom/RSS
        - Truncated or malformed XML
    """
    pass


class ApiError(FeedMirrorError):
    """
    Raised when there's an issue with the YouTube Data API.

    Attributes:
        status: HTTP status code returned by the API, or None for
                transport-level failures (timeouts, connection resets).

    Example:
        raise ApiError(
            "API call failed: 403",
            details={'endpoint': 'playlistItems', 'body': '...'},
            status=403
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status: int | None = None
    ) -> None:
        """
        Initialize API error with the HTTP status.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            status: HTTP status code, None when no response was received.
        """
        super().__init__(message, details)
        self.status = status


class AuthError(ApiError):
    """
    Raised when the access token is missing, invalid or expired (HTTP 401).

    Token lifecycle is handled outside feed-mirror: the user supplies a
    fresh token through config.yaml or the YOUTUBE_ACCESS_TOKEN variable.
    """
    pass


class AppendError(ApiError):
    """
    Raised when inserting a single video into the playlist fails.

    This is a NON-CRITICAL error: the engine logs it, does not count the
    item as added, and continues with the next item.

    Note:
        A duplicate insert (HTTP 409) is NOT an AppendError. It is reported
        as AppendResult(added=False).
    """
    pass


class MembershipLookupError(ApiError):
    """
    Raised when the destination playlist's contents cannot be listed.

    This is a CRITICAL error for a pass: without the membership snapshot
    the engine aborts, records the partial count, and reports failure.
    """
    pass
