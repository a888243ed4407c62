"""
YouTube Data API client for feed-mirror.

Async wrapper around the handful of YouTube Data API v3 endpoints the
application needs, built on aiohttp.

Endpoints:
    playlistItems (GET)    -> get_collection_members(): destination playlist contents
    playlistItems (POST)   -> append_item(): add one video to the playlist
    subscriptions (GET)    -> list_subscriptions(): the user's channels
    playlists (GET)        -> list_playlists(): candidate destination playlists

Authentication:
    Every call sends "Authorization: Bearer <access token>". Obtaining and
    refreshing the token is outside feed-mirror; a 401 response raises
    AuthError so the caller can tell the user to refresh it.

Pagination:
    List endpoints are read 50 items per page, following nextPageToken
    until it is absent.

Usage:
    async with YouTubeClient(access_token) as client:
        members = await client.get_collection_members("PL...")
        result = await client.append_item("PL...", "dQw4w9WgXcQ")
        if result.added:
            ...
"""

import asyncio
from typing import Any, AsyncIterator

import aiohttp

from feed_mirror.core.exceptions import (
    ApiError,
    AppendError,
    AuthError,
    MembershipLookupError,
)
from feed_mirror.core.logger import get_logger
from feed_mirror.youtube.models import AppendResult, Channel, PlaylistInfo

logger = get_logger(__name__)


API_BASE_URL = "https://www.googleapis.com/youtube/v3/"
PAGE_SIZE = 50

HTTP_UNAUTHORIZED = 401
HTTP_CONFLICT = 409


class YouTubeClient:
    """
    Async YouTube Data API client.

    Owns an aiohttp.ClientSession unless one is injected (tests inject a
    fake). Use as an async context manager, or call close() when done.

    Attributes:
        timeout: Total per-request timeout in seconds.
    """

    def __init__(
        self,
        access_token: str | None,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None
    ) -> None:
        self._access_token = access_token
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "YouTubeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        if not self._access_token:
            raise AuthError(
                "No YouTube access token configured. Set youtube.access_token "
                "in config.yaml or the YOUTUBE_ACCESS_TOKEN environment variable.",
                status=HTTP_UNAUTHORIZED
            )
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

    # =========================================================================
    # Request Helpers
    # =========================================================================

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        allowed_statuses: tuple[int, ...] = ()
    ) -> tuple[int, dict[str, Any]]:
        """
        Perform one API call.

        Args:
            method: HTTP method.
            endpoint: Resource name relative to API_BASE_URL (e.g. "playlistItems").
            params: Query parameters.
            body: JSON body for POST requests.
            allowed_statuses: Non-2xx statuses returned to the caller instead of raised.

        Returns:
            Tuple of (HTTP status, decoded JSON body or {}).

        Raises:
            AuthError: On 401 or when no token is configured.
            ApiError: On other non-2xx statuses and transport errors.
        """
        url = API_BASE_URL + endpoint
        headers = self._headers()

        try:
            async with self._get_session().request(
                method, url, params=params, json=body, headers=headers
            ) as response:
                status = response.status
                if 200 <= status < 300:
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise ApiError(
                            f"API call to {endpoint} returned a non-JSON body ({status})",
                            details={"endpoint": endpoint, "original_error": str(e)},
                            status=status
                        ) from e
                    return status, payload or {}

                if status in allowed_statuses:
                    return status, {}

                error_body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiError(
                f"API call to {endpoint} failed: {str(e) or type(e).__name__}",
                details={"endpoint": endpoint, "original_error": repr(e)}
            ) from e

        logger.debug(f"API call failed: {status} {endpoint} {error_body[:500]}")

        if status == HTTP_UNAUTHORIZED:
            raise AuthError(
                "API call failed with 401 (Unauthorized). The access token "
                "is invalid or expired.",
                details={"endpoint": endpoint},
                status=status
            )
        raise ApiError(
            f"API call failed: {status}",
            details={"endpoint": endpoint, "body": error_body[:500]},
            status=status
        )

    async def _paginate(self, endpoint: str, params: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield every item of a list endpoint, following nextPageToken."""
        page_token: str | None = None
        while True:
            page_params = {**params, "maxResults": PAGE_SIZE}
            if page_token:
                page_params["pageToken"] = page_token

            _, data = await self._request("GET", endpoint, params=page_params)

            for item in data.get("items") or []:
                yield item

            page_token = data.get("nextPageToken")
            if not page_token:
                break

    # =========================================================================
    # Collection Operations
    # =========================================================================

    async def get_collection_members(self, playlist_id: str) -> set[str]:
        """
        Return the ids of every video currently in a playlist.

        Args:
            playlist_id: Destination playlist id.

        Returns:
            Set of video ids (possibly empty).

        Raises:
            MembershipLookupError: If any page cannot be read. A partial
                                   set is never returned.
        """
        if not playlist_id:
            raise MembershipLookupError(
                "Invalid playlist ID provided.",
                details={"playlist_id": playlist_id}
            )

        video_ids: set[str] = set()
        try:
            async for item in self._paginate(
                "playlistItems",
                {"part": "contentDetails", "playlistId": playlist_id}
            ):
                video_id = (item.get("contentDetails") or {}).get("videoId")
                if video_id:
                    video_ids.add(video_id)
        except ApiError as e:
            raise MembershipLookupError(
                f"Could not list playlist {playlist_id}: {e.message}",
                details={"playlist_id": playlist_id, **e.details},
                status=e.status
            ) from e

        logger.debug(f"Playlist {playlist_id} contains {len(video_ids)} videos")
        return video_ids

    async def append_item(self, playlist_id: str, video_id: str) -> AppendResult:
        """
        Add one video to the end of a playlist.

        Args:
            playlist_id: Destination playlist id.
            video_id: Video to add.

        Returns:
            AppendResult(added=True) on success,
            AppendResult(added=False) if the video is already in the playlist.

        Raises:
            AuthError: If the token is missing or rejected.
            AppendError: On any other failure (permissions, quota, network).
        """
        body = {
            "snippet": {
                "playlistId": playlist_id,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
            }
        }
        try:
            status, _ = await self._request(
                "POST",
                "playlistItems",
                params={"part": "snippet"},
                body=body,
                allowed_statuses=(HTTP_CONFLICT,)
            )
        except AuthError:
            raise
        except ApiError as e:
            raise AppendError(
                f"Failed to add video {video_id}: {e.message}",
                details={"video_id": video_id, "playlist_id": playlist_id, **e.details},
                status=e.status
            ) from e

        if status == HTTP_CONFLICT:
            logger.debug(f"Video {video_id} is already in the playlist")
            return AppendResult(added=False)

        logger.debug(f"Added video {video_id} to playlist {playlist_id}")
        return AppendResult(added=True)

    # =========================================================================
    # Account Listings
    # =========================================================================

    async def list_subscriptions(self) -> list[Channel]:
        """
        Return the user's subscribed channels, de-duplicated by id.

        Raises:
            AuthError, ApiError: If the listing fails.
        """
        channels: list[Channel] = []
        seen: set[str] = set()
        async for item in self._paginate("subscriptions", {"part": "snippet", "mine": "true"}):
            channel = Channel.from_subscription(item)
            if channel is None or channel.id in seen:
                continue
            seen.add(channel.id)
            channels.append(channel)

        logger.info(f"Fetched {len(channels)} subscriptions")
        return channels

    async def list_playlists(self) -> list[PlaylistInfo]:
        """
        Return the user's own playlists.

        Raises:
            AuthError, ApiError: If the listing fails.
        """
        playlists = [
            PlaylistInfo.from_api(item)
            async for item in self._paginate("playlists", {"part": "snippet", "mine": "true"})
        ]
        logger.info(f"Fetched {len(playlists)} playlists")
        return playlists
