"""YouTube live chat reader using the YouTube Data API v3 and yt-dlp."""

import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

import requests
import yt_dlp


API_BASE = "https://www.googleapis.com/youtube/v3"

# Upper bound the liveChatMessages endpoint accepts for maxResults
MAX_MESSAGES = 200

DEFAULT_POLL_INTERVAL_MS = 5000


def _log(msg):
    now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    print(f"[{ts}] {msg}", file=sys.stderr, flush=True)


class YouTubeAPIError(Exception):
    """Error response returned by the Data API."""

    def __init__(self, status, message):
        super().__init__(f"YouTube API error {status}: {message}")
        self.status = status
        self.message = message


class VideoNotFound(Exception):
    """No video matched the requested id."""

    def __init__(self, video_id):
        super().__init__(f"no video found for {video_id}")
        self.video_id = video_id


class ChatPollError(Exception):
    """A chat poll failed. ``cursor`` is the cursor the poll was made with."""

    def __init__(self, cursor, cause):
        super().__init__(f"failed to fetch chat messages: {cause}")
        self.cursor = cursor
        self.cause = cause


@dataclass(frozen=True)
class ChatMessage:
    id: str
    author: str
    text: str
    time: str

    @classmethod
    def from_item(cls, item):
        snippet = item.get("snippet") or {}
        author = item.get("authorDetails") or {}
        return cls(
            id=item.get("id", ""),
            author=author.get("displayName", ""),
            text=snippet.get("displayMessage", ""),
            time=snippet.get("publishedAt", ""),
        )


@dataclass(frozen=True)
class StreamDetails:
    """Live streaming metadata of a single video.

    ``raw`` keeps the ``liveStreamingDetails`` object exactly as the API
    returned it, for printing.
    """

    active_live_chat_id: Optional[str] = None
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None
    scheduled_start_time: Optional[str] = None
    concurrent_viewers: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data):
        data = data or {}
        return cls(
            active_live_chat_id=data.get("activeLiveChatId"),
            actual_start_time=data.get("actualStartTime"),
            actual_end_time=data.get("actualEndTime"),
            scheduled_start_time=data.get("scheduledStartTime"),
            concurrent_viewers=data.get("concurrentViewers"),
            raw=dict(data),
        )


class ChatPage(NamedTuple):
    messages: List[ChatMessage]
    next_cursor: str
    polling_interval_ms: int


@dataclass(frozen=True)
class Resolved:
    chat_id: str


@dataclass(frozen=True)
class NotLive:
    reason: str = ""


class YouTubeChatReader:
    """Reads YouTube live chat messages.

    Finds a channel's live broadcast with the search endpoint, looks up the
    broadcast's chat id, and pages through chat messages with an opaque
    cursor supplied by the caller. Every call is made exactly once; nothing
    is retried or cached.
    """

    def __init__(self, api_key, timeout=10, debug=False):
        self.api_key = api_key
        self.timeout = timeout
        self.debug = debug

    def _debug(self, msg):
        if self.debug:
            _log(msg)

    def _get(self, endpoint, params):
        """GET an API endpoint and return the decoded JSON body."""
        self._debug(f"GET {endpoint} {params}")
        resp = requests.get(
            f"{API_BASE}/{endpoint}",
            params=params,
            headers={"X-Goog-Api-Key": self.api_key},
            timeout=self.timeout,
        )
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            message = str(e)
            try:
                message = resp.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            raise YouTubeAPIError(resp.status_code, message) from e
        return resp.json()

    def find_live_video_id(self, channel_id):
        """Return the video id of the channel's current live stream, or None."""
        data = self._get("search", {
            "part": "id,snippet",
            "channelId": channel_id,
            "eventType": "live",
            "type": "video",
            "maxResults": 1,
        })

        items = data.get("items") or []
        if not items:
            self._debug(f"No live stream for channel {channel_id}")
            return None

        video_id = (items[0].get("id") or {}).get("videoId") or None
        title = (items[0].get("snippet") or {}).get("title", "")
        self._debug(f"Found live stream: {video_id} ({title})")
        return video_id

    def fetch_stream_details(self, video_id):
        """Fetch live streaming details for a video.

        Raises:
            ValueError if video_id is empty
            VideoNotFound if the API returns no video for the id
        """
        if not video_id:
            raise ValueError("video id is required")

        data = self._get("videos", {
            "part": "liveStreamingDetails",
            "id": video_id,
        })

        items = data.get("items") or []
        if not items:
            raise VideoNotFound(video_id)

        return StreamDetails.from_api(items[0].get("liveStreamingDetails"))

    def resolve_chat_id(self, channel_id):
        """Resolve the channel's active chat id.

        A failed details lookup is reported as NotLive rather than raised;
        a failed search is not.
        """
        video_id = self.find_live_video_id(channel_id)
        if not video_id:
            return NotLive("channel is not live")

        try:
            details = self.fetch_stream_details(video_id)
        except (VideoNotFound, YouTubeAPIError, requests.RequestException) as e:
            _log(f"Could not fetch stream details: {e}")
            return NotLive(str(e))

        if not details.active_live_chat_id:
            return NotLive(f"no active chat for {video_id}")

        return Resolved(details.active_live_chat_id)

    def poll_chat(self, chat_id, cursor=""):
        """Fetch one page of chat messages starting at cursor.

        Returns a ChatPage. When the response has no next page token the
        given cursor is returned unchanged.

        Raises:
            ChatPollError on any API or transport failure
        """
        params = {
            "liveChatId": chat_id,
            "part": "snippet,authorDetails",
            "maxResults": MAX_MESSAGES,
        }
        if cursor:
            params["pageToken"] = cursor

        try:
            data = self._get("liveChat/messages", params)
        except (YouTubeAPIError, requests.RequestException) as e:
            raise ChatPollError(cursor, e) from e

        messages = [
            ChatMessage.from_item(item)
            for item in (data.get("items") or [])[:MAX_MESSAGES]
        ]
        next_cursor = data.get("nextPageToken") or cursor
        interval = data.get("pollingIntervalMillis", DEFAULT_POLL_INTERVAL_MS)

        self._debug(f"Fetched {len(messages)} messages, next page {next_cursor}")
        return ChatPage(messages, next_cursor, interval)

    def poll_messages(self, chat_id, cursor=""):
        """Return (messages, next_cursor) for one page of chat."""
        page = self.poll_chat(chat_id, cursor)
        return page.messages, page.next_cursor

    def check_live(self, channel_id):
        """Use yt-dlp to find the channel's live video id without API quota.

        Returns None when the channel is not live.
        """
        url = f"https://www.youtube.com/channel/{channel_id}/live"

        ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
        }

        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            self._debug(f"yt-dlp: {e}")
            return None

        if not info or not info.get("is_live"):
            return None

        return info.get("id")
