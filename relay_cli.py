"""ytwee - relay chat messages from YouTube to WeeChat."""

import argparse
import json
import sys
import time
from dataclasses import asdict
from datetime import datetime, timezone

import requests

from config_loader import CHAT_ID, CHANNEL_ID, NEXT_PAGE, PropertyStore, load_config
from youtube_reader import (
    MAX_MESSAGES,
    ChatPollError,
    NotLive,
    VideoNotFound,
    YouTubeAPIError,
    YouTubeChatReader,
)


def log(msg=""):
    """Print with timestamp to stderr so stdout stays clean for chat output."""
    now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    print(f"[{ts}] {msg}", file=sys.stderr, flush=True)


VIDEO_HELP = """\
This is the most expensive operation available (a search costs 100 quota
units), so use it once a stream, cache the result someplace and reuse it.
"""


class ChatRelay:
    """Runs relay subcommands against one config, property store and reader."""

    def __init__(self, config, store, reader=None):
        self.config = config
        self.store = store
        self.reader = reader if reader is not None else YouTubeChatReader(
            config["api_key"],
            timeout=config.get("timeout", 10),
            debug=config.get("debug_mode", False),
        )
        self.message_format = config.get("message_format", "{author} {text}")

    def _channel_id(self):
        channel_id = self.config.get("channel_id")
        if not channel_id:
            raise ValueError(
                "No channel id configured. "
                "Run `ytwee chanid <id>` or export YTCHANNELID."
            )
        return channel_id

    def _cursor_for(self, chat_id):
        """Return the cached cursor if it was issued for chat_id, else ''."""
        cursor = self.config.get("next_page", "")
        if cursor and self.config.get("chat_id") != chat_id:
            log(f"Chat changed to {chat_id}; starting from the beginning")
            return ""
        return cursor

    def _save_cursor(self, chat_id, cursor):
        self.store.set(CHAT_ID, chat_id)
        self.store.set(NEXT_PAGE, cursor)
        self.config["chat_id"] = chat_id
        self.config["next_page"] = cursor

    def _print_messages(self, messages):
        for message in messages:
            print(self.message_format.format(**asdict(message)), flush=True)

    def run(self, args):
        if args.command == "start":
            return self.start(limit=args.limit)
        if args.command == "chanid":
            return self.chanid(args.value)
        return getattr(self, args.command)()

    def start(self, limit=None):
        """Relay messages until interrupted, the chat fails, or limit polls."""
        channel_id = self._channel_id()
        log(f"Resolving live chat for channel {channel_id}")

        result = self.reader.resolve_chat_id(channel_id)
        if isinstance(result, NotLive):
            log(f"Not relaying: {result.reason}")
            return 0

        chat_id = result.chat_id
        cursor = self._cursor_for(chat_id)
        log(f"Relaying chat {chat_id}")

        polls = 0
        try:
            while limit is None or polls < limit:
                page = self.reader.poll_chat(chat_id, cursor)
                polls += 1

                self._print_messages(page.messages)
                cursor = page.next_cursor
                self._save_cursor(chat_id, cursor)

                if limit is not None and polls >= limit:
                    break

                # Respect YouTube's suggested poll interval
                time.sleep(max(page.polling_interval_ms / 1000, 1.0))
        except KeyboardInterrupt:
            log("Stopping relay...")

        return 0

    def video(self):
        video_id = self.reader.find_live_video_id(self._channel_id())
        if video_id:
            print(video_id)
        return 0

    def chatid(self):
        result = self.reader.resolve_chat_id(self._channel_id())
        if not isinstance(result, NotLive):
            print(result.chat_id)
        return 0

    def details(self):
        video_id = self.reader.find_live_video_id(self._channel_id())
        if not video_id:
            return 0
        details = self.reader.fetch_stream_details(video_id)
        print(json.dumps(details.raw, indent=2, sort_keys=True))
        return 0

    def messages(self):
        result = self.reader.resolve_chat_id(self._channel_id())
        if isinstance(result, NotLive):
            return 0

        cursor = self._cursor_for(result.chat_id)
        messages, next_cursor = self.reader.poll_messages(result.chat_id, cursor)
        self._print_messages(messages)
        self._save_cursor(result.chat_id, next_cursor)
        return 0

    def nextpage(self):
        print(self.config.get("next_page", ""))
        return 0

    def chanid(self, value=None):
        if value is not None:
            self.store.set(CHANNEL_ID, value)
            self.config["channel_id"] = value
            return 0
        print(self.config.get("channel_id", ""))
        return 0

    def islive(self):
        video_id = self.reader.check_live(self._channel_id())
        if video_id:
            print(video_id)
        return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="ytwee",
        description="relay chat messages from YouTube to WeeChat",
    )
    subparsers = parser.add_subparsers(dest="command")

    start_parser = subparsers.add_parser("start", help="start relaying messages")
    start_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="stop after this many polls (default: run until interrupted)",
    )
    subparsers.add_parser(
        "video",
        help="unique id of current live stream video",
        description=VIDEO_HELP,
    )
    subparsers.add_parser("chatid", help="live stream chat unique identifier")
    subparsers.add_parser("details", help="live stream details")
    subparsers.add_parser("messages", help=f"print up to {MAX_MESSAGES} messages")
    subparsers.add_parser("nextpage", help="print the next page token that has been cached")
    chanid_parser = subparsers.add_parser("chanid", help="set or get the channel ID")
    chanid_parser.add_argument("value", nargs="?", default=None)
    subparsers.add_parser(
        "islive",
        help="check if the channel is live (uses yt-dlp, no API quota)",
    )
    return parser


def main(argv=None, store=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    store = store if store is not None else PropertyStore()
    try:
        config = load_config(store)
    except ValueError as e:
        print("=" * 60, file=sys.stderr)
        print("ERROR: Configuration incomplete!", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        print(f"\n{e}", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        return 1

    relay = ChatRelay(config, store)
    try:
        return relay.run(args)
    except (ValueError, VideoNotFound, YouTubeAPIError, ChatPollError,
            requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
