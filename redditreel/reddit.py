"""
Reddit JSON client for redditreel.

Reddit serves listings as {"kind": "Listing", "data": {"children": [...]}},
where every child is itself {"kind": "t1"|"t3"|"more", "data": {...}}.
Children are decoded into Post / Comment / More / Unknown right here, so
nothing downstream ever looks at a raw payload.

Failures are raised as RedditNotFoundError, RedditTransportError or
RedditMalformedError (all RedditFetchError).
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from redditreel.config import RedditConfig
from redditreel.errors import (
    RedditMalformedError,
    RedditNotFoundError,
    RedditTransportError,
)

BASE_URL = "https://www.reddit.com"

_POST_URL_RE = re.compile(
    r"reddit\.com/r/(?P<subreddit>[^/]+)/comments/(?P<post_id>[^/?#]+)", re.IGNORECASE
)


@dataclass(frozen=True)
class Post:
    id: str
    subreddit: str
    title: str
    author: str = ""
    score: int = 0
    selftext: str = ""
    num_comments: int = 0
    created_utc: float = 0.0
    permalink: str = ""
    url: str = ""
    is_video: bool = False
    over_18: bool = False

    @property
    def created(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc)

    @property
    def link(self) -> str:
        return f"{BASE_URL}{self.permalink}" if self.permalink.startswith("/") else self.permalink


@dataclass(frozen=True)
class Comment:
    id: str
    author: str
    body: str
    score: int = 0
    depth: int = 0
    stickied: bool = False
    post_id: str = ""


@dataclass(frozen=True)
class More:
    """Placeholder for 'load more comments' stubs."""
    count: int = 0
    children: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Unknown:
    kind: str
    data: dict = field(default_factory=dict)


Candidate = Post | Comment | More | Unknown


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _field(data: dict, key: str, kind: type | tuple, default=None, required: bool = False):
    value = data.get(key, default)
    if value is None:
        if required:
            raise RedditMalformedError(f"Missing required field '{key}'")
        return default
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if kind is int and isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise RedditMalformedError(
            f"Field '{key}' has type {type(value).__name__}, expected {getattr(kind, '__name__', kind)}"
        )
    return value


def _decode_post(data: dict) -> Post:
    return Post(
        id=_field(data, "id", str, required=True),
        subreddit=_field(data, "subreddit", str, ""),
        title=_field(data, "title", str, required=True),
        author=_field(data, "author", str, ""),
        score=_field(data, "score", int, 0),
        selftext=_field(data, "selftext", str, ""),
        num_comments=_field(data, "num_comments", int, 0),
        created_utc=_field(data, "created_utc", float, 0.0),
        permalink=_field(data, "permalink", str, ""),
        url=_field(data, "url", str, ""),
        is_video=_field(data, "is_video", bool, False),
        over_18=_field(data, "over_18", bool, False),
    )


def _decode_comment(data: dict) -> Comment:
    link_id = _field(data, "link_id", str, "")
    return Comment(
        id=_field(data, "id", str, required=True),
        author=_field(data, "author", str, ""),
        body=_field(data, "body", str, ""),
        score=_field(data, "score", int, 0),
        depth=_field(data, "depth", int, 0),
        stickied=_field(data, "stickied", bool, False),
        post_id=link_id.removeprefix("t3_"),
    )


def decode_child(child) -> Candidate:
    """Decode one listing child into its typed variant."""
    if not isinstance(child, dict):
        raise RedditMalformedError(f"Listing child is {type(child).__name__}, expected object")
    kind = child.get("kind")
    data = child.get("data")
    if not isinstance(kind, str) or not isinstance(data, dict):
        raise RedditMalformedError("Listing child lacks 'kind' or 'data'")
    if kind == "t3":
        return _decode_post(data)
    if kind == "t1":
        return _decode_comment(data)
    if kind == "more":
        children = data.get("children") or []
        return More(count=_field(data, "count", int, 0), children=tuple(str(c) for c in children))
    return Unknown(kind=kind, data=data)


def decode_listing(payload) -> list[Candidate]:
    """Decode a {"kind": "Listing", ...} object into typed children."""
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise RedditMalformedError("Expected a Listing object")
    children = payload["data"].get("children")
    if not isinstance(children, list):
        raise RedditMalformedError("Listing has no 'children' array")
    return [decode_child(child) for child in children]


def parse_post_url(url: str) -> tuple[str, str] | None:
    """Extract (subreddit, post_id) from a Reddit post permalink or URL."""
    match = _POST_URL_RE.search(url or "")
    if not match:
        return None
    return match.group("subreddit"), match.group("post_id")


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class RedditClient:
    """Thin wrapper over Reddit's public .json endpoints."""

    def __init__(self, config: RedditConfig, client: httpx.Client | None = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=BASE_URL,
            follow_redirects=True,
            timeout=config.timeout_seconds,
        )
        self._headers = {
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        }

    def close(self):
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RedditClient":
        return self

    def __exit__(self, *exc):
        self.close()

    def _get_json(self, path: str, params: dict | None = None):
        params = {"raw_json": 1, **(params or {})}
        try:
            resp = self._client.get(path, params=params, headers=self._headers)
        except httpx.HTTPError as e:
            raise RedditTransportError(f"GET {path} failed: {e}") from e
        if resp.status_code == 404:
            raise RedditNotFoundError(f"GET {path}: not found")
        if resp.status_code >= 400:
            raise RedditTransportError(f"GET {path}: HTTP {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise RedditMalformedError(f"GET {path}: response is not JSON") from e
        if isinstance(payload, dict) and payload.get("error") == 404:
            raise RedditNotFoundError(f"GET {path}: not found")
        return payload

    def _thread(self, subreddit: str, post_id: str, params: dict | None = None) -> list:
        payload = self._get_json(f"/r/{subreddit}/comments/{post_id}.json", params)
        if not isinstance(payload, list) or not payload:
            raise RedditMalformedError(
                f"Thread {subreddit}/{post_id}: expected [post listing, comment listing]"
            )
        return payload

    def fetch_post(self, subreddit: str, post_id: str) -> Post:
        """Fetch a single post by subreddit and id."""
        payload = self._thread(subreddit, post_id, {"limit": 1})
        posts = [c for c in decode_listing(payload[0]) if isinstance(c, Post)]
        if not posts:
            raise RedditNotFoundError(f"Thread {subreddit}/{post_id} contains no post")
        return posts[0]

    def fetch_listing(self, subreddit: str, sort: str, limit: int) -> list[Post]:
        """Fetch up to `limit` posts from /r/<subreddit>/<sort>, in listing order."""
        payload = self._get_json(f"/r/{subreddit}/{sort}/.json", {"limit": limit})
        return [c for c in decode_listing(payload) if isinstance(c, Post)]

    def fetch_comments(self, subreddit: str, post_id: str, limit: int, sort: str) -> list[Comment]:
        """Fetch top-level comments of a post in the requested sort order."""
        payload = self._thread(
            subreddit, post_id, {"limit": limit, "depth": 1, "sort": sort},
        )
        if len(payload) < 2:
            return []
        return [c for c in decode_listing(payload[1]) if isinstance(c, Comment)]
