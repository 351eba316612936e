"""
Post and comment selection.

Two modes:
    - post_url set: resolve exactly that post, optionally threshold-checked.
    - otherwise: scan a subreddit listing, filter, and rank by score.

Fetch failures are logged and turned into "no data" here, so the
orchestrator only ever sees lists.
"""

import re
from datetime import datetime, time, timedelta, timezone

from redditreel.config import RedditConfig
from redditreel.errors import RedditFetchError
from redditreel.reddit import Comment, Post, RedditClient, parse_post_url
from redditreel.runlog import RunLog, quote

# Margin on top of n*3 when over-fetching comments, to absorb filter losses.
COMMENT_FETCH_MARGIN = 20

DELETED_AUTHOR = "[deleted]"

_IMAGE_URL = re.compile(r"\.(jpe?g|gif|png)$", re.IGNORECASE)


def is_renderable_shape(post: Post) -> bool:
    """Self-post/discussion link or a direct image, and not a hosted video."""
    if post.is_video:
        return False
    url = post.url or ""
    if f"/r/{post.subreddit}/comments/".lower() in url.lower():
        return True
    return bool(_IMAGE_URL.search(url))


def _day_start(day) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class PostSelector:
    def __init__(self, config: RedditConfig, client: RedditClient, log: RunLog):
        self.config = config
        self.client = client
        self.log = log

    # -- posts -------------------------------------------------------------

    def select_posts(self) -> list[Post]:
        """Return the posts to process this run, in processing order."""
        if self.config.post_url:
            post = self._select_by_url(self.config.post_url)
            return [post] if post else []
        return self._select_from_listing()

    def _select_by_url(self, url: str) -> Post | None:
        parsed = parse_post_url(url)
        if parsed is None:
            self.log.error(f"Could not parse subreddit and post id from URL: {quote(url)}")
            return None
        subreddit, post_id = parsed
        self.log.info(f"Fetching post [cyan]{post_id}[/cyan] from r/{quote(subreddit)}")
        try:
            post = self.client.fetch_post(subreddit, post_id)
        except RedditFetchError as e:
            self.log.error(f"Could not fetch post {post_id}: {quote(str(e))}")
            return None

        cfg = self.config
        if not cfg.bypass_post_filters:
            # thresholds of 0 or less are off
            if 0 < cfg.min_post_comments and post.num_comments < cfg.min_post_comments:
                self.log.warn(
                    f"Post {post.id} has {post.num_comments} comments, "
                    f"below the minimum of {cfg.min_post_comments}"
                )
                return None
            if 0 < cfg.min_post_upvotes and post.score < cfg.min_post_upvotes:
                self.log.warn(
                    f"Post {post.id} has score {post.score}, "
                    f"below the minimum of {cfg.min_post_upvotes}"
                )
                return None
        return post

    def _select_from_listing(self) -> list[Post]:
        cfg = self.config
        self.log.info(
            f"Scanning r/{quote(cfg.subreddit)} ({cfg.sort}, up to {cfg.posts_to_scan} posts)"
        )
        try:
            candidates = self.client.fetch_listing(cfg.subreddit, cfg.sort, cfg.posts_to_scan)
        except RedditFetchError as e:
            self.log.error(f"Could not fetch r/{quote(cfg.subreddit)}: {quote(str(e))}")
            return []

        if cfg.bypass_post_filters:
            eligible = list(candidates)
        else:
            eligible = [p for p in candidates if self.passes_filters(p)]
        # sorted() is stable, so equal scores keep listing order
        ranked = sorted(eligible, key=lambda p: p.score, reverse=True)
        selected = ranked[: cfg.batch_size]
        self.log.detail(
            f"{len(candidates)} fetched, {len(eligible)} eligible, {len(selected)} selected"
        )
        return selected

    def passes_filters(self, post: Post) -> bool:
        """Date window, score, comment count, NSFW and shape checks."""
        cfg = self.config
        created = post.created
        if cfg.start_date and created < _day_start(cfg.start_date):
            return False
        if cfg.end_date and created >= _day_start(cfg.end_date) + timedelta(days=1):
            return False
        if 0 < cfg.min_post_upvotes and post.score < cfg.min_post_upvotes:
            return False
        if 0 < cfg.min_post_comments and post.num_comments < cfg.min_post_comments:
            return False
        if post.over_18 and not cfg.allow_nsfw:
            return False
        return is_renderable_shape(post)

    # -- comments ----------------------------------------------------------

    def select_comments(self, post: Post, count: int) -> list[Comment]:
        """Pick up to `count` top-level comments worth narrating."""
        if count <= 0:
            return []
        limit = count * 3 + COMMENT_FETCH_MARGIN
        try:
            fetched = self.client.fetch_comments(
                post.subreddit, post.id, limit, self.config.comment_sort,
            )
        except RedditFetchError as e:
            self.log.warn(f"Could not fetch comments for {post.id}: {quote(str(e))}")
            return []

        selected = [c for c in fetched if self.keep_comment(c)][:count]
        self.log.detail(f"{len(selected)} of {len(fetched)} fetched comments kept for {post.id}")
        return selected

    def keep_comment(self, comment: Comment) -> bool:
        cfg = self.config
        body = comment.body or ""
        if not body.strip():
            return False
        if comment.author == DELETED_AUTHOR or comment.stickied:
            return False
        if (
            not cfg.bypass_comment_score_filter
            and cfg.min_comment_score is not None
            and comment.score < cfg.min_comment_score
        ):
            return False
        if cfg.comment_keywords:
            lowered = body.lower()
            if not any(k.lower() in lowered for k in cfg.comment_keywords):
                return False
        return len(body) > cfg.min_comment_length
