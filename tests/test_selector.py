from datetime import date, datetime, timezone

from conftest import make_comment, make_post

from redditreel.config import RedditConfig
from redditreel.errors import RedditTransportError
from redditreel.selector import COMMENT_FETCH_MARGIN, PostSelector, is_renderable_shape


class FakeClient:
    def __init__(self, listing=None, post=None, comments=None, error=None):
        self.listing = listing or []
        self.post = post
        self.comments = comments or []
        self.error = error
        self.calls = []

    def fetch_listing(self, subreddit, sort, limit):
        self.calls.append(("listing", subreddit, sort, limit))
        if self.error:
            raise self.error
        return self.listing

    def fetch_post(self, subreddit, post_id):
        self.calls.append(("post", subreddit, post_id))
        if self.error:
            raise self.error
        return self.post

    def fetch_comments(self, subreddit, post_id, limit, sort):
        self.calls.append(("comments", subreddit, post_id, limit, sort))
        if self.error:
            raise self.error
        return self.comments


def ts(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp()


def selector(client, log, **config):
    return PostSelector(RedditConfig(**config), client, log)


# --- listing mode ---------------------------------------------------------


def test_ranks_by_score_and_takes_batch(log):
    posts = [make_post(id="a", score=10), make_post(id="b", score=30), make_post(id="c", score=20)]
    chosen = selector(FakeClient(listing=posts), log, batch_size=2).select_posts()
    assert [p.id for p in chosen] == ["b", "c"]


def test_equal_scores_keep_listing_order(log):
    posts = [make_post(id="x", score=5), make_post(id="y", score=5), make_post(id="z", score=5)]
    chosen = selector(FakeClient(listing=posts), log, batch_size=3).select_posts()
    assert [p.id for p in chosen] == ["x", "y", "z"]


def test_scan_limit_and_sort_are_passed_through(log):
    client = FakeClient()
    selector(client, log, subreddit="tifu", sort="hot", posts_to_scan=17).select_posts()
    assert client.calls == [("listing", "tifu", "hot", 17)]


def test_min_upvotes_filter_and_bypass(log):
    low = make_post(id="low", score=3)
    assert selector(FakeClient(listing=[low]), log, min_post_upvotes=100).select_posts() == []
    chosen = selector(
        FakeClient(listing=[low]), log, min_post_upvotes=100, bypass_post_filters=True,
    ).select_posts()
    assert [p.id for p in chosen] == ["low"]


def test_min_comments_filter(log):
    quiet = make_post(num_comments=2)
    assert selector(FakeClient(listing=[quiet]), log, min_post_comments=5).select_posts() == []


def test_date_range_is_inclusive_by_utc_day(log):
    posts = [
        make_post(id="before", created_utc=ts(2024, 1, 9, 23)),
        make_post(id="first", created_utc=ts(2024, 1, 10, 0)),
        make_post(id="last", created_utc=ts(2024, 1, 12, 23)),
        make_post(id="after", created_utc=ts(2024, 1, 13, 0)),
    ]
    chosen = selector(
        FakeClient(listing=posts), log,
        start_date=date(2024, 1, 10), end_date=date(2024, 1, 12), batch_size=10,
    ).select_posts()
    assert sorted(p.id for p in chosen) == ["first", "last"]


def test_nsfw_excluded_unless_allowed(log):
    nsfw = make_post(over_18=True)
    assert selector(FakeClient(listing=[nsfw]), log).select_posts() == []
    assert selector(FakeClient(listing=[nsfw]), log, allow_nsfw=True).select_posts() == [nsfw]


def test_shape_filter():
    assert is_renderable_shape(make_post())
    assert is_renderable_shape(make_post(url="https://i.redd.it/photo.JPG"))
    assert not is_renderable_shape(make_post(url="https://news.example.com/story"))
    assert not is_renderable_shape(make_post(is_video=True))


def test_external_links_are_skipped_in_listing(log):
    link = make_post(id="ext", url="https://news.example.com/story")
    own = make_post(id="own")
    chosen = selector(FakeClient(listing=[link, own]), log, batch_size=5).select_posts()
    assert [p.id for p in chosen] == ["own"]


def test_fetch_error_means_no_posts(log):
    client = FakeClient(error=RedditTransportError("down"))
    assert selector(client, log).select_posts() == []


# --- URL mode -------------------------------------------------------------


def test_url_mode_fetches_exact_post(log):
    post = make_post(id="1abcde", subreddit="tifu")
    client = FakeClient(post=post)
    chosen = selector(
        client, log, post_url="https://www.reddit.com/r/tifu/comments/1abcde/title/",
    ).select_posts()
    assert chosen == [post]
    assert client.calls == [("post", "tifu", "1abcde")]


def test_url_mode_thresholds_and_bypass(log):
    post = make_post(score=5, num_comments=1)
    url = "https://www.reddit.com/r/AskReddit/comments/abc123/"
    assert selector(FakeClient(post=post), log, post_url=url, min_post_upvotes=10).select_posts() == []
    assert selector(FakeClient(post=post), log, post_url=url, min_post_comments=10).select_posts() == []
    assert selector(
        FakeClient(post=post), log, post_url=url, min_post_upvotes=10, bypass_post_filters=True,
    ).select_posts() == [post]


def test_url_mode_bad_url(log):
    client = FakeClient()
    assert selector(client, log, post_url="https://example.com/nothing").select_posts() == []
    assert client.calls == []


# --- comments -------------------------------------------------------------


def test_comment_fetch_over_requests(log):
    client = FakeClient()
    selector(client, log, comment_sort="controversial").select_comments(make_post(), 4)
    assert client.calls == [("comments", "AskReddit", "abc123", 4 * 3 + COMMENT_FETCH_MARGIN, "controversial")]


def test_comment_exclusions(log):
    comments = [
        make_comment(id="empty", body="   "),
        make_comment(id="deleted", author="[deleted]"),
        make_comment(id="mod", stickied=True),
        make_comment(id="short", body="lol same"),
        make_comment(id="good1"),
        make_comment(id="good2"),
        make_comment(id="good3"),
    ]
    chosen = selector(FakeClient(comments=comments), log).select_comments(make_post(), 2)
    assert [c.id for c in chosen] == ["good1", "good2"]


def test_comment_score_filter_and_bypass(log):
    comments = [make_comment(id="low", score=1), make_comment(id="high", score=99)]
    picked = selector(FakeClient(comments=comments), log, min_comment_score=10).select_comments(make_post(), 5)
    assert [c.id for c in picked] == ["high"]
    picked = selector(
        FakeClient(comments=comments), log, min_comment_score=10, bypass_comment_score_filter=True,
    ).select_comments(make_post(), 5)
    assert [c.id for c in picked] == ["low", "high"]


def test_comment_keywords_match_case_insensitively(log):
    comments = [
        make_comment(id="cat", body="My CAT knocked everything off the table."),
        make_comment(id="dog", body="My dog ate the homework, honestly."),
    ]
    picked = selector(
        FakeClient(comments=comments), log, comment_keywords=["cat"],
    ).select_comments(make_post(), 5)
    assert [c.id for c in picked] == ["cat"]


def test_comment_fetch_error_gives_empty_list(log):
    client = FakeClient(error=RedditTransportError("timeout"))
    assert selector(client, log).select_comments(make_post(), 3) == []


def test_zero_comments_requested_skips_fetch(log):
    client = FakeClient()
    assert selector(client, log).select_comments(make_post(), 0) == []
    assert client.calls == []


def test_zero_thresholds_let_negative_scores_through(log):
    downvoted = make_post(id="neg", score=-3, num_comments=0)
    assert selector(FakeClient(), log).passes_filters(downvoted)
    chosen = selector(FakeClient(listing=[downvoted]), log).select_posts()
    assert [p.id for p in chosen] == ["neg"]


def test_url_mode_zero_thresholds_are_off(log):
    downvoted = make_post(score=-3, num_comments=0)
    url = "https://www.reddit.com/r/AskReddit/comments/abc123/"
    assert selector(FakeClient(post=downvoted), log, post_url=url).select_posts() == [downvoted]
