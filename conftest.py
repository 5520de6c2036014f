from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from news_types import Article, Source

NOW = datetime(2024, 3, 14, 12, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_source(source_id="civil-beat", priority=1, name=None, short_name=None):
    name = name or source_id.replace('-', ' ').title()
    return Source(id=source_id, name=name, short_name=short_name or name, priority=priority)


def make_article(title="City Council Approves Budget", summary="",
                 source=None, published_at=None, category="general",
                 keywords=(), article_id=None, minutes_ago=None, image_url=None):
    if published_at is None:
        published_at = NOW - timedelta(minutes=minutes_ago or 0)
    article_id = article_id or f"article-{next(_ids)}"
    return Article(
        id=article_id,
        title=title,
        url=f"https://example.com/{article_id}",
        summary=summary,
        published_at=published_at,
        source=source or make_source(),
        category=category,
        keywords=keywords,
        image_url=image_url,
    )


@pytest.fixture
def now():
    return NOW
