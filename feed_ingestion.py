"""
RSS Feed Ingestion Module
Fetches articles from news feeds concurrently and normalizes them into
Article records: stripped summaries, pre-classified category and
frequency-ranked keywords.
"""

import asyncio
import hashlib
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

import feedparser
import httpx
import structlog
from dateutil import parser as date_parser

from news_types import DEFAULT_CATEGORY, MAX_KEYWORDS, Article, ArticleValidationError, Source

logger = structlog.get_logger()

USER_AGENT = "StoryEngine/1.0 (+https://github.com/story-engine)"
DEFAULT_TIMEOUT = 30
DEFAULT_MAX_CONCURRENT = 8
SUMMARY_MAX_LENGTH = 300

CATEGORY_KEYWORDS = {
    'politics': [
        'legislature', 'senator', 'representative', 'governor', 'mayor', 'bill', 'law',
        'election', 'vote', 'campaign', 'democrat', 'republican', 'council', 'committee',
        'testimony', 'hearing', 'oha', 'dhhl', 'sovereignty', 'ceded lands', 'crown lands',
        'federal', 'state', 'county', 'city council', 'house', 'senate', 'capitol',
    ],
    'business': [
        'economy', 'business', 'company', 'corporation', 'stock', 'investment', 'revenue',
        'profit', 'loss', 'employment', 'jobs', 'layoff', 'hiring', 'startup', 'entrepreneur',
        'real estate', 'development', 'construction', 'hotel', 'resort', 'retail', 'tourism',
        'airline', 'hawaiian airlines', 'agriculture', 'export', 'import', 'trade',
    ],
    'environment': [
        'environment', 'climate', 'ocean', 'coral', 'reef', 'conservation', 'endangered',
        'wildlife', 'species', 'pollution', 'renewable', 'solar', 'wind', 'energy',
        'sustainability', 'watershed', 'forest', 'invasive', 'native', 'ecosystem',
        'sea level', 'carbon', 'emissions', 'volcano', 'lava', 'earthquake', 'tsunami',
    ],
    'community': [
        'community', 'neighborhood', 'school', 'education', 'student', 'university',
        'culture', 'festival', 'event', 'celebration', 'arts', 'music', 'hula',
        'merrie monarch', 'aloha', 'ohana', 'keiki', 'kupuna', 'nonprofit', 'volunteer',
        'church', 'temple', 'health', 'hospital', 'medical', 'sports', 'athletics',
    ],
    'emergency': [
        'fire', 'wildfire', 'hurricane', 'storm', 'flood', 'emergency', 'evacuation',
        'rescue', 'police', 'crime', 'accident', 'crash', 'traffic', 'road closure',
        'power outage', 'water', 'alert', 'warning', 'missing', 'death', 'fatal',
    ],
    'military': [
        'military', 'army', 'navy', 'air force', 'marine', 'coast guard', 'pearl harbor',
        'schofield', 'hickam', 'kaneohe', 'pohakuloa', 'base', 'rimpac', 'veterans',
        'defense', 'pacific command', 'indo-pacific',
    ],
}

KEYWORD_STOPWORDS = frozenset([
    'that', 'this', 'with', 'from', 'have', 'been', 'were', 'they', 'their',
    'will', 'would', 'could', 'should', 'about', 'after', 'before', 'other',
    'which', 'being', 'more', 'some', 'than', 'when', 'what', 'there', 'into',
    'also', 'said', 'says', 'year', 'years', 'according', 'hawaii', 'hawaiian',
    'honolulu', 'maui', 'oahu', 'kauai', 'island', 'state', 'county', 'city',
])

_KEYWORD_RE = re.compile(r'\b[a-z]{4,}\b')
_HTML_TAG_RE = re.compile(r'<[^>]+>')
_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)


class EntryParseError(ValueError):
    """A feed entry that cannot become an Article."""


def make_article_id(url: str, source_id: str) -> str:
    """Stable article id from source id + URL."""
    digest = hashlib.sha256(url.encode()).hexdigest()[:12]
    return f"{source_id}-{digest}"


def classify_article(title: str, summary: str) -> str:
    """
    Pick the category whose keyword list matches the text most often.

    Returns:
        Category name, or 'general' when nothing matches
    """
    text = f"{title} {summary}".lower()

    top_category = DEFAULT_CATEGORY
    top_score = 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > top_score:
            top_category, top_score = category, score

    return top_category


def extract_keywords(title: str, summary: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Most frequent 4+ letter words, first occurrence breaking ties."""
    words = _KEYWORD_RE.findall(f"{title} {summary}".lower())
    counts = Counter(w for w in words if w not in KEYWORD_STOPWORDS)
    # Counter preserves insertion order, and most_common() sorts stably
    return [word for word, _ in counts.most_common(limit)]


def _clean_snippet(text: str, max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """
    Strip HTML tags, collapse whitespace and cut at a word boundary.
    """
    text = _HTML_TAG_RE.sub(' ', text or '')
    text = ' '.join(text.split())

    if len(text) > max_length:
        text = text[:max_length].strip()
        last_space = text.rfind(' ')
        if last_space > max_length - 50:
            text = text[:last_space]
        text += '...'

    return text


def _parse_date(entry: Dict) -> datetime:
    """
    Parse publication date from an RSS entry.

    Entries without any date are stamped with the current time. A date that
    is present but unparsable is rejected rather than guessed.
    """
    date_str = (
        entry.get('published') or
        entry.get('updated') or
        entry.get('pubDate')
    )

    if not date_str:
        return datetime.now(timezone.utc)

    try:
        dt = date_parser.parse(date_str)
    except (ValueError, OverflowError) as e:
        raise EntryParseError(f"unparsable date {date_str!r}") from e

    # Ensure timezone-aware
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _extract_image(entry: Dict) -> Optional[str]:
    """
    Lead image URL: media:content, then media:thumbnail, then an image
    enclosure, then the first <img> in the entry content.
    """
    for media in (entry.get('media_content') or []) + (entry.get('media_thumbnail') or []):
        if media.get('url'):
            return media['url']

    for enclosure in entry.get('enclosures') or []:
        if (enclosure.get('type') or '').startswith('image') and enclosure.get('href'):
            return enclosure['href']

    for content in entry.get('content') or []:
        match = _IMG_SRC_RE.search(content.get('value') or '')
        if match:
            return match.group(1)

    return None


def _parse_entry(entry: Dict, source: Source) -> Optional[Article]:
    """
    Parse a single RSS entry into an Article.

    Returns:
        Article, or None when the entry has no link or title

    Raises:
        EntryParseError / ArticleValidationError for malformed entries
    """
    url = entry.get('link') or entry.get('id')
    title = (entry.get('title') or '').strip()
    if not url or not title:
        return None

    published_at = _parse_date(entry)

    content = entry.get('content') or [{}]
    raw_summary = (
        entry.get('summary', '') or
        entry.get('description', '') or
        content[0].get('value', '')
    )
    summary = _clean_snippet(raw_summary)

    return Article(
        id=make_article_id(url, source.id),
        title=title,
        url=url,
        summary=summary,
        author=entry.get('author') or None,
        image_url=_extract_image(entry),
        published_at=published_at,
        source=source,
        category=classify_article(title, summary),
        keywords=extract_keywords(title, summary),
    )


def parse_feed_content(content: bytes, source: Source) -> List[Article]:
    """Turn a fetched feed body into Articles, skipping bad entries."""
    feed = feedparser.parse(content)
    articles = []

    for entry in feed.entries:
        try:
            article = _parse_entry(entry, source)
        except (EntryParseError, ArticleValidationError) as e:
            logger.warning("failed_to_parse_entry",
                         source=source.id, error=str(e))
            continue
        if article:
            articles.append(article)

    return articles


async def fetch_feed(url: str, source: Source,
                     client: Optional[httpx.AsyncClient] = None,
                     timeout: float = DEFAULT_TIMEOUT) -> List[Article]:
    """
    Fetch and parse a single RSS feed.

    Args:
        url: RSS feed URL
        source: Source the feed belongs to
        client: Shared HTTP client; a short-lived one is created if omitted
        timeout: Request timeout in seconds (only used without a client)

    Returns:
        List of Article objects; empty when the feed fails
    """
    try:
        logger.info("fetching_feed", source=source.id, url=url)
        if client is None:
            async with httpx.AsyncClient(timeout=timeout,
                                         headers={'User-Agent': USER_AGENT},
                                         follow_redirects=True) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()

    except httpx.TimeoutException:
        logger.error("feed_timeout", source=source.id, url=url)
        return []
    except httpx.HTTPError as e:
        logger.error("feed_http_error", source=source.id, url=url, error=str(e))
        return []

    articles = parse_feed_content(response.content, source)

    logger.info("feed_fetched_successfully",
               source=source.id,
               articles_count=len(articles))

    return articles


async def fetch_all_feeds(feed_configs: List[Dict],
                          max_concurrent: int = DEFAULT_MAX_CONCURRENT,
                          timeout: float = DEFAULT_TIMEOUT,
                          transport: Optional[httpx.AsyncBaseTransport] = None) -> List[Article]:
    """
    Fetch multiple RSS feeds concurrently.

    Args:
        feed_configs: List of feed config dicts with keys:
                      - url: Feed URL
                      - source: Source object
        max_concurrent: Upper bound on simultaneous requests
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (used by tests)

    Returns:
        Articles from every feed that succeeded, de-duplicated by URL,
        newest first
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrent))

    async with httpx.AsyncClient(timeout=timeout,
                                 headers={'User-Agent': USER_AGENT},
                                 follow_redirects=True,
                                 transport=transport) as client:

        async def bounded_fetch(config: Dict) -> List[Article]:
            async with semaphore:
                return await fetch_feed(config['url'], config['source'], client=client)

        # One task per feed
        results = await asyncio.gather(
            *(bounded_fetch(config) for config in feed_configs),
            return_exceptions=True
        )

    seen_urls = set()
    all_articles = []
    failed = 0
    for config, result in zip(feed_configs, results):
        if isinstance(result, BaseException):
            failed += 1
            logger.error("feed_fetch_failed",
                        source=config['source'].id,
                        url=config['url'],
                        error=repr(result))
            continue
        for article in result:
            if article.url in seen_urls:
                continue
            seen_urls.add(article.url)
            all_articles.append(article)

    all_articles.sort(key=lambda a: a.published_at, reverse=True)

    logger.info("all_feeds_fetched",
               total_articles=len(all_articles),
               feeds_attempted=len(feed_configs),
               feeds_failed=failed)

    return all_articles
