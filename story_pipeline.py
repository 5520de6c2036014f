"""
Story Pipeline
Owns the current article batch, story clusters and search index, and keeps
them fresh: Ingest → Cluster → Index → (Rank / Search on demand)
"""

import asyncio
import textwrap
import threading
from datetime import datetime, timezone
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

import structlog
from dotenv import load_dotenv

from cluster_search import search_clusters
from feed_ingestion import fetch_all_feeds
from news_config import PipelineSettings, load_settings, load_sources_config
from news_types import Article
from search_index import Document, SearchIndex
from src.utils.logging import setup_logging
from story_clustering import StoryCluster, StoryClusterer
from story_ranking import StoryRanker, filter_by_category
from story_tags import apply_tag_overrides, filter_by_tag

logger = structlog.get_logger()


class PublishedBatch(NamedTuple):
    """The article batch and clusters readers currently see."""
    articles: List[Article]
    clusters: List[StoryCluster]
    refreshed_at: Optional[datetime]


EMPTY_BATCH = PublishedBatch(articles=[], clusters=[], refreshed_at=None)


class StoryPipeline:
    """
    Application context for one running aggregator.

    Construct once, call refresh() (or process_batch() with an article batch
    you already have) as often as needed, and query in between. Readers
    always see a complete batch: clusters and index are published together.
    """

    def __init__(self,
                 settings: Optional[PipelineSettings] = None,
                 feeds: Optional[List[Dict]] = None,
                 search_index: Optional[SearchIndex] = None,
                 ranker: Optional[StoryRanker] = None):
        self.settings = settings if settings is not None else PipelineSettings()
        self.feeds = feeds if feeds is not None else []
        self.search_index = search_index if search_index is not None else SearchIndex()
        self.ranker = ranker if ranker is not None else StoryRanker()
        self.clusterer = StoryClusterer(
            threshold=self.settings.threshold,
            max_cluster_size=self.settings.max_cluster_size,
            max_age_hours=self.settings.max_age_hours
        )

        # Guards publication of batch + index; readers take it too
        self._publish_lock = threading.RLock()
        self._batch = EMPTY_BATCH
        self.is_refreshing = False

    @property
    def articles(self) -> List[Article]:
        return self._batch.articles

    @property
    def clusters(self) -> List[StoryCluster]:
        return self._batch.clusters

    @property
    def last_refresh(self) -> Optional[datetime]:
        return self._batch.refreshed_at

    def process_batch(self, articles: Sequence[Article],
                      now: Optional[datetime] = None) -> List[StoryCluster]:
        """
        Cluster and index an article batch, then publish both.

        CPU-bound; refresh() runs it in a worker thread. Clusters and index
        are built first and go live together under the publish lock. If
        anything raises, nothing is published and the previous batch stays live.
        """
        articles = list(articles)
        clusters = self.clusterer.cluster(articles, now=now)
        snapshot = self.search_index.build(articles)

        with self._publish_lock:
            self.search_index.publish(snapshot)
            self._batch = PublishedBatch(
                articles=articles,
                clusters=clusters,
                refreshed_at=datetime.now(timezone.utc)
            )
        return clusters

    async def refresh(self) -> bool:
        """
        Fetch all feeds and rebuild clusters and index.

        Returns:
            True when a new batch was published
        """
        if self.is_refreshing:
            logger.info("refresh_already_running")
            return False

        self.is_refreshing = True
        start_time = datetime.now(timezone.utc)
        logger.info("refresh_started", feeds=len(self.feeds))

        try:
            articles = await fetch_all_feeds(
                self.feeds,
                max_concurrent=self.settings.max_concurrent_feeds,
                timeout=self.settings.timeout_seconds
            )

            if not articles:
                logger.warning("no_articles_fetched", keeping_clusters=len(self.clusters))
                return False

            # O(n^2) clustering stays off the event loop
            clusters = await asyncio.to_thread(self.process_batch, articles)

            elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.info("refresh_completed",
                       duration_seconds=round(elapsed, 2),
                       articles=len(articles),
                       clusters=len(clusters))
            return True

        except Exception as e:
            logger.error("refresh_failed", error=str(e), exc_info=True)
            return False

        finally:
            self.is_refreshing = False

    async def run_forever(self, max_iterations: Optional[int] = None):
        """Refresh every settings.refresh_interval_minutes."""
        interval = self.settings.refresh_interval_minutes * 60
        iteration = 0

        while max_iterations is None or iteration < max_iterations:
            await self.refresh()
            iteration += 1
            if max_iterations is None or iteration < max_iterations:
                await asyncio.sleep(interval)

    # Queries; each reads under the publish lock so it sees one batch

    def top_stories(self, limit: int = 20,
                    category: Optional[str] = None,
                    tag: Optional[str] = None,
                    tag_overrides: Optional[Mapping] = None,
                    now: Optional[datetime] = None) -> List[StoryCluster]:
        with self._publish_lock:
            clusters = self._batch.clusters
        clusters = apply_tag_overrides(clusters, tag_overrides)
        if tag:
            clusters = filter_by_tag(clusters, tag)
        else:
            clusters = filter_by_category(clusters, category)
        return self.ranker.top_stories(clusters, limit=limit, now=now)

    def search_stories(self, query: str, limit: int = 20,
                       category: Optional[str] = None) -> List[StoryCluster]:
        with self._publish_lock:
            clusters = self._batch.clusters
        return search_clusters(clusters, query, limit=limit, category=category)

    def search_documents(self, query: str, limit: int = 20, **filters) -> List[Document]:
        with self._publish_lock:
            return self.search_index.search(query, limit=limit, **filters)

    def suggest(self, prefix: str, limit: int = 10) -> List[str]:
        with self._publish_lock:
            return self.search_index.suggest(prefix, limit=limit)

    def stats(self) -> dict:
        with self._publish_lock:
            batch = self._batch
            index_stats = self.search_index.get_stats()
        return {
            'articles': len(batch.articles),
            'clusters': len(batch.clusters),
            'multi_source_clusters': sum(1 for c in batch.clusters if c.article_count > 1),
            'last_refresh': batch.refreshed_at,
            'is_refreshing': self.is_refreshing,
            'index': index_stats,
        }


def format_digest(stories: Sequence[StoryCluster]) -> str:
    """
    Format ranked stories into a plain-text digest.

    Args:
        stories: Clusters with importance_score set (already sorted)
    """
    output = []
    output.append("=" * 80)
    output.append("TOP STORIES")
    output.append(f"{datetime.now(timezone.utc).strftime('%B %d, %Y - %H:%M UTC')}")
    output.append(f"{len(stories)} stories (from {sum(s.article_count for s in stories)} articles)")
    output.append("=" * 80)

    for i, story in enumerate(stories, 1):
        output.append(f"\n#{i} | Score: {story.importance_score:.1f} | Category: {story.category.upper()}")
        output.append(f"   {story.lead.title}")
        output.append(f"   Sources: {story.article_count} ({', '.join(story.sources[:3])})")
        output.append(f"   Updated: {story.latest_update.strftime('%Y-%m-%d %H:%M UTC')}")
        if story.lead.summary:
            output.append(textwrap.fill(story.lead.summary, width=75,
                                        initial_indent='   ', subsequent_indent='   '))

    output.append("\n" + "=" * 80)
    return "\n".join(output)


async def run_once(config_path: Optional[str] = None, limit: int = 15) -> str:
    settings = load_settings(config_path)
    feeds = load_sources_config(config_path)
    if not feeds:
        logger.error("no_feeds_configured")
        return ""

    pipeline = StoryPipeline(settings=settings, feeds=feeds)
    await pipeline.refresh()
    return format_digest(pipeline.top_stories(limit=limit))


def main():
    """Entry point"""
    load_dotenv()
    settings = load_settings()
    setup_logging(settings.log_level)

    digest = asyncio.run(run_once())
    if digest:
        print("\n" + digest)


if __name__ == "__main__":
    main()
