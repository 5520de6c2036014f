"""
Story Clustering Module
Groups articles from different outlets that report the same event into
story clusters, using pairwise lexical similarity and a greedy grouping pass.
"""

import copy
import functools
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import structlog

from news_types import Article
from story_similarity import ArticleFeatures, feature_similarity

logger = structlog.get_logger()

DEFAULT_THRESHOLD = 0.25
DEFAULT_MAX_CLUSTER_SIZE = 10
DEFAULT_MAX_AGE_HOURS = 72

# Multi-source stories are sorted by size once either side is bigger than this
SIZE_ORDERING_MIN = 2


def _lead_sort_key(article: Article):
    # priority ascending, then newest first
    return (article.source.priority, -article.published_at.timestamp())


class StoryCluster:
    """A group of articles judged to report the same event"""

    def __init__(self, articles: Sequence[Article]):
        if not articles:
            raise ValueError("a story cluster needs at least one article")

        ordered = sorted(articles, key=_lead_sort_key)
        self.lead = ordered[0]
        self.related = ordered[1:]

        prefix = 'cluster' if self.related else 'single'
        self.id = f"{prefix}-{self.lead.id}"
        self.category = self.lead.category
        self.article_count = len(ordered)
        self.latest_update = max(a.published_at for a in ordered)

        sources = []
        for article in ordered:
            if article.source.short_name not in sources:
                sources.append(article.source.short_name)
        self.sources = sources

        # Set later by ranking / tag overlays
        self.importance_score: Optional[float] = None
        self.tag: Optional[str] = None
        self.tag_override = False

    @property
    def articles(self) -> List[Article]:
        return [self.lead] + list(self.related)

    def copy(self, **changes) -> 'StoryCluster':
        """Shallow copy with some attributes replaced."""
        clone = copy.copy(self)
        for name, value in changes.items():
            setattr(clone, name, value)
        return clone

    def __repr__(self):
        return f"StoryCluster(id={self.id}, articles={self.article_count}, lead='{self.lead.title[:50]}...')"


def _compare_for_display(a: StoryCluster, b: StoryCluster) -> int:
    count_diff = b.article_count - a.article_count
    if count_diff != 0 and (a.article_count > SIZE_ORDERING_MIN or b.article_count > SIZE_ORDERING_MIN):
        return count_diff
    if a.latest_update == b.latest_update:
        return 0
    return -1 if a.latest_update > b.latest_update else 1


def sort_for_display(clusters: List[StoryCluster]) -> List[StoryCluster]:
    """
    Coarse display ordering: big multi-source stories first, otherwise newest
    first. Use story_ranking for importance ordering.
    """
    return sorted(clusters, key=functools.cmp_to_key(_compare_for_display))


class StoryClusterer:
    """
    Greedy single-pass clusterer.

    Edges above the threshold are visited strongest first. An edge either
    starts a new cluster, grows an existing one, or is skipped; two clusters
    that have both formed are never merged, which keeps clusters tight
    instead of drifting transitively.
    """

    def __init__(self,
                 threshold: float = DEFAULT_THRESHOLD,
                 max_cluster_size: int = DEFAULT_MAX_CLUSTER_SIZE,
                 max_age_hours: float = DEFAULT_MAX_AGE_HOURS):
        """
        Args:
            threshold: Minimum similarity for two articles to be linked (inclusive)
            max_cluster_size: Clusters stop growing at this many articles
            max_age_hours: Articles older than this are ignored
        """
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if max_cluster_size < 2:
            raise ValueError(f"max_cluster_size must be at least 2, got {max_cluster_size}")
        if max_age_hours <= 0:
            raise ValueError(f"max_age_hours must be positive, got {max_age_hours}")

        self.threshold = threshold
        self.max_cluster_size = max_cluster_size
        self.max_age_hours = max_age_hours

    def recent_articles(self, articles: Sequence[Article],
                        now: Optional[datetime] = None) -> List[Article]:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=self.max_age_hours)
        return [a for a in articles if a.published_at > cutoff]

    def scored_edges(self, articles: Sequence[Article]) -> List[Tuple[float, int, int]]:
        """
        All article pairs scoring at or above the threshold, strongest first.

        Returns:
            List of (similarity, i, j) with i < j
        """
        features = [ArticleFeatures(a) for a in articles]
        edges = []

        for i in range(len(features)):
            for j in range(i + 1, len(features)):
                score = feature_similarity(features[i], features[j])
                if score >= self.threshold:
                    edges.append((score, i, j))

        # Strongest first; index order keeps ties deterministic
        edges.sort(key=lambda edge: (-edge[0], edge[1], edge[2]))
        return edges

    def group(self, articles: Sequence[Article],
              edges: Sequence[Tuple[float, int, int]]) -> List[List[int]]:
        """
        Greedy grouping pass over sorted edges.

        Returns:
            Article index groups; every index appears in exactly one group
        """
        slots: List[List[int]] = []
        slot_sources: List[set] = []
        owner: List[Optional[int]] = [None] * len(articles)

        for _, i, j in edges:
            slot_i, slot_j = owner[i], owner[j]

            if slot_i is not None and slot_j is not None:
                # Same cluster already, or two formed clusters: never merge
                continue

            if slot_i is None and slot_j is None:
                if articles[i].source.id == articles[j].source.id:
                    continue
                owner[i] = owner[j] = len(slots)
                slots.append([i, j])
                slot_sources.append({articles[i].source.id, articles[j].source.id})
                continue

            slot, newcomer = (slot_i, j) if slot_i is not None else (slot_j, i)
            source_id = articles[newcomer].source.id
            if len(slots[slot]) >= self.max_cluster_size or source_id in slot_sources[slot]:
                continue

            slots[slot].append(newcomer)
            slot_sources[slot].add(source_id)
            owner[newcomer] = slot

        # Unassigned articles become singletons
        singletons = [[index] for index, slot in enumerate(owner) if slot is None]
        return slots + singletons

    def cluster(self, articles: Sequence[Article],
                now: Optional[datetime] = None) -> List[StoryCluster]:
        """
        Cluster articles into stories.

        Args:
            articles: Article batch from ingestion
            now: Reference time for the age filter (defaults to current UTC time)

        Returns:
            StoryCluster list in display order
        """
        recent = self.recent_articles(articles, now=now)
        if not recent:
            logger.info("no_recent_articles_to_cluster", total=len(articles))
            return []

        logger.info("clustering_articles",
                   count=len(recent),
                   dropped_as_stale=len(articles) - len(recent),
                   threshold=self.threshold)

        edges = self.scored_edges(recent)
        groups = self.group(recent, edges)

        clusters = [StoryCluster([recent[index] for index in group]) for group in groups]
        multi_source = sum(1 for c in clusters if c.article_count > 1)

        logger.info("clustering_complete",
                   total_clusters=len(clusters),
                   multi_source_clusters=multi_source,
                   singleton_clusters=len(clusters) - multi_source,
                   edges=len(edges))

        return sort_for_display(clusters)


def cluster_articles(articles: Sequence[Article],
                     threshold: float = DEFAULT_THRESHOLD,
                     max_cluster_size: int = DEFAULT_MAX_CLUSTER_SIZE,
                     max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
                     now: Optional[datetime] = None) -> List[StoryCluster]:
    """
    Main entry point: cluster a batch of articles into story clusters.

    Args:
        articles: List of Article objects
        threshold: Minimum pair similarity (inclusive)
        max_cluster_size: Maximum articles per cluster
        max_age_hours: Ignore articles older than this
        now: Reference time for the age filter

    Returns:
        List of StoryCluster objects
    """
    clusterer = StoryClusterer(
        threshold=threshold,
        max_cluster_size=max_cluster_size,
        max_age_hours=max_age_hours
    )
    return clusterer.cluster(articles, now=now)
