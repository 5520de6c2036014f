"""
Story Ranking Module
Scores story clusters by importance: coverage, recency, category and how
authoritative the lead source is.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import structlog

from story_clustering import StoryCluster

logger = structlog.get_logger()

CATEGORY_WEIGHTS = {
    'emergency': 30,
    'politics': 20,
    'business': 15,
    'environment': 15,
    'military': 10,
    'community': 10,
    'general': 5,
}
DEFAULT_CATEGORY_WEIGHT = 5

RECENCY_WINDOW_HOURS = 50
MIN_PRIORITY = 1
MAX_PRIORITY = 3

ALL_CATEGORIES = 'all'


class StoryRanker:

    def __init__(self, category_weights: Optional[Dict[str, float]] = None,
                 default_category_weight: float = DEFAULT_CATEGORY_WEIGHT):
        self.category_weights = dict(category_weights or CATEGORY_WEIGHTS)
        self.default_category_weight = default_category_weight

    def calculate_size_score(self, cluster: StoryCluster) -> float:
        # More independent outlets = more important
        return cluster.article_count * 10

    def calculate_recency_score(self, cluster: StoryCluster,
                                now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        age_hours = (now - cluster.latest_update).total_seconds() / 3600
        return max(0.0, RECENCY_WINDOW_HOURS - age_hours)

    def calculate_category_score(self, cluster: StoryCluster) -> float:
        return self.category_weights.get(cluster.category, self.default_category_weight)

    def calculate_source_score(self, cluster: StoryCluster) -> float:
        priority = min(MAX_PRIORITY, max(MIN_PRIORITY, cluster.lead.source.priority))
        return (MAX_PRIORITY + 1 - priority) * 5

    def score(self, cluster: StoryCluster, now: Optional[datetime] = None) -> float:
        """Importance score; higher is more important."""
        return (
            self.calculate_size_score(cluster)
            + self.calculate_recency_score(cluster, now=now)
            + self.calculate_category_score(cluster)
            + self.calculate_source_score(cluster)
        )

    def top_stories(self, clusters: Sequence[StoryCluster], limit: int = 20,
                    now: Optional[datetime] = None) -> List[StoryCluster]:
        """
        Rank clusters by importance.

        Args:
            clusters: Clusters to rank (left untouched)
            limit: Maximum number of stories to return
            now: Reference time for recency (defaults to current UTC time)

        Returns:
            Copies of the top clusters with importance_score set, best first
        """
        now = now or datetime.now(timezone.utc)
        scored = [c.copy(importance_score=self.score(c, now=now)) for c in clusters]
        scored.sort(key=lambda c: c.importance_score, reverse=True)

        if scored:
            logger.debug("stories_ranked",
                        total=len(scored),
                        top_score=round(scored[0].importance_score, 1),
                        limit=limit)

        return scored[:max(0, limit)]


_default_ranker = StoryRanker()


def importance(cluster: StoryCluster, now: Optional[datetime] = None) -> float:
    return _default_ranker.score(cluster, now=now)


def top_stories(clusters: Sequence[StoryCluster], limit: int = 20,
                now: Optional[datetime] = None) -> List[StoryCluster]:
    return _default_ranker.top_stories(clusters, limit=limit, now=now)


def filter_by_category(clusters: Sequence[StoryCluster],
                       category: Optional[str]) -> List[StoryCluster]:
    """All clusters in a category; everything for None, '' or 'all'."""
    if not category or category == ALL_CATEGORIES:
        return list(clusters)
    return [c for c in clusters if c.category == category]
