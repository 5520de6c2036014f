"""
Cluster Search
Free-text search that returns story clusters instead of raw documents.
"""

from typing import List, Optional, Sequence

from story_clustering import StoryCluster
from story_ranking import filter_by_category
from text_normalizer import term_set

TITLE_MATCH_POINTS = 10
SUMMARY_MATCH_POINTS = 3
MULTI_SOURCE_BOOST = 1.5


def score_cluster(cluster: StoryCluster, query_terms: set) -> float:
    """Score a cluster's lead article against normalized query terms."""
    title_terms = term_set(cluster.lead.title)
    summary_terms = term_set(cluster.lead.summary)

    score = 0.0
    for term in query_terms:
        if term in title_terms:
            score += TITLE_MATCH_POINTS
        if term in summary_terms:
            score += SUMMARY_MATCH_POINTS

    # Independent corroboration counts
    if cluster.article_count > 1:
        score *= MULTI_SOURCE_BOOST

    return score


def search_clusters(clusters: Sequence[StoryCluster], query: str,
                    limit: int = 20,
                    category: Optional[str] = None) -> List[StoryCluster]:
    """
    Search story clusters by their lead article.

    Args:
        clusters: Clusters to search
        query: Free text; blank (or all stopwords) returns the clusters unscored
        limit: Maximum results
        category: Optional category filter

    Returns:
        Matching clusters, best first
    """
    query_terms = term_set(query or '')
    if not query_terms:
        return filter_by_category(clusters, category)[:max(0, limit)]

    scored = []
    for cluster in filter_by_category(clusters, category):
        score = score_cluster(cluster, query_terms)
        if score > 0:
            scored.append((score, cluster))

    # Stable sort keeps the incoming order for equal scores
    scored.sort(key=lambda item: item[0], reverse=True)
    return [cluster for _, cluster in scored[:max(0, limit)]]
