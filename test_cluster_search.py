from conftest import make_article, make_source
from cluster_search import score_cluster, search_clusters
from story_clustering import StoryCluster
from text_normalizer import term_set


def _single(title, summary="", category="general", source_id="civil-beat"):
    return StoryCluster([make_article(title, summary=summary, category=category,
                                      source=make_source(source_id))])


def _pair(title, summary="", category="general"):
    return StoryCluster([
        make_article(title, summary=summary, category=category, source=make_source("civil-beat")),
        make_article(title, summary=summary, category=category, source=make_source("maui-now")),
    ])


def test_title_and_summary_points():
    cluster = _single("Council approves budget", summary="The budget now goes to the mayor.")
    # budget: 10 (title) + 3 (summary); council: 10
    assert score_cluster(cluster, term_set("council budget")) == 23


def test_multi_source_boost():
    cluster = _pair("Council approves budget")
    assert score_cluster(cluster, term_set("budget")) == 15


def test_results_sorted_by_score_and_zero_excluded():
    summary_only = _single("Rail line delayed", summary="Budget concerns slowed the rail line.")
    title_match = _single("Budget shortfall looms")
    corroborated = _pair("Budget approved")
    unrelated = _single("Surf report")

    results = search_clusters([summary_only, title_match, corroborated, unrelated], "budget")

    assert results == [corroborated, title_match, summary_only]


def test_category_filter_and_limit():
    politics = _single("Budget vote", category="politics")
    business = _single("Budget surplus for hotels", category="business")

    assert search_clusters([politics, business], "budget", category="business") == [business]
    assert len(search_clusters([politics, business], "budget", limit=1)) == 1


def test_empty_query_returns_clusters_unscored():
    clusters = [_single("A story", category="politics"), _single("Another story")]

    assert search_clusters(clusters, "") == clusters
    assert search_clusters(clusters, "   ", category="politics") == clusters[:1]
    assert search_clusters(clusters, "", limit=1) == clusters[:1]


def test_no_matches():
    assert search_clusters([_single("Surf report")], "volcano") == []
