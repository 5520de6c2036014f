import asyncio
import threading
from datetime import datetime, timezone

import pytest

import story_pipeline
from conftest import make_article, make_source
from news_config import PipelineSettings
from search_index import SearchIndex
from story_pipeline import StoryPipeline, format_digest
from story_ranking import StoryRanker


def _batch():
    now = datetime.now(timezone.utc)
    return [
        make_article("Governor signs housing bill", source=make_source("civil-beat"),
                     category="politics", published_at=now, keywords=("governor", "housing")),
        make_article("Governor signs housing bill", source=make_source("star-advertiser"),
                     category="politics", published_at=now, keywords=("governor", "housing")),
        make_article("Surf report: waves building", source=make_source("maui-now", priority=3),
                     category="community", published_at=now),
    ]


def test_process_batch_publishes_clusters_and_index():
    index = SearchIndex()
    pipeline = StoryPipeline(search_index=index)

    clusters = pipeline.process_batch(_batch())

    assert pipeline.clusters == clusters
    assert sorted(c.article_count for c in clusters) == [1, 2]
    assert pipeline.search_index is index
    assert len(index) == 3
    assert pipeline.last_refresh is not None
    assert pipeline.stats()["multi_source_clusters"] == 1


def test_queries():
    pipeline = StoryPipeline()
    pipeline.process_batch(_batch())

    top = pipeline.top_stories(limit=1)
    assert top[0].article_count == 2
    assert top[0].importance_score is not None

    assert pipeline.search_stories("housing")[0].lead.title == "Governor signs housing bill"
    assert {d.title for d in pipeline.search_documents("surf")} == {"Surf report: waves building"}
    assert pipeline.suggest("hou") == ["housing"]


def test_top_stories_with_tag_override():
    pipeline = StoryPipeline()
    clusters = pipeline.process_batch(_batch())
    surf = next(c for c in clusters if c.article_count == 1)

    tagged = pipeline.top_stories(tag="waves", tag_overrides={surf.id: "waves"})

    assert [c.id for c in tagged] == [surf.id]
    assert tagged[0].tag_override is True


def test_refresh_fetches_and_publishes(monkeypatch):
    async def fake_fetch(feeds, max_concurrent, timeout):
        return _batch()

    monkeypatch.setattr(story_pipeline, "fetch_all_feeds", fake_fetch)
    pipeline = StoryPipeline(settings=PipelineSettings(), feeds=[])

    assert asyncio.run(pipeline.refresh()) is True
    assert len(pipeline.articles) == 3
    assert pipeline.is_refreshing is False


def test_failed_refresh_keeps_previous_batch(monkeypatch):
    pipeline = StoryPipeline()
    previous = pipeline.process_batch(_batch())

    async def broken_fetch(feeds, max_concurrent, timeout):
        raise RuntimeError("boom")

    monkeypatch.setattr(story_pipeline, "fetch_all_feeds", broken_fetch)

    assert asyncio.run(pipeline.refresh()) is False
    assert pipeline.clusters == previous
    assert len(pipeline.search_index) == 3


def test_empty_fetch_keeps_previous_batch(monkeypatch):
    pipeline = StoryPipeline()
    previous = pipeline.process_batch(_batch())

    async def empty_fetch(feeds, max_concurrent, timeout):
        return []

    monkeypatch.setattr(story_pipeline, "fetch_all_feeds", empty_fetch)

    assert asyncio.run(pipeline.refresh()) is False
    assert pipeline.clusters == previous


def test_refresh_skips_when_already_running():
    pipeline = StoryPipeline()
    pipeline.is_refreshing = True
    assert asyncio.run(pipeline.refresh()) is False


def test_run_forever_stops_after_iterations(monkeypatch):
    calls = []

    async def fake_fetch(feeds, max_concurrent, timeout):
        calls.append(1)
        return _batch()

    monkeypatch.setattr(story_pipeline, "fetch_all_feeds", fake_fetch)
    pipeline = StoryPipeline(settings=PipelineSettings(refresh_interval_minutes=0))

    asyncio.run(pipeline.run_forever(max_iterations=2))

    assert len(calls) == 2


def test_format_digest():
    pipeline = StoryPipeline()
    pipeline.process_batch(_batch())

    digest = format_digest(pipeline.top_stories(limit=5))

    assert "Governor signs housing bill" in digest
    assert "#1 | Score:" in digest


@pytest.mark.parametrize("settings", [PipelineSettings(threshold=2.0)])
def test_invalid_settings_rejected(settings):
    with pytest.raises(ValueError):
        StoryPipeline(settings=settings)


def test_injected_empty_index_and_ranker_are_kept():
    index = SearchIndex()
    ranker = StoryRanker()
    assert len(index) == 0

    pipeline = StoryPipeline(search_index=index, ranker=ranker)
    pipeline.process_batch(_batch())

    assert pipeline.search_index is index
    assert pipeline.ranker is ranker
    assert len(index) == 3


def test_readers_see_clusters_and_index_from_the_same_batch(monkeypatch):
    old_story = make_article("Old council story", source=make_source("civil-beat"),
                             published_at=datetime.now(timezone.utc))
    pipeline = StoryPipeline()
    pipeline.process_batch([old_story])

    observed = []
    readers = []
    publish = pipeline.search_index.publish

    def publish_then_read(snapshot):
        publish(snapshot)
        # A reader on another thread arriving right after the index swap
        reader = threading.Thread(target=lambda: observed.append(pipeline.stats()))
        reader.start()
        reader.join(timeout=0.2)
        readers.append(reader)

    monkeypatch.setattr(pipeline.search_index, "publish", publish_then_read)
    pipeline.process_batch(_batch())

    for reader in readers:
        reader.join(timeout=5)
    assert len(observed) == 1
    seen = observed[0]
    assert seen['articles'] == seen['index']['documents'] == 3
    assert seen['clusters'] == 2
