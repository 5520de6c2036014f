import textwrap

from news_config import PipelineSettings, load_settings, load_sources_config

CONFIG = textwrap.dedent("""
    sources:
      - id: civil-beat
        name: Honolulu Civil Beat
        short_name: Civil Beat
        priority: 1
        feeds:
          - https://www.civilbeat.org/feed/
      - id: maui-now
        name: Maui Now
        priority: 3
        feeds:
          - https://mauinow.com/feed/
          - https://mauinow.com/category/news/feed/
      - name: Missing id
        feeds:
          - https://example.com/feed/
    clustering:
      threshold: 0.3
    refresh:
      interval_minutes: 10
""")


def test_load_sources_config(tmp_path):
    path = tmp_path / "news.yaml"
    path.write_text(CONFIG)

    feeds = load_sources_config(str(path))

    assert [f['url'] for f in feeds] == [
        "https://www.civilbeat.org/feed/",
        "https://mauinow.com/feed/",
        "https://mauinow.com/category/news/feed/",
    ]
    civil_beat = feeds[0]['source']
    assert civil_beat.short_name == "Civil Beat"
    assert feeds[1]['source'].short_name == "Maui Now"
    assert feeds[1]['source'].priority == 3


def test_load_settings_merges_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    path = tmp_path / "news.yaml"
    path.write_text(CONFIG)

    settings = load_settings(str(path))

    assert settings.threshold == 0.3
    assert settings.refresh_interval_minutes == 10
    assert settings.max_cluster_size == PipelineSettings().max_cluster_size
    assert settings.log_level == "INFO"


def test_missing_file_gives_defaults(tmp_path):
    missing = str(tmp_path / "nope.yaml")

    assert load_sources_config(missing) == []
    assert load_settings(missing).threshold == 0.25


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text(CONFIG)
    monkeypatch.setenv("NEWS_CONFIG", str(path))

    assert len(load_sources_config()) == 3
