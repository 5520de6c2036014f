"""
Configuration loading
Feed sources and pipeline settings come from one YAML file
(config/news.yaml by default, or the NEWS_CONFIG environment variable).
"""

import os
from typing import Dict, List, Optional

import structlog
import yaml

from news_types import ArticleValidationError, Source

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/news.yaml"
CONFIG_PATH_ENV = "NEWS_CONFIG"


class PipelineSettings:
    """Tunables for clustering, ingestion and the refresh loop"""

    def __init__(self,
                 threshold: float = 0.25,
                 max_cluster_size: int = 10,
                 max_age_hours: float = 72,
                 max_concurrent_feeds: int = 8,
                 timeout_seconds: float = 30,
                 refresh_interval_minutes: float = 5,
                 log_level: str = "INFO"):
        self.threshold = threshold
        self.max_cluster_size = max_cluster_size
        self.max_age_hours = max_age_hours
        self.max_concurrent_feeds = max_concurrent_feeds
        self.timeout_seconds = timeout_seconds
        self.refresh_interval_minutes = refresh_interval_minutes
        self.log_level = log_level

    def __repr__(self):
        return (f"PipelineSettings(threshold={self.threshold}, "
                f"max_cluster_size={self.max_cluster_size}, "
                f"refresh_interval_minutes={self.refresh_interval_minutes})")


def resolve_config_path(config_path: Optional[str] = None) -> str:
    return config_path or os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH


def _read_yaml(config_path: str) -> Dict:
    try:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("config_not_found", path=config_path)
        return {}
    except yaml.YAMLError as e:
        logger.error("config_load_error", path=config_path, error=str(e))
        return {}


def load_sources_config(config_path: Optional[str] = None) -> List[Dict]:
    """
    Load feed sources from YAML config.

    Returns:
        List of feed config dicts with keys: url, source
    """
    config_path = resolve_config_path(config_path)
    config = _read_yaml(config_path)

    feeds = []
    for entry in config.get('sources') or []:
        try:
            source = Source(
                id=entry['id'],
                name=entry['name'],
                short_name=entry.get('short_name', ''),
                url=entry.get('url', ''),
                type=entry.get('type', ''),
                region=entry.get('region', ''),
                priority=entry.get('priority', 3),
            )
        except (KeyError, TypeError, ArticleValidationError) as e:
            logger.warning("invalid_source_config", entry=entry, error=str(e))
            continue

        for url in entry.get('feeds') or []:
            feeds.append({'url': url, 'source': source})

    logger.info("sources_loaded",
               path=config_path,
               total_feeds=len(feeds))

    return feeds


def load_settings(config_path: Optional[str] = None) -> PipelineSettings:
    """Load PipelineSettings, falling back to defaults for missing keys."""
    config = _read_yaml(resolve_config_path(config_path))

    clustering = config.get('clustering') or {}
    ingestion = config.get('ingestion') or {}
    refresh = config.get('refresh') or {}
    logging_section = config.get('logging') or {}
    defaults = PipelineSettings()

    return PipelineSettings(
        threshold=float(clustering.get('threshold', defaults.threshold)),
        max_cluster_size=int(clustering.get('max_cluster_size', defaults.max_cluster_size)),
        max_age_hours=float(clustering.get('max_age_hours', defaults.max_age_hours)),
        max_concurrent_feeds=int(ingestion.get('max_concurrent', defaults.max_concurrent_feeds)),
        timeout_seconds=float(ingestion.get('timeout_seconds', defaults.timeout_seconds)),
        refresh_interval_minutes=float(refresh.get('interval_minutes', defaults.refresh_interval_minutes)),
        log_level=os.getenv("LOG_LEVEL") or logging_section.get('level', defaults.log_level),
    )
