"""
Tag overrides for story clusters.

Editors can pin a tag onto a cluster id. Tags are a display/filtering overlay
only: clustering and ranking never look at them.
"""

import re
from collections import Counter
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from story_clustering import StoryCluster

MIN_TAG_LENGTH = 2
MAX_TAG_LENGTH = 30

_INVALID_TAG_CHARS = re.compile(r'[^a-z0-9-]')


class InvalidTagError(ValueError):
    pass


def normalize_tag(tag: str) -> str:
    """Lower-case a tag and replace anything but a-z, 0-9 and '-' with '-'."""
    if not isinstance(tag, str) or not tag.strip():
        raise InvalidTagError("tag is required")

    clean = _INVALID_TAG_CHARS.sub('-', tag.strip().lower())
    if not MIN_TAG_LENGTH <= len(clean) <= MAX_TAG_LENGTH:
        raise InvalidTagError(
            f"tag must be {MIN_TAG_LENGTH}-{MAX_TAG_LENGTH} characters, got {clean!r}"
        )
    return clean


def _override_tag(value: Union[str, Mapping, None]) -> Optional[str]:
    # Stored overrides may be bare strings or {"tag": ..., "updated_at": ...}
    if isinstance(value, Mapping):
        return value.get('tag')
    return value


def apply_tag_overrides(clusters: Sequence[StoryCluster],
                        overrides: Optional[Mapping[str, Union[str, Mapping]]]) -> List[StoryCluster]:
    """
    Overlay tags onto clusters.

    Args:
        clusters: Clusters from the latest run (left untouched)
        overrides: cluster id -> tag (or mapping with a 'tag' key)

    Returns:
        Copies of the clusters with tag and tag_override set
    """
    overrides = overrides or {}
    tagged = []
    for cluster in clusters:
        tag = _override_tag(overrides.get(cluster.id))
        if tag:
            tagged.append(cluster.copy(tag=tag, tag_override=True))
        else:
            tagged.append(cluster.copy(tag=cluster.category, tag_override=False))
    return tagged


def filter_by_tag(clusters: Sequence[StoryCluster], tag: Optional[str]) -> List[StoryCluster]:
    if not tag:
        return list(clusters)
    return [c for c in clusters if (c.tag or c.category) == tag]


def count_tags(clusters: Sequence[StoryCluster]) -> List[Tuple[str, int]]:
    """(tag, count) pairs, most used first."""
    counts = Counter(c.tag or c.category for c in clusters)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
