"""
Search Index
Inverted index over articles with IDF-weighted relevance scoring and
prefix autocomplete.

The index owns one published snapshot at a time. rebuild() (build() then
publish()) assembles a new snapshot without holding the lock and publishes
it in a single assignment, so concurrent readers see either the old index or
the new one.
"""

import math
import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

import structlog

from news_types import Article, Source
from text_normalizer import normalize, normalize_with_surface

logger = structlog.get_logger()

MIN_SUGGEST_PREFIX = 2


@dataclass(frozen=True)
class Document:
    """Search-facing projection of an Article"""

    id: str
    title: str
    summary: str
    url: str
    source: Source
    category: str
    published_at: datetime
    image_url: Optional[str] = None
    score: Optional[float] = None

    @classmethod
    def from_article(cls, article: Article) -> 'Document':
        return cls(
            id=article.id,
            title=article.title,
            summary=article.summary,
            url=article.url,
            source=article.source,
            category=article.category,
            published_at=article.published_at,
            image_url=article.image_url,
        )


class _Snapshot:
    """Index state. Mutated only while being built, never after publication."""

    def __init__(self):
        self.documents: Dict[str, Document] = {}
        self.postings: Dict[str, Set[str]] = defaultdict(set)
        self.doc_frequencies: Counter = Counter()
        # term -> surface word -> occurrences, for readable suggestions
        self.surface_forms: Dict[str, Counter] = defaultdict(Counter)
        self.doc_terms: Dict[str, Set[str]] = {}
        # doc id -> (term, surface word) -> occurrences contributed by that doc
        self.doc_surfaces: Dict[str, Counter] = {}
        self.built_at: Optional[datetime] = None

    def remove(self, doc_id: str):
        for (term, surface), occurrences in self.doc_surfaces.pop(doc_id, Counter()).items():
            forms = self.surface_forms[term]
            forms[surface] -= occurrences
            if forms[surface] <= 0:
                del forms[surface]

        for term in self.doc_terms.pop(doc_id, ()):
            postings = self.postings[term]
            postings.discard(doc_id)
            self.doc_frequencies[term] -= 1
            if not postings:
                del self.postings[term]
                del self.doc_frequencies[term]
                self.surface_forms.pop(term, None)
        self.documents.pop(doc_id, None)

    def add(self, article: Article):
        if article.id in self.documents:
            self.remove(article.id)

        text = f"{article.title} {article.summary} {article.source.name}"
        surfaces = Counter(normalize_with_surface(text))
        for (term, surface), occurrences in surfaces.items():
            self.surface_forms[term][surface] += occurrences
        terms = {term for term, _ in surfaces}

        # Document frequency counts each document once per term
        for term in terms:
            self.postings[term].add(article.id)
            self.doc_frequencies[term] += 1

        self.doc_terms[article.id] = terms
        self.doc_surfaces[article.id] = surfaces
        self.documents[article.id] = Document.from_article(article)

    @property
    def total_docs(self) -> int:
        return len(self.documents)


def _most_recent_first(doc: Document):
    return (-doc.published_at.timestamp(), doc.id)


class SearchIndex:
    """
    Full-text index over an article batch.

    Typical lifecycle: construct once, rebuild() on every ingestion cycle,
    query from any number of threads in between.
    """

    def __init__(self, articles: Optional[Iterable[Article]] = None):
        self._lock = threading.RLock()
        self._snapshot = _Snapshot()
        if articles is not None:
            self.rebuild(articles)

    def _current(self) -> _Snapshot:
        with self._lock:
            return self._snapshot

    def add_document(self, article: Article):
        """Add (or replace) a single article in the published index."""
        with self._lock:
            self._snapshot.add(article)

    @staticmethod
    def build(articles: Iterable[Article]) -> _Snapshot:
        """Build an unpublished snapshot; pass it to publish() to go live."""
        snapshot = _Snapshot()
        for article in articles:
            snapshot.add(article)
        snapshot.built_at = datetime.now(timezone.utc)
        return snapshot

    def publish(self, snapshot: _Snapshot):
        """Make a snapshot from build() the live index in one step."""
        with self._lock:
            self._snapshot = snapshot

        logger.info("search_index_rebuilt",
                   documents=snapshot.total_docs,
                   terms=len(snapshot.postings))

    def rebuild(self, articles: Iterable[Article]):
        """
        Replace the whole index with one built from `articles`.

        Args:
            articles: Full article batch for this ingestion cycle
        """
        self.publish(self.build(articles))

    def clear(self):
        with self._lock:
            self._snapshot = _Snapshot()

    def search(self, query: str, limit: int = 20,
               category: Optional[str] = None,
               source: Optional[str] = None,
               from_date: Optional[datetime] = None,
               to_date: Optional[datetime] = None) -> List[Document]:
        """
        Relevance-ranked search.

        Each matching query term adds ln((N + 1) / (df + 1)) to a document's
        score, so rarer terms count for more. A query with no usable terms
        falls back to the most recent documents.

        Args:
            query: Free text
            limit: Maximum number of results
            category: Only documents in this category
            source: Only documents from this source id
            from_date: Only documents published at or after this time
            to_date: Only documents published at or before this time

        Returns:
            Documents with score set, best first
        """
        terms = normalize(query or '')
        if not terms:
            return self.recent(limit, category=category, source=source,
                               from_date=from_date, to_date=to_date)

        with self._lock:
            snapshot = self._snapshot
            scores: Dict[str, float] = defaultdict(float)
            total_docs = snapshot.total_docs

            for term in terms:
                postings = snapshot.postings.get(term)
                if not postings:
                    continue
                idf = math.log((total_docs + 1) / (snapshot.doc_frequencies[term] + 1))
                for doc_id in postings:
                    scores[doc_id] += idf

            results = [
                replace(snapshot.documents[doc_id], score=score)
                for doc_id, score in scores.items()
            ]

        results = [
            doc for doc in results
            if _matches(doc, category, source, from_date, to_date)
        ]
        results.sort(key=lambda doc: (-doc.score,) + _most_recent_first(doc))
        return results[:max(0, limit)]

    def recent(self, limit: int = 20,
               category: Optional[str] = None,
               source: Optional[str] = None,
               from_date: Optional[datetime] = None,
               to_date: Optional[datetime] = None) -> List[Document]:
        """Most recent documents first, with the same filters as search()."""
        with self._lock:
            docs = [
                doc for doc in self._snapshot.documents.values()
                if _matches(doc, category, source, from_date, to_date)
            ]
        docs.sort(key=_most_recent_first)
        return docs[:max(0, limit)]

    def suggest(self, prefix: str, limit: int = 10) -> List[str]:
        """
        Autocomplete from indexed terms.

        Terms match when the stemmed term or one of the words it was indexed
        from starts with the prefix. Each suggestion is the term's most common
        surface word, ranked by how many documents contain it.
        """
        prefix = (prefix or '').strip().lower()
        if len(prefix) < MIN_SUGGEST_PREFIX:
            return []

        with self._lock:
            snapshot = self._snapshot
            matches = []
            for term, postings in snapshot.postings.items():
                forms = snapshot.surface_forms.get(term) or Counter({term: 1})
                if not (term.startswith(prefix) or any(f.startswith(prefix) for f in forms)):
                    continue
                display = min(forms.items(), key=lambda item: (-item[1], item[0]))[0]
                matches.append((len(postings), display))

        matches.sort(key=lambda match: (-match[0], match[1]))

        suggestions = []
        for _, display in matches:
            if display not in suggestions:
                suggestions.append(display)
            if len(suggestions) >= limit:
                break
        return suggestions

    def get_stats(self) -> dict:
        snapshot = self._current()
        return {
            'documents': snapshot.total_docs,
            'terms': len(snapshot.postings),
            'last_rebuilt': snapshot.built_at,
        }

    def __len__(self):
        return self._current().total_docs


def _matches(doc: Document, category: Optional[str], source: Optional[str],
             from_date: Optional[datetime], to_date: Optional[datetime]) -> bool:
    if category and category != 'all' and doc.category != category:
        return False
    if source and doc.source.id != source:
        return False
    if from_date and doc.published_at < from_date:
        return False
    if to_date and doc.published_at > to_date:
        return False
    return True
