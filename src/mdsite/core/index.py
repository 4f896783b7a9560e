"""Corpus index: immutable chronological, tag, and series views over a document set.

The index is rebuilt wholesale from the current documents on every pass and is
never edited in place. Its JSON form is deterministic, so rebuilding from an
unchanged corpus yields byte-identical output.
"""

import json
import logging
from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from mdsite.core.models import Document
from mdsite.core.utils.slug import label_key


logger = logging.getLogger(__name__)

CHRONOLOGICAL_PAGE = "index"
TAGS_PAGE = "tags"


class IndexEntry(BaseModel):
    """Per-document metadata needed by listings and cross-references."""
    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    source_path: str
    revised: Optional[datetime] = None
    description: Optional[str] = None
    authors: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    series: Optional[str] = None
    series_part: Optional[int] = None


class CorpusIndex(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: dict[str, IndexEntry] = {}
    chronological: tuple[str, ...] = ()
    tags: dict[str, tuple[str, ...]] = {}
    tag_labels: dict[str, str] = {}
    doc_tags: dict[str, tuple[str, ...]] = {}
    series: dict[str, tuple[str, ...]] = {}
    series_labels: dict[str, str] = {}
    paths: dict[str, str] = {}

    def to_json(self) -> str:
        """Deterministic JSON form of the index (sorted keys, stable ordering)."""
        return json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    def pages(self) -> tuple[str, ...]:
        """All index page keys this snapshot produces."""
        keys = [CHRONOLOGICAL_PAGE]
        if self.tags:
            keys.append(TAGS_PAGE)
        keys.extend(f"tag:{k}" for k in self.tags)
        keys.extend(f"series:{k}" for k in self.series)
        return tuple(keys)

    def pages_for(self, slug: str) -> tuple[str, ...]:
        """Index page keys that list the given document."""
        if slug not in self.entries:
            return ()
        keys = [CHRONOLOGICAL_PAGE]
        tags = self.doc_tags.get(slug, ())
        if tags:
            keys.append(TAGS_PAGE)
            keys.extend(f"tag:{k}" for k in tags)
        series = self.entries[slug].series
        if series:
            keys.append(f"series:{label_key(series)}")
        return tuple(keys)

    def page_members(self, key: str) -> tuple[str, ...]:
        """Slugs listed on an index page, in display order."""
        if key == CHRONOLOGICAL_PAGE:
            return tuple(e.slug for e in sorted(self.entries.values(), key=_newest_first_key))
        if key == TAGS_PAGE:
            return tuple(dict.fromkeys(s for k in sorted(self.tags) for s in self.tags[k]))
        kind, _, name = key.partition(":")
        if kind == "tag":
            return self.tags.get(name, ())
        if kind == "series":
            return self.series.get(name, ())
        raise KeyError(f"Unknown index page: {key}")

    def series_neighbours(self, slug: str) -> tuple[Optional[str], Optional[str]]:
        """Return (previous, next) slugs within the document's series."""
        entry = self.entries.get(slug)
        if entry is None or not entry.series:
            return None, None
        members = self.series.get(label_key(entry.series), ())
        i = members.index(slug)
        prev = members[i - 1] if i > 0 else None
        nxt = members[i + 1] if i + 1 < len(members) else None
        return prev, nxt


def _chrono_key(entry: IndexEntry) -> tuple:
    # Undated documents sort after every dated one; ties break by slug.
    if entry.revised is None:
        return (1, 0.0, entry.slug)
    return (0, entry.revised.timestamp(), entry.slug)


def _newest_first_key(entry: IndexEntry) -> tuple:
    if entry.revised is None:
        return (1, 0.0, entry.slug)
    return (0, -entry.revised.timestamp(), entry.slug)


def _series_key(entry: IndexEntry) -> tuple:
    part = entry.series_part if entry.series_part is not None else float("inf")
    return (part,) + _chrono_key(entry)


def rebuild(documents: Iterable[Document]) -> CorpusIndex:
    """Build a CorpusIndex from documents. Total: an empty corpus gives an empty index."""
    entries: dict[str, IndexEntry] = {}
    labels: dict[str, set[str]] = {}
    series_names: dict[str, set[str]] = {}
    doc_tags: dict[str, tuple[str, ...]] = {}

    for doc in sorted(documents, key=lambda d: d.slug):
        keys = []
        for keyword in doc.keywords:
            key = label_key(keyword)
            if key:
                keys.append(key)
                labels.setdefault(key, set()).add(keyword)
        doc_tags[doc.slug] = tuple(dict.fromkeys(keys))
        if doc.meta.series and label_key(doc.meta.series):
            series_names.setdefault(label_key(doc.meta.series), set()).add(doc.meta.series)
        entries[doc.slug] = IndexEntry(
            slug=doc.slug,
            title=doc.title,
            source_path=doc.source_path,
            revised=doc.revised,
            description=doc.meta.description,
            authors=doc.meta.authors,
            tags=doc_tags[doc.slug],
            series=doc.meta.series if doc.meta.series and label_key(doc.meta.series) else None,
            series_part=doc.meta.series_part,
        )

    tags: dict[str, list[IndexEntry]] = {}
    series: dict[str, list[IndexEntry]] = {}
    for entry in entries.values():
        for key in entry.tags:
            tags.setdefault(key, []).append(entry)
        if entry.series:
            series.setdefault(label_key(entry.series), []).append(entry)

    index = CorpusIndex(
        entries=entries,
        chronological=tuple(e.slug for e in sorted(entries.values(), key=_chrono_key)),
        tags={k: tuple(e.slug for e in sorted(tags[k], key=_newest_first_key)) for k in sorted(tags)},
        tag_labels={k: sorted(labels[k])[0] for k in sorted(labels)},
        doc_tags=doc_tags,
        series={k: tuple(e.slug for e in sorted(series[k], key=_series_key)) for k in sorted(series)},
        series_labels={k: sorted(series_names[k])[0] for k in sorted(series_names)},
        paths={e.source_path: e.slug for e in sorted(entries.values(), key=lambda e: e.source_path)},
    )
    logger.debug("index rebuilt: %d documents, %d tags, %d series", len(entries), len(index.tags), len(index.series))
    return index
