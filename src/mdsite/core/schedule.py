"""Incremental build scheduler: diff the corpus against BuildState and plan the minimal render set.

Each document is Unchanged, Added, Modified, or Removed according to its
content hash versus the prior record. A changed document forces a render of
itself and of every index page that lists it, where page membership comes
from the freshly rebuilt index plus the prior record of the document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from mdsite.core.errors import SchedulerStateMismatch
from mdsite.core.index import CorpusIndex, rebuild
from mdsite.core.models import Document
from mdsite.crud.state import BuildState, StateStamp


logger = logging.getLogger(__name__)

REBUILD = "rebuild"
FAIL = "fail"


class DocState(str, Enum):
    unchanged = "unchanged"
    added = "added"
    modified = "modified"
    removed = "removed"


@dataclass(frozen=True)
class BuildPlan:
    states: dict[str, DocState] = field(default_factory=dict)
    to_render: frozenset[str] = frozenset()
    to_index_only: frozenset[str] = frozenset()
    to_remove: frozenset[str] = frozenset()
    pages: frozenset[str] = frozenset()
    stale_pages: frozenset[str] = frozenset()
    full_rebuild: bool = False
    reason: Optional[str] = None

    def by_state(self, state: DocState) -> list[str]:
        return sorted(s for s, st in self.states.items() if st == state)

    @property
    def is_noop(self) -> bool:
        return not (self.to_render or self.to_remove or self.pages or self.stale_pages)


def _mismatch_reason(prior: BuildState, stamp: StateStamp) -> Optional[str]:
    have = prior.stamp
    if have.schema_version != stamp.schema_version:
        return f"state schema version {have.schema_version} != {stamp.schema_version}"
    if have.renderer_version != stamp.renderer_version:
        return f"renderer version {have.renderer_version!r} != {stamp.renderer_version!r}"
    if have.template_hash != stamp.template_hash:
        return "template set changed"
    return None


def plan(
    current: Iterable[Document],
    prior: Optional[BuildState],
    index: Optional[CorpusIndex] = None,
    *,
    stamp: StateStamp = StateStamp(),
    on_mismatch: str = REBUILD,
    force_full: bool = False,
    coupled: bool = False,
    retained: Iterable[str] = (),
    ) -> BuildPlan:
    """Compute the build plan for the current documents against prior state.

    prior=None means a first build: every document is Added. A prior state
    whose stamp differs from stamp either raises SchedulerStateMismatch
    (on_mismatch='fail') or discards its records and marks every document
    Modified (on_mismatch='rebuild'). retained names prior slugs whose sources
    failed to load this run; they are kept as-is rather than Removed.
    """
    docs = {d.slug: d for d in current}
    if index is None:
        index = rebuild(docs.values())
    prior_docs = dict(prior.documents) if prior else {}
    prior_pages = set(prior.pages) if prior else set()
    retained = set(retained) & set(prior_docs)

    reason = None
    if prior is not None:
        reason = _mismatch_reason(prior, stamp)
        if reason and on_mismatch == FAIL:
            raise SchedulerStateMismatch(f"Build state is stale: {reason}")
    if force_full and reason is None:
        reason = "full rebuild requested"
    full = prior is not None and reason is not None
    if full:
        logger.info("full rebuild: %s", reason)

    states: dict[str, DocState] = {}
    for slug, doc in docs.items():
        record = prior_docs.get(slug)
        if full:
            states[slug] = DocState.modified
        elif record is None:
            states[slug] = DocState.added
        elif record.content_hash != doc.content_hash:
            states[slug] = DocState.modified
        else:
            states[slug] = DocState.unchanged
    for slug in prior_docs:
        if slug not in docs and slug not in retained:
            states[slug] = DocState.removed

    changed = {s for s, st in states.items() if st != DocState.unchanged}
    to_render = {s for s in changed if states[s] != DocState.removed}
    to_remove = {s for s in changed if states[s] == DocState.removed}

    live_pages = set(index.pages())
    if full:
        pages = set(live_pages)
    else:
        pages = {p for s in to_render for p in index.pages_for(s)}
        pages |= {p for s in changed if s in prior_docs for p in prior_docs[s].pages}
        pages |= live_pages - prior_pages
    stale_pages = (prior_pages | pages) - live_pages
    pages &= live_pages

    if coupled:
        for key in pages:
            if key.startswith("series:"):
                to_render |= set(index.page_members(key))

    listed = {s for p in pages for s in index.page_members(p)}
    to_index_only = listed - to_render

    result = BuildPlan(
        states=states,
        to_render=frozenset(to_render),
        to_index_only=frozenset(to_index_only),
        to_remove=frozenset(to_remove),
        pages=frozenset(pages),
        stale_pages=frozenset(stale_pages),
        full_rebuild=full,
        reason=reason,
    )
    logger.info(
        "plan: %d to render, %d to remove, %d index pages, %d index-only",
        len(result.to_render), len(result.to_remove), len(result.pages), len(result.to_index_only),
    )
    return result
