"""Pipeline orchestration: load -> parse -> index -> plan -> render -> commit"""

import logging
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Optional

from mdsite.config import Settings
from mdsite.core.errors import BuildError, IOFailure, MalformedMetadata, ParseError, RenderError, SchedulerStateMismatch
from mdsite.core.extract.extract import parse_document
from mdsite.core.index import CorpusIndex, rebuild
from mdsite.core.models import Document, SourceFile
from mdsite.core.parse import SourceTree, load_file
from mdsite.core.render import RENDERER_VERSION, document_path, make_environment, page_path, render, render_page, template_hash
from mdsite.core.report import DocumentFailure, RunReport
from mdsite.core.schedule import FAIL, BuildPlan, DocState, plan
from mdsite.core.utils.fs import atomic_write_bytes, build_lock, remove_output
from mdsite.core.utils.hashing import sha256_bytes
from mdsite.core.utils.workers import TaskOutcome, run_bounded
from mdsite.core.validate import check_references
from mdsite.crud.state import (
    SCHEMA_VERSION, STATE_DIR, BuildState, DocRecord, StateStamp, load_state, save_state, state_path,
)


logger = logging.getLogger(__name__)

LOCK_FILE = "build.lock"
INDEX_FILE = "index.json"


@dataclass
class LoadedCorpus:
    documents: list[Document] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)
    failed_paths: set[str] = field(default_factory=set)
    drafts: int = 0


def _load_and_parse(source: SourceFile, parser_config: str, max_nesting: int) -> Document:
    return parse_document(load_file(source), parser_config, max_nesting)


def _failure(source_path: str, outcome: TaskOutcome, timeout_error: BuildError, slug: Optional[str] = None) -> DocumentFailure:
    if outcome.timed_out:
        return DocumentFailure.from_error(source_path, timeout_error, slug)
    if isinstance(outcome.error, BuildError):
        return DocumentFailure.from_error(source_path, outcome.error, slug)
    logger.error("unexpected %s while processing %s", type(outcome.error).__name__, source_path, exc_info=outcome.error)
    return DocumentFailure(source_path=source_path, kind=type(outcome.error).__name__, message=str(outcome.error), slug=slug)


def load_corpus(root: Path, settings: Settings) -> LoadedCorpus:
    """Load and parse every source under root on the worker pool.

    Per-document failures are collected; all tasks finish (or fail) before
    this returns. A missing or unlistable root raises IOFailure.
    """
    sources = list(SourceTree(root))
    task = partial(_load_and_parse, parser_config=settings.parser_config, max_nesting=settings.max_nesting)
    outcomes = run_bounded(task, [(s.rel_path, s) for s in sources], settings.workers, settings.task_timeout)

    corpus = LoadedCorpus()
    seen: dict[str, str] = {}
    for source in sources:
        outcome = outcomes[source.rel_path]
        if not outcome.ok:
            timeout = ParseError(f"Parsing timed out after {settings.task_timeout:g}s")
            corpus.failures.append(_failure(source.rel_path, outcome, timeout))
            corpus.failed_paths.add(source.rel_path)
            continue

        doc: Document = outcome.value
        if doc.meta.draft and not settings.include_drafts:
            logger.debug("skipping draft %s", source.rel_path)
            corpus.drafts += 1
            continue
        if doc.slug in seen:
            err = MalformedMetadata(
                f"{source.rel_path}: slug '{doc.slug}' already used by {seen[doc.slug]}",
                source=source.rel_path, fields=("slug",),
            )
            corpus.failures.append(DocumentFailure.from_error(source.rel_path, err, doc.slug))
            corpus.failed_paths.add(source.rel_path)
            continue
        seen[doc.slug] = source.rel_path
        corpus.documents.append(doc)

    for f in corpus.failures:
        logger.warning("%s: %s", f.kind, f.message)
    logger.info("loaded %d documents (%d failed, %d drafts skipped)", len(corpus.documents), len(corpus.failures), corpus.drafts)
    return corpus


def _load_prior(path: Path, settings: Settings) -> Optional[BuildState]:
    try:
        return load_state(path)
    except SchedulerStateMismatch as e:
        if settings.on_state_mismatch == FAIL:
            raise
        logger.warning("%s; rebuilding everything", e)
        return BuildState(stamp=StateStamp(schema_version=None))


def _retained(prior: Optional[BuildState], corpus: LoadedCorpus) -> set[str]:
    """Prior slugs whose source failed this run: keep their published output."""
    if prior is None:
        return set()
    loaded = {d.slug for d in corpus.documents}
    return {
        slug for slug, rec in prior.documents.items()
        if rec.source_path in corpus.failed_paths and slug not in loaded
    }


def plan_build(root: Path, output_dir: Path, settings: Settings, *, full: bool = False) -> tuple[BuildPlan, LoadedCorpus, CorpusIndex]:
    """Compute the plan for root against the state in output_dir without writing anything."""
    env = make_environment(settings.templates_dir)
    stamp = StateStamp(schema_version=SCHEMA_VERSION, renderer_version=RENDERER_VERSION, template_hash=template_hash(env))
    prior = _load_prior(state_path(output_dir), settings)
    corpus = load_corpus(root, settings)
    index = rebuild(corpus.documents)
    build_plan = plan(
        corpus.documents, prior, index,
        stamp=stamp,
        on_mismatch=settings.on_state_mismatch,
        force_full=full,
        coupled=settings.index_coupling,
        retained=_retained(prior, corpus),
    )
    return build_plan, corpus, index


def _write_if_changed(path: Path, data: bytes, prior_hash: Optional[str]) -> bool:
    if prior_hash == sha256_bytes(data) and path.exists():
        return False
    atomic_write_bytes(path, data)
    return True


def _build(root: Path, output_dir: Path, settings: Settings, full: bool, strict: bool, report: RunReport) -> None:
    env = make_environment(settings.templates_dir)
    stamp = StateStamp(schema_version=SCHEMA_VERSION, renderer_version=RENDERER_VERSION, template_hash=template_hash(env))
    spath = state_path(output_dir)
    prior = _load_prior(spath, settings)

    # barrier: every parse has finished or failed before the index is built
    corpus = load_corpus(root, settings)
    report.failures.extend(corpus.failures)
    index = rebuild(corpus.documents)
    retained = _retained(prior, corpus)
    build_plan = plan(
        corpus.documents, prior, index,
        stamp=stamp,
        on_mismatch=settings.on_state_mismatch,
        force_full=full,
        coupled=settings.index_coupling,
        retained=retained,
    )
    report.full_rebuild = build_plan.full_rebuild
    report.reason = build_plan.reason
    report.unchanged = len(build_plan.by_state(DocState.unchanged))

    docs = {d.slug: d for d in corpus.documents}
    task = partial(render, index=index, env=env, site_title=settings.site_title)
    outcomes = run_bounded(task, [(s, docs[s]) for s in sorted(build_plan.to_render)], settings.workers, settings.task_timeout)
    rendered: dict[str, bytes] = {}
    for slug in sorted(build_plan.to_render):
        outcome = outcomes[slug]
        if outcome.ok:
            rendered[slug] = outcome.value
            continue
        timeout = RenderError(f"Rendering timed out after {settings.task_timeout:g}s")
        failure = _failure(docs[slug].source_path, outcome, timeout, slug)
        logger.warning("%s: %s (keeping previous output)", failure.kind, failure.message)
        report.fail(failure)

    try:
        pages = {key: render_page(key, index, env=env, site_title=settings.site_title) for key in sorted(build_plan.pages)}
    except Exception as e:
        raise RenderError(f"Cannot render index pages: {type(e).__name__}: {e}", fatal=True) from e

    if settings.check_links:
        report.warnings.extend(str(p) for p in check_references(corpus.documents, index, root))

    if strict and report.failures:
        report.fatal = f"{len(report.failures)} document failure(s) in strict mode; nothing written"
        return

    _commit(output_dir, spath, stamp, prior, build_plan, docs, index, rendered, pages, retained, report)


def _commit(
    output_dir: Path,
    spath: Path,
    stamp: StateStamp,
    prior: Optional[BuildState],
    build_plan: BuildPlan,
    docs: dict[str, Document],
    index: CorpusIndex,
    rendered: dict[str, bytes],
    pages: dict[str, bytes],
    retained: set[str],
    report: RunReport,
    ) -> None:
    """Write outputs, delete removed artifacts, then atomically replace BuildState."""
    prior_docs = dict(prior.documents) if prior else {}
    prior_pages = dict(prior.pages) if prior else {}

    for slug in sorted(rendered):
        rec = prior_docs.get(slug)
        rel = document_path(slug)
        if _write_if_changed(output_dir / rel, rendered[slug], rec.output_hash if rec else None):
            report.written.append(rel)
        report.rendered.append(slug)

    for slug in sorted(build_plan.to_remove):
        remove_output(output_dir, document_path(slug))
        report.removed.append(slug)

    for key in sorted(pages):
        rel = page_path(key)
        if _write_if_changed(output_dir / rel, pages[key], prior_pages.get(key)):
            report.written.append(rel)
        report.pages.append(rel)
    for key in sorted(build_plan.stale_pages):
        remove_output(output_dir, page_path(key))

    index_json = index.to_json().encode("utf-8")
    index_file = output_dir / INDEX_FILE
    if not index_file.exists() or index_file.read_bytes() != index_json:
        atomic_write_bytes(index_file, index_json)
        report.written.append(INDEX_FILE)

    documents: dict[str, DocRecord] = {}
    for slug, doc in docs.items():
        if slug in rendered:
            documents[slug] = DocRecord(
                source_path=doc.source_path,
                content_hash=doc.content_hash,
                output_hash=sha256_bytes(rendered[slug]),
                pages=index.pages_for(slug),
            )
        elif slug in prior_docs:
            rec = prior_docs[slug]
            if build_plan.states.get(slug) == DocState.unchanged:
                rec = rec.model_copy(update={"pages": index.pages_for(slug)})
            documents[slug] = rec
    for slug in retained - set(documents):
        documents[slug] = prior_docs[slug]

    page_hashes = {k: h for k, h in prior_pages.items() if k not in build_plan.stale_pages}
    page_hashes.update({k: sha256_bytes(v) for k, v in pages.items()})

    save_state(spath, BuildState(stamp=stamp, documents=documents, pages=page_hashes))
    logger.info("build committed: %d rendered, %d removed, %d pages", len(rendered), len(build_plan.to_remove), len(pages))


def run_build(root: Path, output_dir: Path, settings: Settings, *, full: bool = False, strict: bool = False) -> RunReport:
    """Run one build of root into output_dir and return its report.

    Per-document failures never stop the run (unless strict). Fatal conditions
    (lock held, unreadable corpus root, stale state under the 'fail' policy)
    are reported through RunReport.fatal with nothing written.
    """
    report = RunReport()
    root, output_dir = Path(root), Path(output_dir)
    try:
        with build_lock(output_dir / STATE_DIR / LOCK_FILE):
            _build(root, output_dir, settings, full, strict, report)
    except BuildError as e:
        if not e.fatal and not isinstance(e, IOFailure):
            raise
        logger.error("build aborted: %s", e)
        report.fatal = str(e)
    return report
