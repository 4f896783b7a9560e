"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from mdsite.config import Settings, load_config
from mdsite.core.errors import BuildError
from mdsite.core.index import rebuild
from mdsite.core.pipeline import load_corpus, plan_build, run_build
from mdsite.core.report import DocumentFailure, RunReport
from mdsite.core.schedule import DocState
from mdsite.core.validate import check_references


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _configure_logging(settings: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("mdsite").setLevel(level)


def _echo_failures(failures: list[DocumentFailure]) -> None:
    for f in failures:
        where = f"{f.source_path}:{f.locator}" if f.locator and f.kind == "ParseError" else f.source_path
        typer.echo(f"  FAILED [{f.kind}] {where}: {f.message}", err=True)


def _echo_report(report: RunReport) -> None:
    """Print per-document status, failures, and a summary line."""
    if report.full_rebuild:
        typer.echo(f"Full rebuild: {report.reason}")
    for slug in report.rendered:
        typer.echo(f"  rendered: {slug}")
    for slug in report.removed:
        typer.echo(f"  removed: {slug}")
    for page in report.pages:
        typer.echo(f"  page: {page}")
    for warning in report.warnings:
        typer.echo(f"  warning: {warning}", err=True)
    _echo_failures(report.failures)
    typer.echo(
        f"Build complete - "
        f"{len(report.rendered)} rendered, "
        f"{len(report.removed)} removed, "
        f"{report.unchanged} unchanged, "
        f"{len(report.pages)} index pages, "
        f"{len(report.failures)} failed"
    )


def build_cmd(
    root: Annotated[Path, typer.Argument(help="Corpus root directory")],
    out: Annotated[Path, typer.Argument(help="Output directory")],
    full: Annotated[bool, typer.Option("--full", help="Ignore build state and rebuild everything")] = False,
    strict: Annotated[bool, typer.Option("--strict", help="Fail the run on any per-document failure")] = False,
    check_links: Annotated[bool, typer.Option("--check-links", help="Report unresolved links and missing images")] = False,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Parse/render worker threads")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    ):
    """Build ROOT into OUT, re-rendering only what changed since the last build."""
    settings = _settings(overrides={"workers": workers, "check_links": check_links or None})
    _configure_logging(settings, verbose)

    report = run_build(root, out, settings, full=full, strict=strict)
    _echo_report(report)
    if report.fatal:
        _fail(report.fatal)


def plan_cmd(
    root: Annotated[Path, typer.Argument(help="Corpus root directory")],
    out: Annotated[Path, typer.Argument(help="Output directory holding the build state")],
    full: Annotated[bool, typer.Option("--full", help="Plan as if build state were ignored")] = False,
    ):
    """Show what a build would render, remove, and re-index, without writing anything."""
    settings = _settings()
    _configure_logging(settings, False)
    try:
        build_plan, corpus, _ = plan_build(root, out, settings, full=full)
    except BuildError as e:
        _fail(str(e))

    if build_plan.full_rebuild:
        typer.echo(f"Full rebuild: {build_plan.reason}")
    for state in (DocState.added, DocState.modified, DocState.removed, DocState.unchanged):
        for slug in build_plan.by_state(state):
            typer.echo(f"  {state.value}: {slug}")
    for page in sorted(build_plan.pages):
        typer.echo(f"  page: {page}")
    for page in sorted(build_plan.stale_pages):
        typer.echo(f"  stale page: {page}")
    _echo_failures(corpus.failures)
    typer.echo(
        f"Plan - {len(build_plan.to_render)} to render, {len(build_plan.to_remove)} to remove, "
        f"{len(build_plan.pages)} index pages, {len(build_plan.to_index_only)} index-only"
    )


def check_cmd(
    root: Annotated[Path, typer.Argument(help="Corpus root directory")],
    ):
    """Validate metadata, markup, internal links, and local images under ROOT."""
    settings = _settings()
    _configure_logging(settings, False)
    try:
        corpus = load_corpus(root, settings)
    except BuildError as e:
        _fail(str(e))

    problems = check_references(corpus.documents, rebuild(corpus.documents), root)
    _echo_failures(corpus.failures)
    for p in problems:
        typer.echo(f"  {p}")
    typer.echo(f"Checked {len(corpus.documents) + len(corpus.failures)} document(s): "
               f"{len(corpus.failures)} failed, {len(problems)} reference problem(s)")
    if corpus.failures or problems:
        raise typer.Exit(1)


def index_cmd(
    root: Annotated[Path, typer.Argument(help="Corpus root directory")],
    ):
    """Print the corpus index as JSON."""
    settings = _settings()
    _configure_logging(settings, False)
    try:
        corpus = load_corpus(root, settings)
    except BuildError as e:
        _fail(str(e))
    _echo_failures(corpus.failures)
    typer.echo(rebuild(corpus.documents).to_json(), nl=False)
