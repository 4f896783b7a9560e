"""Run report: per-document failures, warnings, and the fatal condition (if any)"""

from dataclasses import dataclass, field
from typing import Optional

from mdsite.core.errors import BuildError


@dataclass(frozen=True)
class DocumentFailure:
    source_path: str
    kind: str
    message: str
    slug: Optional[str] = None
    locator: Optional[str] = None

    @classmethod
    def from_error(cls, source_path: str, error: BuildError, slug: Optional[str] = None) -> "DocumentFailure":
        return cls(source_path=source_path, kind=error.kind, message=str(error), slug=slug, locator=error.locator)


@dataclass
class RunReport:
    rendered: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    pages: list[str] = field(default_factory=list)
    unchanged: int = 0
    failures: list[DocumentFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    full_rebuild: bool = False
    reason: Optional[str] = None
    fatal: Optional[str] = None

    def fail(self, failure: DocumentFailure) -> None:
        self.failures.append(failure)

    def failures_of(self, kind: str) -> list[DocumentFailure]:
        return [f for f in self.failures if f.kind == kind]

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal else 0
