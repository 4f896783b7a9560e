"""Build error taxonomy: per-document failures vs. fatal run conditions"""


class BuildError(RuntimeError):
    """Base exception for all build pipeline failures."""
    fatal = False

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def locator(self) -> str | None:
        return None


class MalformedMetadata(BuildError):
    """Front-matter is missing a required field or holds an invalid value."""

    def __init__(self, message: str, *, source: str | None = None, fields: tuple[str, ...] = ()):
        super().__init__(message)
        self.source = source
        self.fields = fields

    @property
    def locator(self) -> str | None:
        return ", ".join(self.fields) or None


class ParseError(BuildError):
    """Body markup has malformed nesting. Carries a 1-based line/column locator."""

    def __init__(self, message: str, line: int | None = None, column: int = 1):
        super().__init__(f"{message} (line {line}, column {column})" if line else message)
        self.reason = message
        self.line = line
        self.column = column

    @property
    def locator(self) -> str | None:
        return f"{self.line}:{self.column}" if self.line else None


class RenderError(BuildError):
    """A document or index page could not be rendered, e.g. an unresolvable internal link.

    Index page failures are fatal: the listings span the whole corpus.
    """

    def __init__(self, message: str, *, target: str | None = None, line: int | None = None, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal
        self.target = target
        self.line = line

    @property
    def locator(self) -> str | None:
        if self.target and self.line:
            return f"{self.line}: {self.target}"
        return self.target


class IOFailure(BuildError):
    """Reading a source failed. Reads are retried once before this is raised."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path

    @property
    def locator(self) -> str | None:
        return self.path


class SchedulerStateMismatch(BuildError):
    """Persisted build state does not match the running scheduler/renderer."""
    fatal = True


class BuildLocked(BuildError):
    """Another build run holds the output directory lock."""
    fatal = True
