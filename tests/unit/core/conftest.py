"""Shared fixtures for core unit tests"""

import pytest
from markdown_it import MarkdownIt

from mdsite.core.extract.extract import parse_document
from mdsite.core.index import rebuild
from mdsite.core.models import SourceFile
from mdsite.core.parse import load_document


SAMPLE_MD = """\
# Heading 1

A paragraph with **bold** text.

## Heading 2

- item one
- item two

```python
print("hello")
```

---

Footer paragraph.
"""


def _doc(name: str, title: str, body: str = "Body.\n", **fields):
    lines = [f"title: {title}"] + [f"{k}: {v}" for k, v in fields.items()]
    raw = "---\n" + "\n".join(lines) + "\n---\n" + body
    return parse_document(load_document(SourceFile(path=None, rel_path=name), raw))


@pytest.fixture(name="parser")
def parser_fixture():
    return MarkdownIt("gfm-like", options_update={"linkify": False})


@pytest.fixture(name="sample_lines")
def sample_lines_fixture():
    return SAMPLE_MD.splitlines(keepends=True)


@pytest.fixture(name="doc")
def doc_fixture():
    """Document factory: doc(rel_path, title, body, **frontmatter) -> parsed Document."""
    return _doc


@pytest.fixture(name="blog")
def blog_fixture():
    """Four parsed documents across two tags and one series."""
    return [
        _doc("a.md", "Alpha", date="2026-01-01", tags="[python, web]", series="Intro", series_part=1),
        _doc("b.md", "Beta", date="2026-02-01", tags="[Python]", series="Intro", series_part=2),
        _doc("c.md", "Gamma", date="2026-03-01", tags="[rust]"),
        _doc("d.md", "Delta", body="See [alpha](a.md).\n"),
    ]


@pytest.fixture(name="blog_index")
def blog_index_fixture(blog):
    return rebuild(blog)
