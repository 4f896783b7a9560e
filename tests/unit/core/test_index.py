"""Unit tests for core/index.py"""

import json

from mdsite.core.index import CHRONOLOGICAL_PAGE, TAGS_PAGE, CorpusIndex, rebuild


def test_rebuild_empty_corpus():
    """An empty corpus yields an empty index with only the chronological page."""
    index = rebuild([])
    assert index == CorpusIndex()
    assert index.pages() == (CHRONOLOGICAL_PAGE,)


def test_chronological_order(blog_index):
    """Chronological order is ascending by revision date; undated documents come last."""
    assert blog_index.chronological == ("a", "b", "c", "d")
    assert blog_index.page_members(CHRONOLOGICAL_PAGE) == ("c", "b", "a", "d")


def test_tag_keys_fold_case(blog_index):
    """Keywords differing only by case share one tag page, newest first."""
    assert blog_index.tags["python"] == ("b", "a")
    assert blog_index.tag_labels["python"] == "Python"
    assert set(blog_index.tags) == {"python", "rust", "web"}


def test_series_order(blog_index):
    """Series members are ordered by part number."""
    assert blog_index.series == {"intro": ("a", "b")}
    assert blog_index.series_neighbours("a") == (None, "b")
    assert blog_index.series_neighbours("b") == ("a", None)
    assert blog_index.series_neighbours("c") == (None, None)


def test_pages_for(blog_index):
    """pages_for lists every index page a document appears on."""
    assert blog_index.pages_for("a") == (CHRONOLOGICAL_PAGE, TAGS_PAGE, "tag:python", "tag:web", "series:intro")
    assert blog_index.pages_for("d") == (CHRONOLOGICAL_PAGE,)
    assert blog_index.pages_for("missing") == ()


def test_pages_cover_every_key(blog_index):
    """pages() names the listing, tag overview, each tag, and each series."""
    assert set(blog_index.pages()) == {
        CHRONOLOGICAL_PAGE, TAGS_PAGE, "tag:python", "tag:rust", "tag:web", "series:intro",
    }


def test_paths_map_sources_to_slugs(blog_index):
    """paths resolves root-relative source paths to slugs."""
    assert blog_index.paths["a.md"] == "a"


def test_rebuild_is_order_independent(blog):
    """Rebuilding from the same documents in any order gives identical JSON."""
    assert rebuild(blog).to_json() == rebuild(list(reversed(blog))).to_json()


def test_to_json_round_trips(blog_index):
    """to_json is valid JSON and reloads to an equal index."""
    data = json.loads(blog_index.to_json())
    assert CorpusIndex.model_validate(data) == blog_index


def test_removed_document_disappears(blog):
    """A document absent from the input is absent from every view."""
    index = rebuild([d for d in blog if d.slug != "c"])
    assert "c" not in index.entries
    assert "rust" not in index.tags
    assert "c" not in index.chronological


def test_same_date_ties_break_by_slug(doc):
    """Documents with the same revision sort by slug."""
    index = rebuild([doc("z.md", "Z", date="2026-01-01"), doc("y.md", "Y", date="2026-01-01")])
    assert index.chronological == ("y", "z")


def test_listing_is_newest_first_with_undated_last(doc):
    """The listing shows newest first, same-date ties by slug, undated documents at the end."""
    index = rebuild([
        doc("u.md", "U"),
        doc("b.md", "B", date="2024-01-01"),
        doc("n.md", "N", date="2024-05-01"),
        doc("a.md", "A", date="2024-01-01"),
    ])
    assert index.page_members(CHRONOLOGICAL_PAGE) == ("n", "a", "b", "u")


def test_tag_keys_keep_punctuation_distinct(doc):
    """Tags that differ only by symbols get separate keys and pages."""
    index = rebuild([
        doc("cpp.md", "Cpp", tags='["C++"]'),
        doc("cs.md", "Cs", tags='["C#"]'),
        doc("c.md", "C", tags="[C]"),
    ])
    assert index.tags == {"c": ("c",), "c-plus-plus": ("cpp",), "c-sharp": ("cs",)}
    assert index.tag_labels["c-plus-plus"] == "C++"
    assert {"tag:c", "tag:c-plus-plus", "tag:c-sharp"} <= set(index.pages())


def test_nested_documents_keep_distinct_slugs(doc):
    """Same-named files in different directories index as separate documents."""
    index = rebuild([doc("2023/recap.md", "Recap 2023"), doc("2024/recap.md", "Recap 2024")])
    assert index.paths == {"2023/recap.md": "2023/recap", "2024/recap.md": "2024/recap"}
