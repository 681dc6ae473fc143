"""File-path extraction from issue text."""

from __future__ import annotations

import pytest

from autoremedy.triage_plane.issue_text import extract_file_paths


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("See `src/app.ts` and README.md.", ("src/app.ts", "README.md")),
        ('The file "config/site.yaml" is stale', ("config/site.yaml",)),
        ("Read the [guide](docs/guide.md) first", ("docs/guide.md",)),
        ("Broken layout in src/components/Button.vue, see screenshot", (
            "src/components/Button.vue",
        )),
        ("Wrong heading in CHANGELOG.md", ("CHANGELOG.md",)),
        ("Start from `./src/index.js`", ("src/index.js",)),
    ],
)
def test_extracts_paths(text: str, expected: tuple[str, ...]) -> None:
    assert extract_file_paths(text) == expected


def test_orders_by_first_mention_and_deduplicates() -> None:
    text = "Edit `b.py` and then a.md; afterwards `b.py` again."

    assert extract_file_paths(text) == ("b.py", "a.md")


def test_skips_urls() -> None:
    assert extract_file_paths("Docs live at https://example.com/docs/index.html") == ()


def test_rejects_traversal() -> None:
    assert extract_file_paths("Look at `../outside/notes.txt`") == ()


def test_plain_prose_has_no_paths() -> None:
    assert extract_file_paths("The button label is misspelled on the landing page") == ()
