#!/usr/bin/env python3
"""
ABOUTME: End-to-end tests for collate_docx.py
ABOUTME: Builds in-memory DOCX archives and checks results, container errors, JSON export and CLI
"""

import json
import sys
from pathlib import Path
from unittest.mock import patch

_scripts_dir = Path(__file__).parent.parent / 'skills' / 'doc-collate' / 'scripts'
sys.path.insert(0, str(_scripts_dir))

import pytest  # noqa: E402

from _collate_helpers import (  # noqa: E402
    create_docx_bytes,
    minimal_comments_xml,
    minimal_document_xml,
)
import collate_docx  # noqa: E402  # type: ignore[import-not-found]
from collate_docx import (  # noqa: E402  # type: ignore[import-not-found]
    collate_docx_json,
    extract_title,
    parse_docx,
    parse_docx_file,
)
from collate_types import ParagraphStatus  # noqa: E402  # type: ignore[import-not-found]


CORE_XML = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<cp:coreProperties xmlns:cp="http://schemas.openxmlformats.org/package/2006/metadata/core-properties"
                   xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>  My Document Title </dc:title>
</cp:coreProperties>"""

TRACKED_BODY = """<w:p>
    <w:r><w:t xml:space="preserve">Hello </w:t></w:r>
    <w:del w:id="1" w:author="Bob" w:date="2024-05-01T00:00:00Z">
        <w:r><w:delText xml:space="preserve">cruel </w:delText></w:r>
    </w:del>
    <w:ins w:id="2" w:author="Alice" w:date="2024-05-02T00:00:00Z">
        <w:r><w:t xml:space="preserve">beautiful </w:t></w:r>
    </w:ins>
    <w:r><w:t>world</w:t></w:r>
</w:p>"""


@pytest.fixture
def review_docx() -> bytes:
    document = minimal_document_xml(
        TRACKED_BODY
        + '<w:p><w:r><w:t xml:space="preserve">  </w:t></w:r></w:p>'
        + '<w:p><w:commentRangeStart w:id="1"/><w:r><w:t>Anchor text here</w:t></w:r>'
          '<w:commentRangeEnd w:id="1"/><w:r><w:commentReference w:id="1"/></w:r>'
          '<w:commentRangeStart w:id="99"/><w:r><w:t xml:space="preserve"> orphan</w:t></w:r>'
          '<w:commentRangeEnd w:id="99"/></w:p>'
        + '<w:p><w:ins w:id="3" w:author="Diana"><w:r><w:t>Brand new paragraph</w:t></w:r></w:ins></w:p>'
    )
    comments = minimal_comments_xml(
        '<w:comment w:id="1" w:author="Reviewer" w:date="2024-08-01T00:00:00Z" w:initials="R">'
        '<w:p><w:r><w:t>Fix this.</w:t></w:r></w:p></w:comment>'
    )
    return create_docx_bytes({
        'word/document.xml': document,
        'word/comments.xml': comments,
        'docProps/core.xml': CORE_XML,
    })


# ============================================================
# Tests: parse_docx
# ============================================================

class TestParseDocx:
    """Tests for the full pipeline on DOCX bytes"""

    def test_minimal_document(self):
        data = create_docx_bytes({
            'word/document.xml': minimal_document_xml('<w:p><w:r><w:t>Hello from the docx!</w:t></w:r></w:p>'),
        })
        result = parse_docx(data, "test.docx")
        assert result.error is None
        assert len(result.paragraphs) == 1
        assert result.paragraphs[0].base_text == "Hello from the docx!"
        assert result.reviewers == []
        assert result.document_title is None

    def test_review_document(self, review_docx):
        result = parse_docx(review_docx, "review.docx")
        assert result.error is None
        assert result.document_title == "My Document Title"
        assert [p.index for p in result.paragraphs] == [0, 1, 2]

        tracked = result.paragraphs[0]
        assert tracked.base_text == "Hello cruel world"
        assert tracked.revised_text == "Hello beautiful world"
        assert tracked.has_conflicts is True
        assert [tc.author for tc in tracked.track_changes] == ["Bob", "Alice"]
        assert tracked.track_changes[0].context_before == "Hello "
        assert tracked.track_changes[0].context_after == "world"

        commented = result.paragraphs[1]
        assert len(commented.comments) == 1
        assert commented.comments[0].author == "Reviewer"
        assert commented.comments[0].text == "Fix this."
        assert commented.comments[0].anchor_text == "Anchor text here"

        inserted = result.paragraphs[2]
        assert inserted.paragraph_status == ParagraphStatus.WHOLLY_INSERTED
        assert inserted.paragraph_change_author == "Diana"
        assert inserted.base_text == ""

    def test_review_document_roster(self, review_docx):
        reviewers = parse_docx(review_docx, "review.docx").reviewers
        summary = [(r.name, r.comment_count, r.change_count, r.colour) for r in reviewers]
        assert summary == [
            ("Bob", 0, 1, "#EF4444"),
            ("Alice", 0, 1, "#3B82F6"),
            ("Reviewer", 1, 0, "#10B981"),
            ("Diana", 0, 1, "#F59E0B"),
        ]
        assert all(r.file_name == "review.docx" for r in reviewers)

    def test_missing_comments_part(self):
        data = create_docx_bytes({
            'word/document.xml': minimal_document_xml(
                '<w:p><w:commentRangeStart w:id="1"/><w:r><w:t>No comments here.</w:t></w:r>'
                '<w:commentRangeEnd w:id="1"/></w:p>'
            ),
        })
        result = parse_docx(data, "nocomments.docx")
        assert result.error is None
        assert result.paragraphs[0].comments == []

    def test_comment_range_spanning_paragraphs(self):
        data = create_docx_bytes({
            'word/document.xml': minimal_document_xml(
                '<w:p><w:commentRangeStart w:id="1"/><w:r><w:t xml:space="preserve">Starts here </w:t></w:r></w:p>'
                '<w:p><w:r><w:t>ends here</w:t></w:r><w:commentRangeEnd w:id="1"/></w:p>'
            ),
            'word/comments.xml': minimal_comments_xml(
                '<w:comment w:id="1" w:author="Reviewer"><w:p><w:r><w:t>Long span</w:t></w:r></w:p></w:comment>'
            ),
        })
        first, second = parse_docx(data, "span.docx").paragraphs
        assert [c.anchor_text for c in first.comments] == ["Starts here ends here"]
        assert second.comments == []

    def test_invalid_zip_data(self):
        result = parse_docx(b"this is not a zip file at all", "bad.docx")
        assert "ZIP" in result.error
        assert result.paragraphs == []
        assert result.reviewers == []

    def test_missing_document_part(self):
        data = create_docx_bytes({'word/styles.xml': '<styles/>'})
        result = parse_docx(data, "nodoc.docx")
        assert "word/document.xml" in result.error
        assert result.paragraphs == []
        assert result.reviewers == []

    def test_malformed_body_keeps_closed_paragraphs(self):
        document = minimal_document_xml(
            '<w:p><w:r><w:t>Survives</w:t></w:r></w:p><w:p><w:r><w:t>Lost</w:r>'
        )
        result = parse_docx(create_docx_bytes({'word/document.xml': document}), "broken.docx")
        assert result.error is None
        assert [p.base_text for p in result.paragraphs] == ["Survives"]

    def test_parse_docx_file_uses_base_name(self, tmp_path, review_docx):
        path = tmp_path / "reviewed.docx"
        path.write_bytes(review_docx)
        result = parse_docx_file(path)
        assert {r.file_name for r in result.reviewers} == {"reviewed.docx"}


class TestExtractTitle:
    """Tests for docProps/core.xml title extraction"""

    def test_title_trimmed(self):
        assert extract_title(CORE_XML) == "My Document Title"

    def test_blank_title(self):
        xml = CORE_XML.replace("  My Document Title ", "   ")
        assert extract_title(xml) is None

    def test_malformed_core(self):
        assert extract_title("<cp:coreProperties") is None


# ============================================================
# Tests: JSON output
# ============================================================

class TestJsonOutput:
    """Tests for the JSON exchange format"""

    def test_result_json_shape(self, review_docx):
        parsed = json.loads(collate_docx_json(review_docx, "review.docx"))
        assert set(parsed) == {"paragraphs", "reviewers", "document_title", "error"}
        assert parsed["error"] is None
        first = parsed["paragraphs"][0]
        assert first["paragraph_status"] == "Normal"
        assert first["track_changes"][0]["change_type"] == "Deletion"
        assert parsed["paragraphs"][2]["paragraph_status"] == "WhollyInserted"

    def test_error_json(self):
        parsed = json.loads(collate_docx_json(b"garbage", "bad.docx"))
        assert parsed["error"].startswith("Failed to open ZIP archive")
        assert parsed["paragraphs"] == []


class TestCli:
    """Tests for the command-line entry point"""

    def test_writes_json_output(self, tmp_path, review_docx, capsys):
        doc = tmp_path / "review.docx"
        doc.write_bytes(review_docx)
        out = tmp_path / "out.json"
        with patch.object(sys, 'argv', ['collate_docx.py', str(doc), '-o', str(out), '--stats']):
            collate_docx.main()
        data = json.loads(out.read_text(encoding='utf-8'))
        assert len(data["paragraphs"]) == 3
        assert data["meta"]["source_hash"].startswith("sha256:")
        assert "Paragraphs with conflicts: 1" in capsys.readouterr().out

    def test_writes_jsonl_output(self, tmp_path, review_docx):
        doc = tmp_path / "review.docx"
        doc.write_bytes(review_docx)
        out = tmp_path / "out.jsonl"
        with patch.object(sys, 'argv', ['collate_docx.py', str(doc), '-o', str(out), '--format', 'jsonl']):
            collate_docx.main()
        lines = out.read_text(encoding='utf-8').splitlines()
        assert json.loads(lines[0])["type"] == "meta"
        assert len(lines) == 4

    def test_missing_file_exits(self, tmp_path):
        with patch.object(sys, 'argv', ['collate_docx.py', str(tmp_path / "absent.docx")]):
            with pytest.raises(SystemExit) as exc:
                collate_docx.main()
        assert exc.value.code == 1

    def test_invalid_archive_exits(self, tmp_path, capsys):
        doc = tmp_path / "bad.docx"
        doc.write_bytes(b"not a zip")
        with patch.object(sys, 'argv', ['collate_docx.py', str(doc), '-o', str(tmp_path / "x.json")]):
            with pytest.raises(SystemExit) as exc:
                collate_docx.main()
        assert exc.value.code == 1
        assert "Failed to open ZIP archive" in capsys.readouterr().err
