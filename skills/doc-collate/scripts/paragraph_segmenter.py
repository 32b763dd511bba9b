#!/usr/bin/env python3
"""
ABOUTME: Streams word/document.xml and splits each body paragraph into typed segments
ABOUTME: Stable / inserted / deleted runs plus comment ids and the text each comment anchors to
"""

import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from lxml import etree

from collate_types import DeletionSegment, InsertionSegment, ParsedParagraph, Segment, StableSegment
from xml_utils import (
    MC_FALLBACK,
    TEXT_TAGS,
    W_BR,
    W_COMMENT_RANGE_END,
    W_COMMENT_RANGE_START,
    W_DEL,
    W_INS,
    W_P,
    W_R,
    W_TAB,
    create_streaming_parser,
    get_w_attr,
    is_blank,
    is_text_break,
    w_local_name,
)


class RevisionState(Enum):
    IDLE = "idle"
    INSERTING = "inserting"
    DELETING = "deleting"


@dataclass
class _OpenRevision:
    """A w:ins / w:del element whose end tag has not been seen yet"""
    state: RevisionState
    id: str
    author: str
    date: Optional[str]
    depth: int  # Element stack depth of the opening tag
    parts: List[str] = field(default_factory=list)

    def to_segment(self) -> Segment:
        text = ''.join(self.parts)
        if self.state == RevisionState.INSERTING:
            return InsertionSegment(id=self.id, author=self.author, date=self.date, text=text)
        return DeletionSegment(id=self.id, author=self.author, date=self.date, text=text)


@dataclass
class _OpenRange:
    """A comment range whose end marker has not been seen yet"""
    anchors: Dict[str, str]  # Anchor map of the paragraph that listed the id
    parts: List[str] = field(default_factory=list)


class ParagraphSegmenter:
    """
    lxml parser target implementing the per-paragraph state machine.

    Paragraph nesting is tracked with a depth counter: a w:p opened inside
    another w:p (e.g. a table cell in a text box) extends the outer
    paragraph instead of starting a sibling. Revision tracking is a single
    optional open revision (Idle when None), so a paragraph can never be
    inserting and deleting at the same time. Active comment ranges map
    id -> accumulated anchor text and survive paragraph boundaries; the
    finished anchor is stored on the paragraph that listed the id.

    Elements are matched by local name in the Transitional or Strict
    WordprocessingML namespace. mc:Fallback subtrees are skipped whole.

    Character data is buffered and flushed as one text event at the next
    start/end tag, because lxml may deliver a single text node in pieces.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.paragraphs: List[ParsedParagraph] = []
        self._next_index = 0
        self._stack: List[Optional[str]] = []  # Local names; None outside WordprocessingML
        self._pending_text: List[str] = []
        self._para_depth = 0
        self._skip_depth = 0

        # Per-paragraph accumulators
        self._segments: List[Segment] = []
        self._stable_parts: List[str] = []
        self._comment_ids: List[str] = []
        self._anchor_texts: Dict[str, str] = {}
        self._revision: Optional[_OpenRevision] = None

        self._active_ranges: Dict[str, _OpenRange] = {}

    @property
    def revision_state(self) -> RevisionState:
        return self._revision.state if self._revision else RevisionState.IDLE

    # ------------------------------------------------------------
    # Parser target interface
    # ------------------------------------------------------------

    def start(self, tag, attrib):
        self._flush_text()
        if self._skip_depth or tag == MC_FALLBACK:
            # mc:Fallback repeats the content of its mc:Choice sibling
            self._skip_depth += 1
            return

        local = w_local_name(tag)
        parent = self._stack[-1] if self._stack else None
        self._stack.append(local)

        if local == W_P:
            if self._para_depth == 0:
                self._open_paragraph()
            else:
                self._para_depth += 1
            return

        if self._para_depth == 0:
            return

        if local in (W_INS, W_DEL):
            self._open_revision(local, attrib)
        elif local == W_COMMENT_RANGE_START:
            self._start_comment_range(attrib)
        elif local == W_COMMENT_RANGE_END:
            self._end_comment_range(attrib)
        elif parent == W_R and local == W_TAB:
            self._add_text('\t')
        elif parent == W_R and local == W_BR and is_text_break(attrib):
            self._add_text('\n')

    def end(self, tag):
        self._flush_text()
        if self._skip_depth:
            self._skip_depth -= 1
            return

        local = w_local_name(tag)
        depth = len(self._stack)
        if self._stack:
            self._stack.pop()

        if local == W_P and self._para_depth > 0:
            self._para_depth -= 1
            if self._para_depth == 0:
                self._close_paragraph()
        elif local in (W_INS, W_DEL) and self._revision is not None and self._revision.depth == depth:
            self._close_revision()

    def data(self, data):
        self._pending_text.append(data)

    def close(self):
        return self.paragraphs

    # ------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------

    def _open_paragraph(self):
        self._para_depth = 1
        self._reset_paragraph()

    def _reset_paragraph(self):
        self._segments = []
        self._stable_parts = []
        self._comment_ids = []
        self._anchor_texts = {}
        self._revision = None

    def _close_paragraph(self):
        self._commit_stable()
        if any(not is_blank(segment.text) for segment in self._segments):
            self.paragraphs.append(ParsedParagraph(
                index=self._next_index,
                segments=self._segments,
                comment_ids=self._comment_ids,
                comment_anchor_texts=self._anchor_texts,
            ))
            self._next_index += 1
        elif self.debug:
            print(f"[DEBUG] Skipped empty paragraph ({len(self._segments)} segment(s))", file=sys.stderr)
        self._reset_paragraph()

    def _open_revision(self, tag, attrib):
        if self._revision is not None:
            # Nested revision markup follows the outer revision
            return
        self._revision = _OpenRevision(
            state=RevisionState.INSERTING if tag == W_INS else RevisionState.DELETING,
            id=get_w_attr(attrib, 'id', ''),
            author=get_w_attr(attrib, 'author', ''),
            date=get_w_attr(attrib, 'date'),
            depth=len(self._stack),
        )

    def _close_revision(self):
        segment = self._revision.to_segment()
        self._revision = None
        if segment.text:
            self._commit_stable()
            self._segments.append(segment)

    def _start_comment_range(self, attrib):
        comment_id = get_w_attr(attrib, 'id')
        if comment_id is None:
            return
        if comment_id not in self._comment_ids:
            self._comment_ids.append(comment_id)
        self._active_ranges[comment_id] = _OpenRange(anchors=self._anchor_texts)

    def _end_comment_range(self, attrib):
        comment_id = get_w_attr(attrib, 'id')
        open_range = self._active_ranges.pop(comment_id, None)
        if open_range is not None:
            open_range.anchors[comment_id] = ''.join(open_range.parts)

    # ------------------------------------------------------------
    # Text routing
    # ------------------------------------------------------------

    def _flush_text(self):
        if not self._pending_text:
            return
        text = ''.join(self._pending_text)
        self._pending_text = []
        if self._para_depth == 0 or self._skip_depth:
            return
        # Indentation between elements is not content; w:t keeps its spaces
        if self._stack and self._stack[-1] in TEXT_TAGS:
            self._add_text(text)
        elif not is_blank(text):
            self._add_text(text)

    def _add_text(self, text: str):
        for open_range in self._active_ranges.values():
            open_range.parts.append(text)

        if self._revision is not None:
            self._revision.parts.append(text)
        else:
            self._stable_parts.append(text)

    def _commit_stable(self):
        if self._stable_parts:
            self._segments.append(StableSegment(''.join(self._stable_parts)))
            self._stable_parts = []


def parse_document(xml: Union[str, bytes], debug: bool = False) -> List[ParsedParagraph]:
    """
    Parse the main document body into non-empty paragraphs.

    Malformed or truncated markup stops the scan; paragraphs closed before
    the failure are returned and the failure is reported as a warning.

    Args:
        xml: Content of word/document.xml
        debug: If True, print skipped paragraphs and parse summaries to stderr

    Returns:
        ParsedParagraph list in document order with dense indices
    """
    if isinstance(xml, str):
        xml = xml.encode('utf-8')
    if not xml.strip():
        return []

    segmenter = ParagraphSegmenter(debug=debug)
    parser = create_streaming_parser(segmenter)
    try:
        parser.feed(xml)
        parser.close()
    except etree.XMLSyntaxError as e:
        print(
            f"Warning: document.xml is malformed, kept {len(segmenter.paragraphs)} paragraph(s): {e}",
            file=sys.stderr
        )

    if debug:
        print(f"[DEBUG] Parsed {len(segmenter.paragraphs)} paragraph(s)", file=sys.stderr)
    return segmenter.paragraphs
