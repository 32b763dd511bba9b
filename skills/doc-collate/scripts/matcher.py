#!/usr/bin/env python3
"""
ABOUTME: Builds the final paragraph blocks from parsed paragraphs and comment definitions
ABOUTME: Classifies wholesale insertions/deletions, flags conflicts, aggregates the reviewer roster
"""

import copy
import sys
from typing import Dict, List, Optional, Sequence, Tuple

import track_changes
from collate_types import (
    Comment,
    DeletionSegment,
    InsertionSegment,
    ParagraphBlock,
    ParagraphStatus,
    ParsedParagraph,
    Reviewer,
    ReviewerVersion,
    Segment,
    StableSegment,
    is_change_segment,
)


# Reviewer colours, assigned in first-encounter order and reused after the 8th reviewer
REVIEWER_COLOURS = (
    "#EF4444", "#3B82F6", "#10B981", "#F59E0B",
    "#8B5CF6", "#F97316", "#14B8A6", "#EC4899",
)


class ReviewerRoster:
    """
    Per-author comment/change counters in first-encounter order.

    dict preserves insertion order, so colour assignment is reproducible
    for identical input.
    """

    def __init__(self):
        self._counts: Dict[str, List[int]] = {}  # author -> [comment_count, change_count]

    def _entry(self, author: str) -> List[int]:
        if author not in self._counts:
            self._counts[author] = [0, 0]
        return self._counts[author]

    def add_comment(self, author: str):
        self._entry(author)[0] += 1

    def add_change(self, author: str):
        self._entry(author)[1] += 1

    def __len__(self):
        return len(self._counts)

    def to_reviewers(self, file_name: str) -> List[Reviewer]:
        return [
            Reviewer(
                name=name,
                file_name=file_name,
                comment_count=comment_count,
                change_count=change_count,
                colour=REVIEWER_COLOURS[i % len(REVIEWER_COLOURS)],
            )
            for i, (name, (comment_count, change_count)) in enumerate(self._counts.items())
        ]


def classify_paragraph(segments: Sequence[Segment]) -> Tuple[ParagraphStatus, Optional[str]]:
    """
    Classify a paragraph from its segments.

    - WhollyInserted: at least one insertion, no deletion, stable text is whitespace only
    - WhollyDeleted: the symmetric case
    - Normal: anything else

    Returns:
        (status, author of the last wholesale change segment or None)
    """
    has_stable = False
    ins_author = None
    del_author = None

    for seg in segments:
        if isinstance(seg, StableSegment):
            if seg.text.strip():
                has_stable = True
        elif isinstance(seg, InsertionSegment):
            ins_author = seg.author
        elif isinstance(seg, DeletionSegment):
            del_author = seg.author

    if not has_stable and ins_author is not None and del_author is None:
        return ParagraphStatus.WHOLLY_INSERTED, ins_author
    if not has_stable and del_author is not None and ins_author is None:
        return ParagraphStatus.WHOLLY_DELETED, del_author
    return ParagraphStatus.NORMAL, None


def change_authors(segments: Sequence[Segment]) -> List[str]:
    """Distinct insertion/deletion authors in order of first appearance"""
    authors = []
    for seg in segments:
        if is_change_segment(seg) and seg.author not in authors:
            authors.append(seg.author)
    return authors


def attach_comments(para: ParsedParagraph, comments_map: Dict[str, Comment]) -> List[Comment]:
    """
    Resolve the paragraph's comment ids against the dictionary.

    Each attached comment is a copy carrying this paragraph's anchor text;
    ids without a definition are dropped.
    """
    attached = []
    for comment_id in para.comment_ids:
        comment = comments_map.get(comment_id)
        if comment is None:
            continue
        comment = copy.copy(comment)
        if comment_id in para.comment_anchor_texts:
            comment.anchor_text = para.comment_anchor_texts[comment_id]
        attached.append(comment)
    return attached


def build_paragraph_block(para: ParsedParagraph, comments_map: Dict[str, Comment],
                          roster: ReviewerRoster) -> ParagraphBlock:
    """Build one ParagraphBlock and record its comment/change authors in the roster"""
    base = track_changes.base_text(para.segments)
    revised = track_changes.revised_text(para.segments)
    changes = track_changes.extract_changes(para.segments)
    status, status_author = classify_paragraph(para.segments)

    if status == ParagraphStatus.WHOLLY_INSERTED:
        base = ''
    elif status == ParagraphStatus.WHOLLY_DELETED:
        revised = ''

    comments = attach_comments(para, comments_map)
    for comment in comments:
        roster.add_comment(comment.author)

    for seg in para.segments:
        if is_change_segment(seg):
            roster.add_change(seg.author)

    authors = change_authors(para.segments)

    # Every change author currently sees the fully merged revised text
    reviewer_versions = []
    if base != revised:
        reviewer_versions = [
            ReviewerVersion(reviewer_name=author, resulting_text=revised)
            for author in authors
        ]

    return ParagraphBlock(
        index=para.index,
        base_text=base,
        revised_text=revised,
        paragraph_status=status,
        paragraph_change_author=status_author,
        reviewer_versions=reviewer_versions,
        comments=comments,
        track_changes=changes,
        has_conflicts=len(authors) > 1,
    )


def build_paragraph_blocks(parsed_paragraphs: Sequence[ParsedParagraph],
                           comments_map: Dict[str, Comment],
                           file_name: str,
                           debug: bool = False) -> Tuple[List[ParagraphBlock], List[Reviewer]]:
    """
    Combine parsed paragraphs with comment definitions.

    Args:
        parsed_paragraphs: Segmenter output in document order
        comments_map: comment id -> Comment from comments.xml
        file_name: Label attached to every reviewer entry
        debug: If True, print conflict details to stderr

    Returns:
        Tuple of (paragraph blocks, reviewer roster)
    """
    roster = ReviewerRoster()
    blocks = []

    for para in parsed_paragraphs:
        block = build_paragraph_block(para, comments_map, roster)
        if debug and block.has_conflicts:
            names = ', '.join(change_authors(para.segments))
            print(f"[DEBUG] Paragraph {block.index} has conflicting edits by: {names}", file=sys.stderr)
        blocks.append(block)

    if debug:
        print(f"[DEBUG] Built {len(blocks)} block(s) from {len(roster)} reviewer(s)", file=sys.stderr)
    return blocks, roster.to_reviewers(file_name)
