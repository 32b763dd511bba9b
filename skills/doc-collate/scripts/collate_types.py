#!/usr/bin/env python3
"""
ABOUTME: Data model shared by the collation pipeline
ABOUTME: Paragraph segments, comments, track changes, paragraph blocks and reviewers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


# ============================================================
# Enums
# ============================================================

class ParagraphStatus(Enum):
    """Whether a paragraph is wholly new, wholly deleted, or a normal paragraph"""
    NORMAL = "Normal"
    WHOLLY_INSERTED = "WhollyInserted"
    WHOLLY_DELETED = "WhollyDeleted"


class ChangeType(Enum):
    INSERTION = "Insertion"
    DELETION = "Deletion"


# ============================================================
# Segments (one contiguous run of a single provenance)
# ============================================================

@dataclass(frozen=True)
class StableSegment:
    """Unchanged text"""
    text: str


@dataclass(frozen=True)
class InsertionSegment:
    """Text added by a reviewer (w:ins)"""
    id: str
    author: str
    date: Optional[str]
    text: str


@dataclass(frozen=True)
class DeletionSegment:
    """Text removed by a reviewer (w:del)"""
    id: str
    author: str
    date: Optional[str]
    text: str


Segment = Union[StableSegment, InsertionSegment, DeletionSegment]


def is_change_segment(segment: Segment) -> bool:
    return isinstance(segment, (InsertionSegment, DeletionSegment))


@dataclass
class ParsedParagraph:
    """
    One non-empty body paragraph as produced by the segmenter.

    index is dense over emitted paragraphs only; empty or whitespace-only
    paragraphs never receive one.
    """
    index: int
    segments: List[Segment]
    comment_ids: List[str] = field(default_factory=list)
    comment_anchor_texts: Dict[str, str] = field(default_factory=dict)


# ============================================================
# Result types
# ============================================================

@dataclass
class Comment:
    id: str
    author: str
    date: Optional[str]
    text: str
    anchor_text: str = ''
    initials: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'author': self.author,
            'date': self.date,
            'text': self.text,
            'anchor_text': self.anchor_text,
            'initials': self.initials,
        }


@dataclass
class TrackChange:
    """A single insertion or deletion with up to 30 characters of base-text context"""
    id: str
    change_type: ChangeType
    author: str
    date: Optional[str]
    original_text: str
    new_text: str
    context_before: str
    context_after: str

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'change_type': self.change_type.value,
            'author': self.author,
            'date': self.date,
            'original_text': self.original_text,
            'new_text': self.new_text,
            'context_before': self.context_before,
            'context_after': self.context_after,
        }


@dataclass
class ReviewerVersion:
    reviewer_name: str
    resulting_text: str

    def to_dict(self) -> dict:
        return {'reviewer_name': self.reviewer_name, 'resulting_text': self.resulting_text}


@dataclass
class ParagraphBlock:
    """Exported unit of the collation view: one paragraph with its changes and comments"""
    index: int
    base_text: str
    revised_text: str
    paragraph_status: ParagraphStatus = ParagraphStatus.NORMAL
    paragraph_change_author: Optional[str] = None  # Only set for wholesale changes
    reviewer_versions: List[ReviewerVersion] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    track_changes: List[TrackChange] = field(default_factory=list)
    has_conflicts: bool = False

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'base_text': self.base_text,
            'revised_text': self.revised_text,
            'paragraph_status': self.paragraph_status.value,
            'paragraph_change_author': self.paragraph_change_author,
            'reviewer_versions': [v.to_dict() for v in self.reviewer_versions],
            'comments': [c.to_dict() for c in self.comments],
            'track_changes': [tc.to_dict() for tc in self.track_changes],
            'has_conflicts': self.has_conflicts,
        }


@dataclass
class Reviewer:
    name: str
    file_name: str
    comment_count: int
    change_count: int
    colour: str

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'file_name': self.file_name,
            'comment_count': self.comment_count,
            'change_count': self.change_count,
            'colour': self.colour,
        }


@dataclass
class CollateResult:
    """Top-level result. error is set only for container failures, with no paragraphs or reviewers."""
    paragraphs: List[ParagraphBlock] = field(default_factory=list)
    reviewers: List[Reviewer] = field(default_factory=list)
    document_title: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> 'CollateResult':
        return cls(error=message)

    def to_dict(self) -> dict:
        return {
            'paragraphs': [p.to_dict() for p in self.paragraphs],
            'reviewers': [r.to_dict() for r in self.reviewers],
            'document_title': self.document_title,
            'error': self.error,
        }
