#!/usr/bin/env python3
"""
ABOUTME: Reconstructs base and revised paragraph text from segments
ABOUTME: Extracts one TrackChange per insertion/deletion with surrounding base-text context
"""

from typing import List, Sequence

from collate_types import (
    ChangeType,
    DeletionSegment,
    InsertionSegment,
    Segment,
    StableSegment,
    TrackChange,
)


# Characters of base text shown on each side of a change
CONTEXT_WINDOW = 30


def base_text(segments: Sequence[Segment]) -> str:
    """Text before revision: stable + deleted text (deleted text existed in the original)"""
    return ''.join(
        seg.text for seg in segments
        if isinstance(seg, (StableSegment, DeletionSegment))
    )


def revised_text(segments: Sequence[Segment]) -> str:
    """Text after revision: stable + inserted text"""
    return ''.join(
        seg.text for seg in segments
        if isinstance(seg, (StableSegment, InsertionSegment))
    )


def context_before(text: str, pos: int, max_chars: int = CONTEXT_WINDOW) -> str:
    return text[max(pos - max_chars, 0):pos]


def context_after(text: str, pos: int, max_chars: int = CONTEXT_WINDOW) -> str:
    return text[pos:pos + max_chars]


def extract_changes(segments: Sequence[Segment]) -> List[TrackChange]:
    """
    Build TrackChange records in segment (document) order.

    A running offset into the base text positions each change:
    - Stable: advances the offset, emits nothing
    - Deletion: context ends at the offset and resumes after the deleted
      text; the offset then advances past it
    - Insertion: both windows straddle the current offset, which does not
      move (inserted text has no extent in the base text)

    Offsets count characters, so windows never split a code point.
    """
    full_base = base_text(segments)
    changes = []
    position = 0

    for seg in segments:
        if isinstance(seg, StableSegment):
            position += len(seg.text)
        elif isinstance(seg, DeletionSegment):
            changes.append(TrackChange(
                id=seg.id,
                change_type=ChangeType.DELETION,
                author=seg.author,
                date=seg.date,
                original_text=seg.text,
                new_text='',
                context_before=context_before(full_base, position),
                context_after=context_after(full_base, position + len(seg.text)),
            ))
            position += len(seg.text)
        elif isinstance(seg, InsertionSegment):
            changes.append(TrackChange(
                id=seg.id,
                change_type=ChangeType.INSERTION,
                author=seg.author,
                date=seg.date,
                original_text='',
                new_text=seg.text,
                context_before=context_before(full_base, position),
                context_after=context_after(full_base, position),
            ))

    return changes
