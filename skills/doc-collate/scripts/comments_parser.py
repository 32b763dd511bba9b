#!/usr/bin/env python3
"""
ABOUTME: Parses word/comments.xml into a comment dictionary
ABOUTME: Maps comment id -> Comment (author, date, initials, text); anchor text is filled in later
"""

import io
import sys
from typing import Dict, Union

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from collate_types import Comment
from xml_utils import W_COMMENT, W_P, W_R, get_w_attr, run_text, w_local_name


def _paragraph_text(elem) -> str:
    return ''.join(run_text(node) for node in elem.iter() if w_local_name(node.tag) == W_R)


def _comment_body_text(comment_elem) -> str:
    """
    Flatten a w:comment body to plain text.

    Runs follow the same text rules as body paragraphs; paragraphs are
    joined with newlines and the result is stripped.
    """
    paragraphs = [
        _paragraph_text(node) for node in comment_elem.iter() if w_local_name(node.tag) == W_P
    ]
    if not paragraphs:
        # Non-standard producers may put runs directly under w:comment
        paragraphs.append(_paragraph_text(comment_elem))
    return '\n'.join(paragraphs).strip()


def parse_comments(xml: Union[str, bytes], debug: bool = False) -> Dict[str, Comment]:
    """
    Parse comment definitions.

    Args:
        xml: Content of word/comments.xml
        debug: If True, print per-comment details to stderr

    Returns:
        dict: comment id -> Comment with empty anchor_text.
        Definitions read before a markup error are kept; the error itself
        is reported as a warning.
    """
    if isinstance(xml, str):
        xml = xml.encode('utf-8')

    comments: Dict[str, Comment] = {}
    if not xml.strip():
        return comments

    try:
        for _event, elem in ET.iterparse(io.BytesIO(xml), events=('end',)):
            if w_local_name(elem.tag) != W_COMMENT:
                continue
            comment = Comment(
                id=get_w_attr(elem.attrib, 'id', ''),
                author=get_w_attr(elem.attrib, 'author', ''),
                date=get_w_attr(elem.attrib, 'date'),
                text=_comment_body_text(elem),
                initials=get_w_attr(elem.attrib, 'initials'),
            )
            comments[comment.id] = comment
            if debug:
                print(f"[DEBUG] Comment {comment.id} by {comment.author}: {comment.text[:40]!r}", file=sys.stderr)
            elem.clear()
    except (ET.ParseError, DefusedXmlException) as e:
        print(f"Warning: comments.xml is malformed, kept {len(comments)} comment(s): {e}", file=sys.stderr)

    return comments
