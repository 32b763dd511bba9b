#!/usr/bin/env python3
"""
ABOUTME: XML utility functions for document processing
ABOUTME: WordprocessingML local names, attribute lookup, run text and a hardened lxml parser factory
"""

from typing import Optional

from docx.oxml.ns import nsmap, qn
from lxml import etree


NS = {
    'w': nsmap['w'],
    'w_strict': 'http://purl.oclc.org/ooxml/wordprocessingml/main',
    'mc': 'http://schemas.openxmlformats.org/markup-compatibility/2006',
}

# Transitional and Strict documents use the same local names
W_NAMESPACES = frozenset((NS['w'], NS['w_strict']))

# Local names of elements whose character data is document text, whitespace included
TEXT_TAGS = frozenset(('t', 'delText', 'instrText'))

W_P = 'p'
W_R = 'r'
W_INS = 'ins'
W_DEL = 'del'
W_TAB = 'tab'
W_BR = 'br'
W_COMMENT = 'comment'
W_COMMENT_RANGE_START = 'commentRangeStart'
W_COMMENT_RANGE_END = 'commentRangeEnd'

MC_FALLBACK = f"{{{NS['mc']}}}Fallback"
DC_TITLE = qn('dc:title')


def w_local_name(tag) -> Optional[str]:
    """
    Local name of a WordprocessingML element tag.

    Returns:
        The name without namespace (e.g. "p") for Transitional or Strict
        tags, None for tags in any other namespace or without one
    """
    if not isinstance(tag, str) or not tag.startswith('{'):
        return None
    namespace, _, local = tag[1:].partition('}')
    return local if namespace in W_NAMESPACES else None


def get_w_attr(attrib, name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Read a WordprocessingML attribute in either namespace, falling back to the unprefixed name.

    Some producers emit revision attributes without the namespace prefix,
    so every spelling is accepted.

    Args:
        attrib: Attribute mapping of an element
        name: Local attribute name (e.g. "author")
        default: Value returned when no spelling is present

    Returns:
        Attribute value or default
    """
    for namespace in (NS['w'], NS['w_strict']):
        value = attrib.get(f'{{{namespace}}}{name}')
        if value is not None:
            return value
    value = attrib.get(name)
    return value if value is not None else default


def is_text_break(attrib) -> bool:
    """True for a w:br that breaks the line; page and column breaks are layout, not text"""
    return get_w_attr(attrib, 'type') in (None, 'textWrapping')


def run_text(run) -> str:
    """
    Text of one w:r element.

    w:t / w:delText / w:instrText contribute their text verbatim, w:tab a
    tab and a line-wrapping w:br a newline.
    """
    parts = []
    for child in run:
        tag = w_local_name(child.tag)
        if tag in TEXT_TAGS:
            if child.text:
                parts.append(child.text)
        elif tag == W_TAB:
            parts.append('\t')
        elif tag == W_BR and is_text_break(child.attrib):
            parts.append('\n')
    return ''.join(parts)


def create_streaming_parser(target) -> etree.XMLParser:
    """
    Create an lxml feed parser that forwards events to a parser target.

    Entity resolution and network access are disabled; untrusted DOCX
    parts must not be able to pull in external content.
    """
    return etree.XMLParser(
        target=target,
        resolve_entities=False,
        no_network=True,
        huge_tree=False,
    )


def is_blank(text: str) -> bool:
    return not text or not text.strip()
