#!/usr/bin/env python3
"""
ABOUTME: Collates reviewer track changes and comments from a DOCX into paragraph blocks
ABOUTME: Reads document/comments/core parts from the archive, runs the pipeline, exports JSON
"""

import argparse
import hashlib
import io
import json
import os
import sys
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from collate_types import CollateResult
from comments_parser import parse_comments
from matcher import build_paragraph_blocks
from paragraph_segmenter import parse_document
from xml_utils import DC_TITLE


DOCUMENT_PART = 'word/document.xml'
COMMENTS_PART = 'word/comments.xml'
CORE_PART = 'docProps/core.xml'


class CollateError(Exception):
    """Container-level failure: the archive cannot be read or lacks the document body"""


def print_error(title: str, details: str, solution: str):
    """
    Print a friendly, formatted error message.

    Args:
        title: Error title
        details: Detailed error information
        solution: Suggested solution steps
    """
    print("\n" + "=" * 80, file=sys.stderr)
    print(f"ERROR: {title}", file=sys.stderr)
    print("=" * 80, file=sys.stderr)
    print(f"\n{details}", file=sys.stderr)
    print("\nSOLUTION:", file=sys.stderr)
    print(solution, file=sys.stderr)
    print("\n" + "=" * 80 + "\n", file=sys.stderr)


def is_debug_env() -> bool:
    """
    Check if debug output is enabled via environment variable.

    Returns:
        True if DOC_COLLATE_DEBUG is set to 'true', False otherwise
    """
    return os.getenv("DOC_COLLATE_DEBUG", "").lower() == "true"


def read_zip_part(zf: zipfile.ZipFile, name: str) -> Optional[bytes]:
    """Read an archive member, None if it is absent or unreadable"""
    try:
        return zf.read(name)
    except KeyError:
        return None
    except (zipfile.BadZipFile, OSError, RuntimeError) as e:
        # Corrupt member or unsupported compression
        print(f"Warning: Cannot read {name}: {e}", file=sys.stderr)
        return None


def extract_title(core_xml: Union[str, bytes]) -> Optional[str]:
    """
    Extract dc:title from docProps/core.xml.

    Returns:
        First non-empty trimmed title, or None when missing or unparsable
    """
    if isinstance(core_xml, str):
        core_xml = core_xml.encode('utf-8')
    try:
        for _event, elem in ET.iterparse(io.BytesIO(core_xml), events=('end',)):
            if elem.tag == DC_TITLE and elem.text and elem.text.strip():
                return elem.text.strip()
    except (ET.ParseError, DefusedXmlException):
        return None
    return None


def collate(data: bytes, file_name: str, debug: bool = False) -> CollateResult:
    """
    Run the full pipeline on DOCX bytes.

    Raises:
        CollateError: If the archive cannot be opened or has no document body
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data), 'r')
    except (zipfile.BadZipFile, OSError) as e:
        raise CollateError(f"Failed to open ZIP archive: {e}") from e

    with zf:
        document_xml = read_zip_part(zf, DOCUMENT_PART)
        if document_xml is None:
            raise CollateError(f"{DOCUMENT_PART} not found; is this a valid .docx file?")
        comments_xml = read_zip_part(zf, COMMENTS_PART)
        core_xml = read_zip_part(zf, CORE_PART)

    comments_map = parse_comments(comments_xml, debug=debug) if comments_xml is not None else {}
    parsed_paragraphs = parse_document(document_xml, debug=debug)
    paragraphs, reviewers = build_paragraph_blocks(parsed_paragraphs, comments_map, file_name, debug=debug)

    return CollateResult(
        paragraphs=paragraphs,
        reviewers=reviewers,
        document_title=extract_title(core_xml) if core_xml is not None else None,
    )


def parse_docx(data: bytes, file_name: str, debug: bool = False) -> CollateResult:
    """
    Parse a DOCX and return the collation result.

    Container errors are returned in result.error (with no paragraphs or
    reviewers) instead of being raised.
    """
    try:
        return collate(data, file_name, debug=debug)
    except CollateError as e:
        return CollateResult.failure(str(e))


def parse_docx_file(file_path: Union[str, Path], debug: bool = False) -> CollateResult:
    """Read a DOCX from disk; the reviewer file_name label is the base name"""
    path = Path(file_path)
    return parse_docx(path.read_bytes(), path.name, debug=debug)


def collate_docx_json(data: bytes, file_name: str) -> str:
    """Single-call entry point returning the result serialized as JSON"""
    return json.dumps(parse_docx(data, file_name).to_dict(), ensure_ascii=False)


# ============================================================
# Output
# ============================================================

def calculate_file_hash(file_path: str) -> str:
    """
    Calculate SHA256 hash of a file.

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(4096), b""):
            sha256_hash.update(byte_block)
    return f"sha256:{sha256_hash.hexdigest()}"


def create_metadata(file_path: str, result: CollateResult) -> dict:
    """Metadata record describing the source document and the roster"""
    doc_path = Path(file_path).resolve()
    return {
        "type": "meta",
        "source_file": str(doc_path),
        "source_hash": calculate_file_hash(file_path),
        "document_title": result.document_title,
        "reviewers": [r.to_dict() for r in result.reviewers],
        "parsed_at": datetime.now().isoformat()
    }


def save_result_json(result: CollateResult, output_path: str, metadata: dict = None):
    """
    Save the full result as one JSON document.

    Args:
        result: Collation result
        output_path: Path to output file
        metadata: Optional metadata dictionary to include under "meta"
    """
    output_data = result.to_dict()
    if metadata:
        output_data["meta"] = metadata

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(output_data, f, indent=2, ensure_ascii=False)


def save_result_jsonl(result: CollateResult, output_path: str, metadata: dict = None):
    """
    Save the result in JSONL format (one paragraph block per line).
    First line contains metadata if provided.
    """
    with open(output_path, 'w', encoding='utf-8') as f:
        if metadata:
            f.write(json.dumps(metadata, ensure_ascii=False) + '\n')
        for block in result.paragraphs:
            f.write(json.dumps(block.to_dict(), ensure_ascii=False) + '\n')


def print_stats(result: CollateResult):
    print("\n--- Document Statistics ---")
    total_changes = sum(len(p.track_changes) for p in result.paragraphs)
    total_comments = sum(len(p.comments) for p in result.paragraphs)
    conflicts = sum(1 for p in result.paragraphs if p.has_conflicts)
    print(f"Paragraphs: {len(result.paragraphs)}")
    print(f"Track changes: {total_changes}")
    print(f"Comments: {total_comments}")
    print(f"Paragraphs with conflicts: {conflicts}")
    for reviewer in result.reviewers:
        print(f"  {reviewer.colour} {reviewer.name}: "
              f"{reviewer.change_count} change(s), {reviewer.comment_count} comment(s)")


def print_preview(result: CollateResult, limit: int = 5):
    changed = [p for p in result.paragraphs if p.track_changes or p.comments]
    print(f"\n--- Changed Paragraph Preview (first {limit}) ---")
    for block in changed[:limit]:
        print(f"\n[Paragraph {block.index}] {block.paragraph_status.value}"
              f"{' (conflict)' if block.has_conflicts else ''}")
        base = block.base_text[:200] + ("..." if len(block.base_text) > 200 else "")
        revised = block.revised_text[:200] + ("..." if len(block.revised_text) > 200 else "")
        print(f"Base:    {base}")
        print(f"Revised: {revised}")
        for change in block.track_changes:
            text = change.new_text or change.original_text
            print(f"  {change.change_type.value} by {change.author}: {text!r}")
        for comment in block.comments:
            print(f"  Comment by {comment.author} on {comment.anchor_text!r}: {comment.text}")


def main():
    parser = argparse.ArgumentParser(
        description="Collate reviewer track changes and comments from a DOCX document"
    )
    parser.add_argument(
        "document",
        type=str,
        help="Path to the DOCX file to collate"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output file path (default: {document}_collate.{format})"
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "jsonl"],
        default="json",
        help="Output format (default: json)"
    )
    parser.add_argument(
        "--name",
        type=str,
        help="File label attached to reviewer entries (default: document file name)"
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Print preview of changed paragraphs"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print statistics about changes, comments and reviewers"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output (also enabled by DOC_COLLATE_DEBUG=true)"
    )

    args = parser.parse_args()
    debug = args.debug or is_debug_env()

    doc_path = Path(args.document)
    if not doc_path.exists():
        print(f"Error: File not found: {args.document}", file=sys.stderr)
        sys.exit(1)

    if doc_path.suffix.lower() != '.docx':
        print(f"Warning: File does not have .docx extension: {args.document}", file=sys.stderr)

    print(f"Collating document: {args.document}")
    result = parse_docx(doc_path.read_bytes(), args.name or doc_path.name, debug=debug)

    if result.error:
        print_error(
            "Cannot collate document",
            result.error,
            "  1. Check that the file is a Word document (.docx), not .doc or .pdf\n"
            "  2. Open it in Microsoft Word and save it again\n"
            "  3. Re-run the collation"
        )
        sys.exit(1)

    print(f"Extracted {len(result.paragraphs)} paragraphs, {len(result.reviewers)} reviewer(s)")

    if args.stats:
        print_stats(result)

    if args.preview:
        print_preview(result)

    output_path = args.output or doc_path.stem + "_collate." + args.format
    metadata = create_metadata(args.document, result)

    if args.format == "jsonl":
        save_result_jsonl(result, output_path, metadata)
    else:
        save_result_json(result, output_path, metadata)

    print(f"\nSaved to: {output_path}")


if __name__ == "__main__":
    main()
