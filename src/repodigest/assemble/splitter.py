"""
Thread splitting for length-limited social posts.

`pack` groups text segments into blocks of at most `limit` characters,
`number` appends ` (i/N)` suffixes, and `split_thread` composes the two so
that numbered blocks still respect the limit.
"""
from typing import Iterable, List

import structlog

logger = structlog.get_logger()


def _suffix(index: int, total: int) -> str:
    return f" ({index}/{total})"


def _wrap(text: str, limit: int) -> List[str]:
    """Word-wrap a single segment; words longer than limit are hard-split."""
    if len(text) <= limit:
        return [text]

    pieces: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= limit:
            current = candidate
            continue

        if current:
            pieces.append(current)
            current = ""

        while len(word) > limit:
            pieces.append(word[:limit])
            word = word[limit:]
        current = word

    if current:
        pieces.append(current)
    return pieces


def pack(segments: Iterable[str], limit: int) -> List[str]:
    """
    Pack segments into newline-joined blocks of at most `limit` characters.

    Raises:
        ValueError: If limit < 1
    """
    if limit < 1:
        raise ValueError(f"Block limit must be at least 1, got {limit}")

    blocks: List[str] = []
    current = ""

    for segment in segments:
        text = (segment or "").strip()
        if not text:
            continue

        candidate = f"{current}\n{text}" if current else text
        if len(candidate) <= limit:
            current = candidate
            continue

        if current:
            blocks.append(current)
            current = ""

        pieces = _wrap(text, limit)
        blocks.extend(pieces[:-1])
        current = pieces[-1]

    if current:
        blocks.append(current)
    return blocks


def number(blocks: List[str], limit: int) -> List[str]:
    """
    Append ` (i/N)` to each block when there is more than one.

    Block text (never the suffix) is cut to keep each block within `limit`.

    Raises:
        ValueError: If the widest suffix alone does not fit in `limit`
    """
    total = len(blocks)
    if total <= 1:
        return list(blocks)

    if len(_suffix(total, total)) > limit:
        raise ValueError(f"Numbering suffix for {total} blocks does not fit in {limit} characters")

    numbered = []
    for index, block in enumerate(blocks, start=1):
        suffix = _suffix(index, total)
        room = limit - len(suffix)
        text = block if len(block) <= room else block[:room].rstrip()
        numbered.append(f"{text}{suffix}" if text else suffix.lstrip())
    return numbered


def split_thread(segments: Iterable[str], limit: int, numbering: bool = True) -> List[str]:
    """
    Split segments into a thread of blocks, each at most `limit` characters.

    With numbering, space for the ` (N/N)` suffix is reserved up front and the
    segments are re-packed until the block count stops widening the suffix.
    When even the suffix cannot fit, blocks are returned unnumbered.

    Raises:
        ValueError: If limit < 1
    """
    segments = list(segments)
    blocks = pack(segments, limit)
    if not numbering or len(blocks) <= 1:
        return blocks

    total = len(blocks)
    while True:
        reserved = len(_suffix(total, total))
        if reserved >= limit:
            logger.warning("Thread numbering skipped, suffix does not fit",
                           limit=limit, blocks=total, suffix_length=reserved)
            return blocks

        repacked = pack(segments, limit - reserved)
        if len(_suffix(len(repacked), len(repacked))) <= reserved:
            return number(repacked, limit)
        total = len(repacked)
