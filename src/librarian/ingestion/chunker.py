"""Sentence-aware text segmentation.

Text is split into paragraphs on blank lines, paragraphs into sentences,
and sentences are packed greedily into chunks of roughly
``CHUNK_TARGET_SIZE`` characters.  Consecutive chunks share their last
``CHUNK_OVERLAP // OVERLAP_SENTENCE_DIVISOR`` sentences so that a passage
cut at a boundary is still retrievable from either side.  A chunk never
ends in the middle of a sentence.

Usage::

    from librarian.ingestion.chunker import Segmenter

    for segment in Segmenter().segment_with_offsets(text):
        print(segment.index, segment.start_char, segment.end_char)
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

CHUNK_TARGET_SIZE = 1000
CHUNK_MIN_SIZE = 200
CHUNK_MAX_SIZE = 1500
CHUNK_OVERLAP = 200
OVERLAP_SENTENCE_DIVISOR = 100

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")
_WORD = re.compile(r"\S+")
_SENTENCE_END = re.compile(r"[.!?]\s+(?=[A-ZА-ЯЁ]|\n|$)")

# False sentence breaks.
_ABBREVIATION = re.compile(r"[a-zа-яё]\.$")
_DECIMAL = re.compile(r"\d\.\d")
_INITIALS = re.compile(r"[A-ZА-ЯЁ]\.\s*[A-ZА-ЯЁ]")


@dataclass(frozen=True)
class Sentence:
    """A sentence with its ``[start, end)`` span in the source text."""

    text: str
    start: int
    end: int


@dataclass(frozen=True)
class TextSegment:
    """One chunk produced by :class:`Segmenter`.

    ``start_char`` / ``end_char`` point into the *original* text, so
    ``text[start_char:end_char]`` is the source passage before whitespace
    normalisation.
    """

    index: int
    content: str
    start_char: int
    end_char: int

    @property
    def size(self) -> int:
        return len(self.content)


# ── sentence splitting ────────────────────────────────────────────────


def _paragraphs(text: str) -> Iterator[tuple[int, str]]:
    start = 0
    for match in _PARAGRAPH_BREAK.finditer(text):
        yield start, text[start : match.start()]
        start = match.end()
    yield start, text[start:]


def _normalize(paragraph: str, offset: int) -> tuple[str, list[int]]:
    """Collapse whitespace runs to single spaces.

    Returns the normalised string together with the source position of
    every character in it.
    """
    parts: list[str] = []
    positions: list[int] = []
    for match in _WORD.finditer(paragraph):
        if parts:
            parts.append(" ")
            positions.append(offset + match.start() - 1)
        parts.append(match.group())
        positions.extend(range(offset + match.start(), offset + match.end()))
    return "".join(parts), positions


def _is_false_break(text: str, end: int) -> bool:
    before = text[max(0, end - 2) : end]
    around = text[max(0, end - 5) : end + 5]
    return bool(
        _ABBREVIATION.search(before) or _DECIMAL.search(around) or _INITIALS.search(around)
    )


def split_into_sentences(text: str) -> list[Sentence]:
    """Split *text* into sentences, never across a paragraph break.

    A sentence ends at ``.``, ``!`` or ``?`` followed by whitespace and an
    uppercase letter or the end of the paragraph.  A dot preceded by a
    lowercase letter (abbreviation), a dot between digits (decimal
    number) and an uppercase-dot-uppercase run (initials) do not end a
    sentence.
    """
    sentences: list[Sentence] = []
    for offset, paragraph in _paragraphs(text):
        normalized, positions = _normalize(paragraph, offset)
        if not normalized:
            continue

        last = 0
        for match in _SENTENCE_END.finditer(normalized):
            end = match.start() + 1
            if _is_false_break(normalized, end):
                continue
            sentences.append(Sentence(normalized[last:end], positions[last], positions[end - 1] + 1))
            last = match.end()

        if last < len(normalized):
            sentences.append(
                Sentence(normalized[last:], positions[last], positions[len(normalized) - 1] + 1)
            )
    return sentences


# ── chunk assembly ────────────────────────────────────────────────────


def _join(sentences: list[Sentence]) -> str:
    return " ".join(s.text for s in sentences)


def _joined_length(sentences: list[Sentence]) -> int:
    if not sentences:
        return 0
    return sum(len(s.text) for s in sentences) + len(sentences) - 1


class Segmenter:
    """Greedy sentence packer.

    Parameters
    ----------
    target_size:
        A chunk is closed as soon as it reaches this many characters.
    min_size:
        Chunks shorter than this are never emitted on their own; a short
        trailing chunk is merged into its predecessor.
    max_size:
        A sentence that would push the chunk past this size starts a new
        chunk instead.  A single sentence longer than ``max_size`` is
        still kept whole.
    overlap:
        Overlap budget; ``overlap // 100`` trailing sentences of each
        closed chunk seed the next one.
    """

    def __init__(
        self,
        target_size: int = CHUNK_TARGET_SIZE,
        min_size: int = CHUNK_MIN_SIZE,
        max_size: int = CHUNK_MAX_SIZE,
        overlap: int = CHUNK_OVERLAP,
    ) -> None:
        if not 0 < min_size <= target_size <= max_size:
            raise ValueError(
                f"Chunk sizes must satisfy 0 < min <= target <= max, "
                f"got min={min_size}, target={target_size}, max={max_size}"
            )
        if overlap < 0:
            raise ValueError(f"Chunk overlap must be non-negative, got {overlap}")
        self.target_size = target_size
        self.min_size = min_size
        self.max_size = max_size
        self.overlap_sentences = overlap // OVERLAP_SENTENCE_DIVISOR

    def segment(self, text: str) -> list[str]:
        """Return the chunk strings for *text*, in order."""
        return [segment.content for segment in self.segment_with_offsets(text)]

    def segment_with_offsets(self, text: str) -> list[TextSegment]:
        """Return chunks of *text* together with their source offsets."""
        segments: list[TextSegment] = []
        current: list[Sentence] = []
        # Sentences in ``current`` that were not carried over from the
        # previous chunk.
        fresh = 0
        size = 0

        for sentence in split_into_sentences(text):
            sentence_size = len(sentence.text) + 1

            if current and size + sentence_size > self.max_size:
                if fresh and (
                    self._emit(segments, current) or self._merge_into_previous(segments, current[-fresh:])
                ):
                    current, fresh = self._carry_over(current), 0
                if not fresh and _joined_length(current) + sentence_size > self.max_size:
                    current = []
                size = _joined_length(current)

            current.append(sentence)
            fresh += 1
            size += sentence_size

            if size >= self.target_size and self._emit(segments, current):
                current, fresh = self._carry_over(current), 0
                size = _joined_length(current)

        if fresh:
            tail = _join(current)
            if len(tail) >= self.min_size or not segments:
                self._emit(segments, current, force=True)
            else:
                self._merge_into_previous(segments, current[-fresh:], force=True)
        return segments

    def _emit(self, segments: list[TextSegment], sentences: list[Sentence], force: bool = False) -> bool:
        content = _join(sentences)
        if not force and len(content) < self.min_size:
            return False
        segments.append(
            TextSegment(
                index=len(segments),
                content=content,
                start_char=sentences[0].start,
                end_char=sentences[-1].end,
            )
        )
        return True

    def _merge_into_previous(
        self, segments: list[TextSegment], added: list[Sentence], force: bool = False
    ) -> bool:
        """Append *added* to the last emitted chunk if it stays within ``max_size``."""
        if not segments:
            return False
        previous = segments[-1]
        content = f"{previous.content} {_join(added)}"
        if not force and len(content) > self.max_size:
            return False
        segments[-1] = TextSegment(
            index=previous.index,
            content=content,
            start_char=previous.start_char,
            end_char=added[-1].end,
        )
        return True

    def _carry_over(self, sentences: list[Sentence]) -> list[Sentence]:
        if self.overlap_sentences <= 0:
            return []
        return sentences[-self.overlap_sentences :]


def segment(text: str) -> list[str]:
    """Segment *text* with the default sizes."""
    return Segmenter().segment(text)
