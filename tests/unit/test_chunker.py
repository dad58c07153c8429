"""Unit tests for the sentence-aware segmenter."""

from __future__ import annotations

import pytest

from librarian.ingestion.chunker import (
    CHUNK_MAX_SIZE,
    CHUNK_MIN_SIZE,
    Segmenter,
    segment,
    split_into_sentences,
)


def _numbered_sentence(i: int) -> str:
    """An 80-character sentence that ends a sentence cleanly."""
    return f"Entry {i:03d} describes " + "a" * 55 + f" {i:03d}."


def _numbered_text(n: int) -> str:
    return " ".join(_numbered_sentence(i) for i in range(n))


def _sized_sentence(n: int) -> str:
    """A sentence of exactly *n* characters."""
    return "S" + "x" * (n - 2) + "!"


_MIXED_LENGTHS = (600, 450, 80, 30, 1450, 300, 900)


# ── sentence splitting ────────────────────────────────────────────────


class TestSplitIntoSentences:
    def test_splits_on_terminal_punctuation(self) -> None:
        sentences = split_into_sentences("Is it ready? Yes! Ship it in Q4.")
        assert [s.text for s in sentences] == ["Is it ready?", "Yes!", "Ship it in Q4."]

    def test_lowercase_before_dot_is_not_a_break(self) -> None:
        sentences = split_into_sentences("See the appendix etc. Then continue reading.")
        assert len(sentences) == 1

    def test_decimal_numbers_do_not_split(self) -> None:
        sentences = split_into_sentences("The rate rose to 3.5 Percent in Q1. Growth slowed!")
        assert sentences[0].text == "The rate rose to 3.5 Percent in Q1."

    def test_initials_do_not_split(self) -> None:
        sentences = split_into_sentences("Report by J. K. Smith is due. Review it now!")
        assert sentences[0].text.startswith("Report by J. K. Smith")

    def test_paragraph_break_ends_sentence(self) -> None:
        sentences = split_into_sentences("First paragraph without a stop\n\nSecond paragraph")
        assert [s.text for s in sentences] == ["First paragraph without a stop", "Second paragraph"]

    def test_whitespace_is_normalized(self) -> None:
        sentences = split_into_sentences("Several   spaces\tand\ttabs here")
        assert sentences[0].text == "Several spaces and tabs here"

    def test_offsets_point_into_original_text(self) -> None:
        text = "Intro line ONE.  Second   line TWO!\n\n  Third part"
        for sentence in split_into_sentences(text):
            original = text[sentence.start : sentence.end]
            assert " ".join(original.split()) == sentence.text

    def test_empty_text(self) -> None:
        assert split_into_sentences("") == []
        assert split_into_sentences("  \n\n  ") == []


# ── segmentation ──────────────────────────────────────────────────────


class TestSegmenter:
    def test_short_text_is_a_single_chunk(self) -> None:
        assert segment("Just one short note.") == ["Just one short note."]

    def test_empty_text_yields_no_chunks(self) -> None:
        assert segment("") == []

    def test_numbered_sentences_are_80_chars(self) -> None:
        assert all(len(_numbered_sentence(i)) == 80 for i in range(40))

    def test_short_sentences_with_default_overlap(self) -> None:
        # 40 x 80-char sentences (3,239 chars).  Chunks close at 13
        # sentences and carry two sentences forward, so the tail forms a
        # fourth chunk large enough to stand on its own.
        chunks = Segmenter().segment(_numbered_text(40))
        assert len(chunks) == 4
        assert all(CHUNK_MIN_SIZE <= len(c) <= CHUNK_MAX_SIZE for c in chunks)

    def test_short_sentences_without_overlap(self) -> None:
        chunks = Segmenter(overlap=0).segment(_numbered_text(40))
        assert len(chunks) == 3
        assert all(CHUNK_MIN_SIZE <= len(c) <= CHUNK_MAX_SIZE for c in chunks)
        # The one leftover sentence is merged into the last chunk.
        assert chunks[-1].endswith(_numbered_sentence(39))

    def test_consecutive_chunks_share_overlap_sentences(self) -> None:
        chunks = Segmenter().segment(_numbered_text(40))
        first_tail = " ".join([_numbered_sentence(11), _numbered_sentence(12)])
        assert chunks[0].endswith(first_tail)
        assert chunks[1].startswith(first_tail)

    def test_every_sentence_is_covered_in_order(self) -> None:
        chunks = Segmenter().segment(_numbered_text(40))
        joined = " ".join(chunks)
        positions = [joined.find(_numbered_sentence(i)) for i in range(40)]
        assert all(p >= 0 for p in positions)
        assert positions == sorted(positions)

    def test_no_sentence_is_split(self) -> None:
        text = _numbered_text(40)
        sentences = {s.text for s in split_into_sentences(text)}
        for chunk in Segmenter().segment(text):
            for part in split_into_sentences(chunk):
                assert part.text in sentences

    def test_oversized_sentence_is_kept_whole(self) -> None:
        long_sentence = "Word " * 400 + "END."
        chunks = Segmenter().segment(long_sentence.strip())
        assert len(chunks) == 1
        assert len(chunks[0]) > CHUNK_MAX_SIZE

    def test_max_size_closes_chunk_before_overflow(self) -> None:
        # Two 701-char sentences fit; adding the third would exceed MAX.
        text = " ".join(f"Block {i} " + "b" * 690 + f" {i}." for i in range(3))
        segmenter = Segmenter(target_size=1450, overlap=0)
        chunks = segmenter.segment(text)
        assert all(len(c) <= CHUNK_MAX_SIZE for c in chunks)
        assert len(chunks) == 2

    def test_short_run_before_long_sentence_joins_previous_chunk(self) -> None:
        text = " ".join(_sized_sentence(n) for n in (1100, 100, 1400))
        chunks = Segmenter(overlap=0).segment(text)
        assert [len(c) for c in chunks] == [1201, 1400]

    def test_mixed_sentence_lengths_without_overlap(self) -> None:
        text = " ".join(_sized_sentence(n) for n in _MIXED_LENGTHS)
        chunks = Segmenter(overlap=0).segment(text)
        assert [len(c) for c in chunks] == [1163, 1450, 1201]

    @pytest.mark.parametrize("overlap", [0, 200])
    def test_mixed_sentence_lengths_stay_within_bounds(self, overlap: int) -> None:
        sentences = [_sized_sentence(n) for n in _MIXED_LENGTHS]
        text = " ".join(sentences)

        segments = Segmenter(overlap=overlap).segment_with_offsets(text)

        assert all(CHUNK_MIN_SIZE <= s.size <= CHUNK_MAX_SIZE for s in segments[:-1])
        for seg in segments:
            assert text[seg.start_char : seg.end_char] == seg.content
        joined = " ".join(s.content for s in segments)
        positions = [joined.find(sentence) for sentence in sentences]
        assert all(p >= 0 for p in positions)
        assert positions == sorted(positions)

    def test_leading_short_run_stays_with_long_sentence(self) -> None:
        # Nothing precedes the short run, so it cannot be merged backwards.
        text = " ".join(_sized_sentence(n) for n in (100, 1450, 1450))
        chunks = Segmenter(overlap=0).segment(text)
        assert [len(c) for c in chunks] == [1551, 1450]

    def test_indices_are_contiguous(self) -> None:
        segments = Segmenter().segment_with_offsets(_numbered_text(40))
        assert [s.index for s in segments] == list(range(len(segments)))

    def test_offsets_cover_chunk_text(self) -> None:
        text = _numbered_text(30)
        for seg in Segmenter().segment_with_offsets(text):
            assert text[seg.start_char : seg.end_char] == seg.content
            assert seg.size == len(seg.content)

    def test_offsets_with_irregular_whitespace(self) -> None:
        text = "  Alpha part ONE.   Beta part TWO.\n\nGamma part THREE.  "
        [seg] = Segmenter().segment_with_offsets(text)
        assert seg.start_char == 2
        assert text[seg.end_char - 1] == "."

    def test_overlap_sentence_count(self) -> None:
        assert Segmenter(overlap=200).overlap_sentences == 2
        assert Segmenter(overlap=99).overlap_sentences == 0
        assert Segmenter(overlap=350).overlap_sentences == 3

    def test_deterministic(self) -> None:
        text = _numbered_text(25)
        assert Segmenter().segment(text) == Segmenter().segment(text)

    @pytest.mark.parametrize(
        ("target", "minimum", "maximum"),
        [(1000, 0, 1500), (100, 200, 1500), (2000, 200, 1500)],
    )
    def test_invalid_sizes_rejected(self, target: int, minimum: int, maximum: int) -> None:
        with pytest.raises(ValueError, match="Chunk sizes"):
            Segmenter(target_size=target, min_size=minimum, max_size=maximum)

    def test_negative_overlap_rejected(self) -> None:
        with pytest.raises(ValueError, match="overlap"):
            Segmenter(overlap=-1)
