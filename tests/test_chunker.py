"""Tests for the sentence-aligned chunker."""

import random
import string

import pytest

from newsbot.src.core.chunker import MIN_CHUNK_CHARS, chunk_text


def _letters(n: int) -> str:
    """n characters of non-repeating-looking text with no sentence punctuation."""
    return "".join(string.ascii_lowercase[(i * 7) % 26] for i in range(n))


class TestShortText:
    """Texts that fit in a single window."""

    def test_unpunctuated_1200_chars_is_one_chunk(self):
        """A 1200-char text with no punctuation yields exactly the trimmed text."""
        text = "  " + _letters(1200) + "  "
        chunks = chunk_text(text)

        assert chunks == [text.strip()]

    def test_below_floor_yields_nothing(self):
        """Text shorter than the substantiveness floor is dropped."""
        assert chunk_text("Breaking: short blurb.") == []

    def test_exactly_floor_is_kept(self):
        text = "x" * MIN_CHUNK_CHARS
        assert chunk_text(text) == [text]

    def test_empty_text(self):
        assert chunk_text("") == []

    def test_rechunking_a_chunk_returns_it_unchanged(self, article_text):
        """A chunk shorter than max_chars re-chunks to itself."""
        first = chunk_text(article_text)[0]
        assert len(first) <= 1500
        assert chunk_text(first) == [first]


class TestLongText:
    """Texts that need several windows."""

    def test_cuts_after_sentence_end_in_last_30_percent(self):
        text = "x" * 1199 + "." + "y" * 1000
        chunks = chunk_text(text)

        assert len(chunks) == 2
        assert chunks[0] == text[:1200]
        assert chunks[0].endswith(".")
        assert chunks[1] == text[1050:]

    def test_ignores_sentence_end_too_early_in_window(self):
        """A period before the 70% mark does not pull the cut back."""
        text = "x" * 500 + "." + "y" * 2000
        chunks = chunk_text(text)

        assert len(chunks[0]) == 1500
        assert chunks[0] == text[:1500]

    def test_hard_cut_and_fixed_overlap(self):
        text = _letters(2850)
        chunks = chunk_text(text)

        assert chunks[0] == text[:1500]
        assert chunks[1] == text[1350:2850]
        assert chunks[0][-150:] == chunks[1][:150]

    def test_custom_window_and_overlap(self):
        text = _letters(1000)
        chunks = chunk_text(text, max_chars=400, overlap=50)

        assert chunks[0] == text[:400]
        assert chunks[1] == text[350:750]
        assert all(len(c) <= 400 for c in chunks)

    def test_max_chunks_truncates_long_documents(self):
        text = _letters(100_000)
        chunks = chunk_text(text)

        assert len(chunks) == 30
        assert chunks[-1] == text[29 * 1350 : 29 * 1350 + 1500]

    def test_every_chunk_within_bounds(self):
        """No chunk is below the floor or above max_chars, for mixed prose."""
        rng = random.Random(1234)
        words = ["markets", "rallied", "minister", "said", "on", "Tuesday", "while", "analysts", "warned", "of", "risks"]
        sentences = []
        for _ in range(400):
            body = " ".join(rng.choice(words) for _ in range(rng.randint(3, 40)))
            sentences.append(body.capitalize() + rng.choice([".", "!", "?", ",", ";"]))
        text = " ".join(sentences)

        chunks = chunk_text(text)

        assert chunks
        for chunk in chunks:
            assert MIN_CHUNK_CHARS <= len(chunk) <= 1500

    def test_sentence_aligned_chunks_end_on_terminator(self, article_text):
        chunks = chunk_text(article_text)

        assert len(chunks) > 1
        for chunk in chunks[:-1]:
            assert chunk[-1] in ".!?"


class TestArguments:
    @pytest.mark.parametrize("overlap", [1500, 2000, -1])
    def test_invalid_overlap_rejected(self, overlap):
        with pytest.raises(ValueError):
            chunk_text("x" * 200, max_chars=1500, overlap=overlap)
