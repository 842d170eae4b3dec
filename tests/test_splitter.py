"""Tests for token-budget splitting."""

import pytest

from semantic_code_sync.chunkers.splitter import TokenBudgetSplitter, locate_fragments
from semantic_code_sync.protocols import TokenizerProtocol


def numbered_lines(count: int, words_per_line: int = 10) -> str:
    """Lines of exactly words_per_line unique words each."""
    return "\n".join(
        " ".join(f"l{i}w{j}" for j in range(words_per_line)) for i in range(count)
    )


class TestSplit:
    """Tests for TokenBudgetSplitter.split()."""

    def test_text_within_budget_is_returned_whole(self, splitter: TokenBudgetSplitter):
        """A unit that fits is not split."""
        text = numbered_lines(3)
        assert splitter.split(text, max_tokens=500, overlap_tokens=50) == [text]

    def test_large_unit_splits_into_three_overlapping_parts(
        self, splitter: TokenBudgetSplitter, tokenizer: TokenizerProtocol
    ):
        """1400 tokens is the most a 500 budget with 50 overlap fits in three parts."""
        text = numbered_lines(140)

        parts = splitter.split(text, max_tokens=500, overlap_tokens=50)

        assert len(parts) == 3
        assert all(tokenizer.count(p) <= 500 for p in parts)
        # Consecutive parts share the five lines at the boundary.
        assert parts[0].split("\n")[-5:] == parts[1].split("\n")[:5]
        assert parts[1].split("\n")[-5:] == parts[2].split("\n")[:5]

    def test_parts_cover_the_whole_unit(self, splitter: TokenBudgetSplitter):
        """First part starts the unit, last part ends it, nothing is invented."""
        text = numbered_lines(140)

        parts = splitter.split(text, max_tokens=500, overlap_tokens=50)

        assert text.startswith(parts[0])
        assert text.endswith(parts[-1])
        assert all(p in text for p in parts)

    def test_no_overlap(self, splitter: TokenBudgetSplitter):
        """With zero overlap the parts partition the lines."""
        text = numbered_lines(100)

        parts = splitter.split(text, max_tokens=500, overlap_tokens=0)

        assert len(parts) == 2
        assert "\n".join(parts) == text

    def test_oversized_line_falls_back_to_sentences(
        self, splitter: TokenBudgetSplitter, tokenizer: TokenizerProtocol
    ):
        """A single line over budget is split at sentence boundaries."""
        sentence = " ".join(["word"] * 9) + "."
        line = " ".join([sentence] * 4)  # 36 words, four sentences

        parts = splitter.split(line, max_tokens=20, overlap_tokens=0)

        assert len(parts) == 2
        assert all(tokenizer.count(p) <= 20 for p in parts)
        assert "".join(parts) == line

    def test_oversized_sentence_falls_back_to_words(
        self, splitter: TokenBudgetSplitter, tokenizer: TokenizerProtocol
    ):
        """A sentence with no punctuation over budget is split between words."""
        text = " ".join(f"w{i}" for i in range(1200))

        parts = splitter.split(text, max_tokens=500, overlap_tokens=50)

        assert len(parts) == 3
        assert all(tokenizer.count(p) <= 500 for p in parts)
        assert parts[1].split()[:50] == parts[0].split()[-50:]
        assert all(p in text for p in parts)

    def test_single_word_over_budget_is_kept(self):
        """There is nothing below a word; an over-long word is emitted as-is."""

        class CharTokenizer:
            def count(self, text: str) -> int:
                return len(text.strip())

        splitter = TokenBudgetSplitter(CharTokenizer())
        word = "x" * 50

        assert splitter.split(word, max_tokens=10) == [word]

    def test_overlap_can_push_a_part_over_budget(self, splitter: TokenBudgetSplitter):
        """Overlap is added on top of the next unit, so a large overlap can exceed the budget."""
        text = numbered_lines(4, words_per_line=6)

        parts = splitter.split(text, max_tokens=10, overlap_tokens=6)

        assert len(parts) == 4
        assert len(parts[1].split()) == 12

    def test_1500_tokens_needs_four_parts(
        self, splitter: TokenBudgetSplitter, tokenizer: TokenizerProtocol
    ):
        """After the first part each one adds at most 450 new tokens, so 1500 needs four."""
        text = numbered_lines(150)
        assert tokenizer.count(text) == 1500

        parts = splitter.split(text, max_tokens=500, overlap_tokens=50)

        assert len(parts) == 4
        assert [len(p.split("\n")) for p in parts] == [50, 50, 50, 15]
        assert text.endswith(parts[-1])

    def test_overlap_carried_into_split_line(self, splitter: TokenBudgetSplitter):
        """The lines before an oversized line are carried into its first piece."""
        sentence = "aaa bbb ccc ddd eee fff ggg hhh iii. "
        text = "x1 x2 x3\ny1 y2 y3\n" + sentence * 4

        parts = splitter.split(text, max_tokens=20, overlap_tokens=5)

        assert parts[0] == "x1 x2 x3\ny1 y2 y3"
        assert parts[1].startswith("y1 y2 y3\naaa bbb")
        assert all(p in text for p in parts)
        assert text.endswith(parts[-1])

    def test_overlap_carried_into_split_sentence(
        self, splitter: TokenBudgetSplitter, tokenizer: TokenizerProtocol
    ):
        """A short sentence before an oversized one is carried into its first word run."""
        words = " ".join(f"w{i}" for i in range(30))
        text = "a b c. " + words

        parts = splitter.split(text, max_tokens=20, overlap_tokens=5)

        assert parts[0] == "a b c. "
        assert parts[1].startswith("a b c. w0 w1")
        assert tokenizer.count(parts[1]) <= 20 + 5
        assert parts[2].split()[:5] == parts[1].split()[-5:]
        assert text.endswith(parts[-1])

    def test_invalid_budgets_rejected(self, splitter: TokenBudgetSplitter):
        """The budget must be positive and the overlap non-negative."""
        with pytest.raises(ValueError):
            splitter.split("text", max_tokens=0)
        with pytest.raises(ValueError):
            splitter.split("text", max_tokens=10, overlap_tokens=-1)


class TestLocateFragments:
    """Tests for mapping fragments back to line offsets."""

    def test_offsets_for_overlapping_fragments(self):
        """Each fragment maps to its first and last line within the text."""
        text = "a\nb\nc\nd\ne"
        spans = locate_fragments(text, ["a\nb\nc", "c\nd\ne"])

        assert spans == [(0, 2), (2, 4)]

    def test_fragment_may_start_where_the_previous_one_did(self):
        """When the overlap swallows a whole fragment, both start on the same line."""
        spans = locate_fragments("a\nb", ["a", "a\nb"])

        assert spans == [(0, 0), (0, 1)]

    def test_repeated_content_maps_past_the_previous_fragment(self):
        """A fragment that also occurs earlier is placed after the fragment before it."""
        text = "p\nq\np\nq"

        spans = locate_fragments(text, ["p\nq\np", "p\nq"])

        assert spans == [(0, 2), (2, 3)]
