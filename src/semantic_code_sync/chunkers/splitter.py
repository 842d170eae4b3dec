"""Token-budget splitting of oversized semantic units.

Greedy bin-packing with a graduated fallback: lines first, then sentences
within an oversized line, then whitespace-delimited words within an
oversized sentence. A single word longer than the budget is emitted as-is.

Every fragment is a contiguous substring of the input. Consecutive fragments
share up to ``overlap_tokens`` worth of whole units (never more), taken from
the end of the fragment just closed. The overlap is always carried, including
into the first piece of a unit that had to be split one level down, and counts
against the next fragment's budget without adjustment. A fragment that opens
with carried overlap can therefore exceed ``max_tokens`` by up to
``overlap_tokens``.
"""

import re
from collections.abc import Callable

import structlog

from semantic_code_sync.protocols import TokenizerProtocol

log = structlog.get_logger()

# Each unit keeps its trailing/leading whitespace so "".join() restores the input.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+\s*|[^.!?]+\Z")
_WORD_RE = re.compile(r"\s*\S+|\s+\Z")

Fallback = Callable[[str, int, int], list[str]]


class TokenBudgetSplitter:
    """Splits text into overlapping fragments bounded by a token budget."""

    def __init__(self, tokenizer: TokenizerProtocol) -> None:
        self.tokenizer = tokenizer

    def split(self, text: str, max_tokens: int, overlap_tokens: int = 0) -> list[str]:
        """Split text so each fragment fits max_tokens where the units allow it.

        Args:
            text: Text of one semantic unit.
            max_tokens: Token budget per fragment.
            overlap_tokens: Target tokens shared by consecutive fragments.

        Returns:
            [text] when it already fits, else fragments in document order.
        """
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if overlap_tokens < 0:
            raise ValueError("overlap_tokens must be >= 0")

        if self.tokenizer.count(text) <= max_tokens:
            return [text]

        fragments = self._pack(text.split("\n"), "\n", max_tokens, overlap_tokens, self._split_line)
        log.debug(
            "split_unit",
            fragments=len(fragments),
            max_tokens=max_tokens,
            overlap_tokens=overlap_tokens,
        )
        return fragments

    def _split_line(self, line: str, max_tokens: int, overlap_tokens: int) -> list[str]:
        sentences = _SENTENCE_RE.findall(line) or [line]
        return self._pack(sentences, "", max_tokens, overlap_tokens, self._split_sentence)

    def _split_sentence(self, sentence: str, max_tokens: int, overlap_tokens: int) -> list[str]:
        words = _WORD_RE.findall(sentence) or [sentence]
        return self._pack(words, "", max_tokens, overlap_tokens, None)

    def _pack(
        self,
        units: list[str],
        joiner: str,
        max_tokens: int,
        overlap_tokens: int,
        fallback: Fallback | None,
    ) -> list[str]:
        fragments: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for unit in units:
            unit_tokens = self._count_unit(unit, joiner)

            if unit_tokens > max_tokens:
                # Close what we have, then split the unit one level down.
                seed: list[str] = []
                if current:
                    fragments.append(joiner.join(current))
                    seed = self._overlap(current, joiner, overlap_tokens)

                pieces = fallback(unit, max_tokens, overlap_tokens) if fallback else [unit]
                if seed:
                    pieces[0] = joiner.join(seed) + joiner + pieces[0]

                fragments.extend(pieces[:-1])
                current = [pieces[-1]]
                current_tokens = self.tokenizer.count(pieces[-1])
                continue

            if current and current_tokens + unit_tokens > max_tokens:
                fragments.append(joiner.join(current))
                current = self._overlap(current, joiner, overlap_tokens)
                current_tokens = sum(self._count_unit(u, joiner) for u in current)

            current.append(unit)
            current_tokens += unit_tokens

        if current:
            fragments.append(joiner.join(current))
        return fragments

    def _overlap(self, units: list[str], joiner: str, overlap_tokens: int) -> list[str]:
        """Whole units from the end of a closed fragment, at most overlap_tokens in total."""
        if overlap_tokens <= 0:
            return []

        taken: list[str] = []
        total = 0
        for unit in reversed(units):
            unit_tokens = self._count_unit(unit, joiner)
            if total + unit_tokens > overlap_tokens:
                break
            taken.append(unit)
            total += unit_tokens
        taken.reverse()
        return taken

    def _count_unit(self, unit: str, joiner: str) -> int:
        return self.tokenizer.count(unit + joiner)


def locate_fragments(text: str, fragments: list[str]) -> list[tuple[int, int]]:
    """Find the (first, last) line offset of each fragment within text.

    Fragments must be contiguous substrings of text in document order, each
    one ending past the end of the one before it, which is what
    TokenBudgetSplitter.split() produces. A fragment whose text also occurs
    earlier in the unit is matched at the first position that extends past the
    previous fragment, not at the earlier duplicate.
    """
    spans: list[tuple[int, int]] = []
    search_from = 0
    prev_end = 0
    for fragment in fragments:
        pos = text.find(fragment, search_from)
        while 0 <= pos and pos + len(fragment) <= prev_end:
            pos = text.find(fragment, pos + 1)
        if pos < 0:
            pos = text.find(fragment, search_from)
        if pos < 0:
            pos = search_from
        first = text.count("\n", 0, pos)
        spans.append((first, first + fragment.count("\n")))
        search_from = pos
        prev_end = max(prev_end, pos + len(fragment))
    return spans
