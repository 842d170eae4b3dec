"""BPE token counting for chunk budgets."""

import structlog
import tiktoken

log = structlog.get_logger()

DEFAULT_ENCODING = "cl100k_base"


class TokenCounter:
    """Counts tokens with a fixed tiktoken encoding.

    Construct one explicitly and pass it where budgets are computed. Swapping
    the encoding changes every split decision, so it is configuration, not a
    runtime toggle. Implements TokenizerProtocol.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding = tiktoken.get_encoding(encoding_name)
        log.debug("token_counter_initialized", encoding=encoding_name)

    def count(self, text: str) -> int:
        """Count tokens in text. Special-token markers are counted as plain text."""
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))
