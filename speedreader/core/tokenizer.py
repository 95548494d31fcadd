"""Word tokenization and RSVP pacing helpers."""

from __future__ import annotations

from dataclasses import dataclass

# Delay multipliers by final character
MAJOR_PAUSE_PUNCTUATION = ".!?"
MINOR_PAUSE_PUNCTUATION = ",:;"
MAJOR_PAUSE_MULTIPLIER = 1.5
MINOR_PAUSE_MULTIPLIER = 1.2


@dataclass(frozen=True)
class TokenizedText:
    """Words of a text with the paragraph each word came from."""

    words: list[str]
    paragraph_indices: list[int]
    paragraphs: list[str]

    def __len__(self) -> int:
        return len(self.words)

    def paragraph_for_word(self, word_index: int) -> tuple[int, str]:
        """Return (paragraph_index, paragraph) containing the given word."""
        paragraph_index = self.paragraph_indices[word_index]
        return paragraph_index, self.paragraphs[paragraph_index]


@dataclass(frozen=True)
class RSVPWord:
    """A word split around its focus letter."""

    left_part: str
    focus_letter: str
    right_part: str

    @property
    def word(self) -> str:
        return self.left_part + self.focus_letter + self.right_part


def count_words(text: str) -> int:
    """Number of whitespace-delimited tokens."""
    return len(text.split())


def tokenize(text: str) -> TokenizedText:
    """Split text into paragraphs (one per non-blank line) and words.

    Blank lines are dropped, so "a\\n\\nb" yields two paragraphs, not three.
    """
    paragraphs = [line.strip() for line in text.splitlines() if line.strip()]

    words: list[str] = []
    paragraph_indices: list[int] = []
    for paragraph_index, paragraph in enumerate(paragraphs):
        for word in paragraph.split():
            words.append(word)
            paragraph_indices.append(paragraph_index)

    return TokenizedText(
        words=words,
        paragraph_indices=paragraph_indices,
        paragraphs=paragraphs,
    )


def get_focus_index(word: str) -> int:
    return len(word) // 2


def split_word(word: str) -> RSVPWord:
    """Split a word into left part, focus letter and right part."""
    if not word:
        return RSVPWord(left_part="", focus_letter="", right_part="")

    focus_index = get_focus_index(word)
    return RSVPWord(
        left_part=word[:focus_index],
        focus_letter=word[focus_index],
        right_part=word[focus_index + 1 :],
    )


def get_delay_ms(wpm: int) -> float:
    """Base display time per word in milliseconds."""
    if wpm <= 0:
        raise ValueError(f"wpm must be positive, got {wpm}")
    return 60000 / wpm


def get_delay_multiplier(word: str) -> float:
    """Extra display time for words that end a clause or sentence."""
    if not word:
        return 1.0

    last_char = word[-1]
    if last_char in MAJOR_PAUSE_PUNCTUATION:
        return MAJOR_PAUSE_MULTIPLIER
    if last_char in MINOR_PAUSE_PUNCTUATION:
        return MINOR_PAUSE_MULTIPLIER
    return 1.0
