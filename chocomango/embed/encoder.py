"""
Hangul feature-hashing encoder — deterministic text embeddings, no model.

Text is rewritten as a string of synthetic Hangul syllables (letters read as
initial/vowel/final jamo, numbers spoken as Sino-Korean numerals), each
syllable becomes its offset in the Hangul Syllables block, and offset
frequencies are hashed into a fixed-size vector:

    embedding[v % dim]                  += freq
    embedding[(v + dim//3) % dim]       += freq * 1/2
    embedding[(v + 2*dim//3) % dim]     += freq * 1/4
    # dim >= 512 only
    embedding[(v + dim//4) % dim]       += freq * 1/8
    embedding[(v + 3*dim//4) % dim]     += freq * 1/16

then L2-normalized. Same text, same dimension → bit-identical vector.

Dimension guide:
    64    minimum viable; basic jamo structure only
    128   compact
    256   good separation of similar phonetics
    512   default; extended jamo tables and five-position spread
    1024  diminishing returns

Usage:
    from chocomango.embed.encoder import HangulEncoder

    encoder = HangulEncoder()
    vec = encoder.create_embedding("hello world")       # (512,) float32
    mat = encoder.encode(["doc one", "doc two"])        # (2, 512) float32
"""

import re
import unicodedata
from typing import List, Union

import numpy as np

from chocomango import config
from chocomango.embed import jamo

HANGUL_BASE = 0xAC00
HANGUL_LAST = 0xD7A3
HANGUL_BLOCK_END = 0xD7AF

TOKEN_RE = re.compile(r'([0-9]*\.[0-9]+|[0-9]+|\S+)')
NUMBER_RE = re.compile(r'[0-9]*\.[0-9]+|[0-9]+')
PLAIN_CHAR_RE = re.compile(r'[a-zA-Z0-9\s]')

# (numerator, denominator, weight) for the secondary positions
_SPREAD = ((1, 3, 0.5), (2, 3, 0.25))
_EXTENDED_SPREAD = _SPREAD + ((1, 4, 0.125), (3, 4, 0.0625))


def is_hangul(char: str) -> bool:
    return HANGUL_BASE <= ord(char) <= HANGUL_BLOCK_END


class HangulEncoder:
    """Deterministic phonetic encoder with an embedder-style encode() API."""

    def __init__(self, dimension: int = None):
        if dimension is None:
            dimension = config.EMBED_DIM
        if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
            raise ValueError(f"Embedding dimension must be a positive integer, got {dimension!r}")
        self.dimension = dimension
        self.extended = dimension >= config.EXTENDED_DIM
        self.tables = jamo.tables_for(self.extended)
        self._spread = _EXTENDED_SPREAD if self.extended else _SPREAD

    def __repr__(self):
        return f"HangulEncoder(dimension={self.dimension})"

    # -- text → Hangul -------------------------------------------------------

    def replace_special(self, text: str) -> str:
        """Spell out symbols; keep Hangul, ASCII letters, digits and whitespace."""
        out = []
        for char in text:
            word = jamo.PHONETIC.get(char)
            if word is not None:
                out.append(word)
            elif is_hangul(char) or PLAIN_CHAR_RE.fullmatch(char):
                out.append(char)
            else:
                name = unicodedata.name(char, '')
                out.append(name.lower() if name else char)
        return ''.join(out)

    def to_sino_korean(self, num: int) -> str:
        """Non-negative integer → Sino-Korean numeral (e.g. 25 → 이십오)."""
        if isinstance(num, bool) or not isinstance(num, int) or num < 0:
            raise ValueError("Sino-Korean numbers only work for non-negative integers")
        if num == 0:
            return jamo.DIGITS[0]
        digits = str(num)
        out = []
        for i, ch in enumerate(digits):
            digit = int(ch)
            if digit:
                out.append(jamo.DIGITS[digit])
                out.append(jamo.PLACES.get(len(digits) - i, ''))
        return ''.join(out)

    def number_to_hangul(self, token: str) -> str:
        whole, _, fraction = token.partition('.')
        text = self.to_sino_korean(int(whole) if whole else 0)
        if fraction:
            text += jamo.DECIMAL_POINT + ''.join(jamo.DIGITS[int(d)] for d in fraction)
        return text

    def _longest(self, token: str, i: int, table: dict, max_len: int):
        for length in range(max_len, 0, -1):
            piece = token[i:i + length]
            if len(piece) == length and piece in table:
                return table[piece], length
        return None, 0

    def combine(self, initial: str, vowel: str, final: str = None) -> str:
        offset = (
            (ord(initial) - 0x1100) * 588
            + (ord(vowel) - 0x1161) * 28
            + (ord(final) - 0x11A7 if final else 0)
        )
        return chr(HANGUL_BASE + offset)

    def syllables(self, token: str) -> str:
        """Greedy initial/vowel/final extraction over a lowercase token.

        A missing initial reads as the silent ㅇ. When no vowel follows, the
        symbol at the cursor is skipped.
        """
        t = self.tables
        out = []
        i = 0
        while i < len(token):
            initial, step = self._longest(token, i, t.initials, t.max_initial)
            if initial is None:
                initial = jamo.SILENT_INITIAL
            i += step

            vowel, step = self._longest(token, i, t.vowels, t.max_vowel)
            if vowel is None:
                i += 1
                continue
            i += step

            final, step = self._longest(token, i, t.finals, t.max_final)
            i += step

            out.append(self.combine(initial, vowel, final))
        return ''.join(out)

    def text_to_hangul(self, text: str) -> str:
        parts = []
        for token in TOKEN_RE.findall(text):
            if all(is_hangul(ch) for ch in token):
                parts.append(token)
            elif NUMBER_RE.fullmatch(token):
                parts.append(self.number_to_hangul(token))
            else:
                parts.append(self.syllables(self.replace_special(token).lower()))
        return ' '.join(parts).strip()

    # -- Hangul → vector -----------------------------------------------------

    def hangul_to_numeric(self, text: str) -> List[int]:
        """Offset of each code point in the syllable block; 0 outside it."""
        return [
            ord(ch) - HANGUL_BASE if HANGUL_BASE <= ord(ch) <= HANGUL_LAST else 0
            for ch in text
        ]

    def generate_embedding(self, values: List[int]) -> np.ndarray:
        dim = self.dimension
        embedding = np.zeros(dim, dtype=np.float32)
        if values:
            keys, counts = np.unique(np.asarray(values, dtype=np.int64), return_counts=True)
            primary = keys % dim
            freqs = counts.astype(np.float32)
            np.add.at(embedding, primary, freqs)
            for num, den, weight in self._spread:
                np.add.at(embedding, (primary + dim * num // den) % dim, freqs * np.float32(weight))

        norm = np.linalg.norm(embedding)
        if norm > 0:
            embedding /= norm
        return embedding

    def create_embedding(self, text: str) -> np.ndarray:
        return self.generate_embedding(self.hangul_to_numeric(self.text_to_hangul(text)))

    def encode(self, texts: Union[str, List[str]]) -> np.ndarray:
        """Encode texts to an (n, dimension) float32 matrix of unit rows."""
        if isinstance(texts, str):
            texts = [texts]
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)
        return np.vstack([self.create_embedding(t) for t in texts])

    def effective_length(self, text: str) -> int:
        """Length used for the similarity penalty; numbers count their digits."""
        total = 0
        for token in TOKEN_RE.findall(text):
            if NUMBER_RE.fullmatch(token):
                total += len(token.replace('.', ''))
            else:
                total += len(token)
        return total


# Per-dimension singletons
_encoders: dict = {}


def get_encoder(dimension: int = None) -> HangulEncoder:
    if dimension is None:
        dimension = config.EMBED_DIM
    encoder = _encoders.get(dimension)
    if encoder is None:
        encoder = _encoders[dimension] = HangulEncoder(dimension)
    return encoder


def create_embedding(text: str, dimension: int = None) -> np.ndarray:
    """Embed text with the shared encoder for dimension (default CHOCOMANGO_EMBED_DIM)."""
    return get_encoder(dimension).create_embedding(text)
