"""
Join phrase codec.

A party is addressed by a random 32-bit seed. The seed is shown to the
admin as a short word phrase and, independently, expanded into the party's
UUID. Only the UUID is stored, so the phrase works as a capability: whoever
can say it can find the party, and the table of parties does not reveal it.
"""
import re
import secrets
import struct
import uuid
from functools import lru_cache
from typing import Dict, List

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from mnemonic import Mnemonic

from giftparty.config.constants import (
    SEED_BITS,
    PHRASE_WORD_BITS,
    PHRASE_WORD_COUNT,
    PHRASE_SEPARATOR,
    PHRASE_WORDLIST_LANGUAGE,
)
from giftparty.core.exceptions import DecodeError

_WORD_MASK = (1 << PHRASE_WORD_BITS) - 1
_SEED_LIMIT = 1 << SEED_BITS
_SPLIT_RE = re.compile(r"[\s\-_,]+")

# PCG32 constants used to stretch a u64 into a 256-bit ChaCha key
_PCG_MUL = 6364136223846793005
_PCG_INC = 11634580027462260723
_U64 = (1 << 64) - 1
_U32 = (1 << 32) - 1


@lru_cache(maxsize=1)
def _wordlist() -> List[str]:
    words = Mnemonic(PHRASE_WORDLIST_LANGUAGE).wordlist
    if len(words) != 1 << PHRASE_WORD_BITS:
        raise RuntimeError(f"Expected {1 << PHRASE_WORD_BITS} words, got {len(words)}")
    return list(words)


@lru_cache(maxsize=1)
def _word_index() -> Dict[str, int]:
    return {word: i for i, word in enumerate(_wordlist())}


def new_seed() -> int:
    """Draw a fresh seed for a new party."""
    return secrets.randbits(SEED_BITS)


def encode_phrase(seed: int) -> str:
    """Encode a 32-bit seed as a hyphenated word phrase."""
    if not 0 <= seed < _SEED_LIMIT:
        raise ValueError(f"Seed must fit in {SEED_BITS} bits, got {seed}")

    words = _wordlist()
    digits = [
        (seed >> (PHRASE_WORD_BITS * position)) & _WORD_MASK
        for position in reversed(range(PHRASE_WORD_COUNT))
    ]
    return PHRASE_SEPARATOR.join(words[d] for d in digits)


def decode_phrase(phrase: str) -> int:
    """
    Decode a join phrase back into its seed.

    Case and separators are forgiving (hyphens, spaces, underscores, commas),
    anything else raises DecodeError.
    """
    if not isinstance(phrase, str):
        raise DecodeError("Join phrase must be text")

    tokens = [t for t in _SPLIT_RE.split(phrase.strip().lower()) if t]
    if len(tokens) != PHRASE_WORD_COUNT:
        raise DecodeError(f"Join phrase must have {PHRASE_WORD_COUNT} words, got {len(tokens)}")

    index = _word_index()
    value = 0
    for token in tokens:
        digit = index.get(token)
        if digit is None:
            raise DecodeError(f"Unknown word in join phrase: {token!r}")
        value = (value << PHRASE_WORD_BITS) | digit

    if value >= _SEED_LIMIT:
        raise DecodeError("Join phrase does not decode to a 4-byte seed")
    return value


def _expand_seed(seed: int) -> bytes:
    """Stretch a u64 into 32 key bytes with the PCG32 output function."""
    state = seed & _U64
    out = bytearray()
    for _ in range(8):
        state = (state * _PCG_MUL + _PCG_INC) & _U64
        xorshifted = (((state >> 18) ^ state) >> 27) & _U32
        rot = state >> 59
        word = ((xorshifted >> rot) | (xorshifted << ((-rot) & 31))) & _U32
        out += struct.pack("<I", word)
    return bytes(out)


def seeded_bytes(seed: int, length: int) -> bytes:
    """First `length` bytes of the ChaCha20 stream keyed from `seed`."""
    key = _expand_seed(seed)
    # Zero block counter and stream id
    cipher = Cipher(algorithms.ChaCha20(key, b"\x00" * 16), mode=None)
    return cipher.encryptor().update(b"\x00" * length)


def derive_identifier(seed: int) -> uuid.UUID:
    """Derive the party UUID for a seed. Same seed, same UUID, every process."""
    if not 0 <= seed < _SEED_LIMIT:
        raise ValueError(f"Seed must fit in {SEED_BITS} bits, got {seed}")
    return uuid.UUID(bytes=seeded_bytes(seed, 16), version=4)


def identifier_for_phrase(phrase: str) -> uuid.UUID:
    """Resolve a join phrase straight to its party id."""
    return derive_identifier(decode_phrase(phrase))
