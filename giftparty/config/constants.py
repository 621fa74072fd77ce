"""
Application Constants

Fixed values for the join-phrase codec, matching and signup windows.
Runtime-tunable values live in giftparty.core.config instead.
"""

# ============================================================================
# Join Phrase Constants
# ============================================================================

# Seeds are 32-bit; three 11-bit words cover them with one spare bit
SEED_BITS = 32
PHRASE_WORD_BITS = 11
PHRASE_WORD_COUNT = 3
PHRASE_SEPARATOR = "-"
PHRASE_WORDLIST_LANGUAGE = "english"

# Fresh seeds are redrawn if their derived id is already taken
MAX_PARTY_ID_ATTEMPTS = 8

# ============================================================================
# Matching Constants
# ============================================================================

# Expected attempts are ~e; this only stops pathological inputs
DERANGEMENT_MAX_ATTEMPTS = 10_000

# Redraws when signups change between loading and recording a draw
MAX_RESOLUTION_REDRAWS = 3

# ============================================================================
# Signup Window Constants
# ============================================================================

MAX_SIGNUP_WINDOW_DAYS = 366
MAX_PARTY_NAME_LENGTH = 255
