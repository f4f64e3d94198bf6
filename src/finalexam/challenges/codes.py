"""Challenge code and question seed generation.

Codes are 6 characters from an alphabet without the easily confused I, L, O, 0 and 1,
generated server-side with a cryptographic random source. Uniqueness is enforced by
the database; the service retries on collision.
"""

from __future__ import annotations

import secrets

from finalexam.validation import CHALLENGE_CODE_ALPHABET, CHALLENGE_CODE_LENGTH

QUESTION_SEED_BOUND = 2**31 - 1


def generate_challenge_code() -> str:
    """Generate a cryptographically random 6-character challenge code."""
    return "".join(secrets.choice(CHALLENGE_CODE_ALPHABET) for _ in range(CHALLENGE_CODE_LENGTH))


def generate_question_seed() -> int:
    """Seed shared by both players so they get the same questions, in ``[0, 2**31 - 1)``."""
    return secrets.randbelow(QUESTION_SEED_BOUND)
