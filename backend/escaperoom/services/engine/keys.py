import random

# 32 glyphs, no 0/O/I/1
KEY_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
DEFAULT_FRAGMENT_LENGTH = 4


def generate_key_part(length=DEFAULT_FRAGMENT_LENGTH, rng=None):
    """Generate a short, human-typeable master-key fragment.

    Fragments are not unique by construction; the master-key check compares
    multisets, so two stations issuing the same fragment is harmless.
    """
    rng = rng or random
    return ''.join(rng.choices(KEY_ALPHABET, k=max(int(length), 1)))


def normalize_key_part(value):
    return str(value if value is not None else '').strip().upper()
