# backend/codes.py
"""Item and transaction code generation.

Item codes look like ``aging-k3x9q0m2ab``: a short mnemonic derived from the
category name, a dash, and a random lowercase suffix. Uniqueness is checked
against storage and the code is regenerated a bounded number of times.
"""
from werkzeug.security import gen_salt

from errors import CodeCollisionError

VOWELS = 'aeiou'
PREFIX_LENGTH = 5
SUFFIX_LENGTH = 10


def generate_prefix(category_name):
    """Build an alternating vowel/consonant prefix from a category name.

    Scanning starts by looking for a vowel. An ``n`` directly followed by
    ``g`` counts as one consonant and is kept as ``ng``.
    """
    name = (category_name or '').lower()
    prefix = ''
    want_vowel = True
    i = 0
    while i < len(name) and len(prefix) < PREFIX_LENGTH:
        char = name[i]
        is_vowel = char in VOWELS
        is_consonant = not is_vowel and char.isascii() and char.isalpha()

        if want_vowel and is_vowel:
            prefix += char
            want_vowel = False
        elif not want_vowel and is_consonant:
            if char == 'n' and name[i + 1:i + 2] == 'g':
                prefix += 'ng'
                i += 1
            else:
                prefix += char
            want_vowel = True
        i += 1
    return prefix


def random_suffix(length=SUFFIX_LENGTH):
    return gen_salt(length).lower()


def generate_item_code(category_name):
    return f'{generate_prefix(category_name)}-{random_suffix()}'


def generate_transaction_code(now):
    # seconds alone collide when two transactions land in the same second
    return f'trx-{int(now.timestamp())}-{random_suffix(4)}'


def unique_code(generate, exists, attempts, kind='code'):
    """Call ``generate`` until ``exists`` rejects nothing, at most ``attempts`` times."""
    for _ in range(attempts):
        code = generate()
        if not exists(code):
            return code
    raise CodeCollisionError(kind, attempts)
