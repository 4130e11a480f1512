"""Tests for item and transaction code generation."""

import re
from datetime import datetime

import pytest

from codes import (
    generate_item_code,
    generate_prefix,
    generate_transaction_code,
    random_suffix,
    unique_code,
)
from errors import CodeCollisionError


class TestGeneratePrefix:
    def test_ng_is_taken_as_one_consonant(self):
        assert generate_prefix('Daging') == 'aging'

    def test_leading_vowel_is_captured_first(self):
        assert generate_prefix('Ayam') == 'ayam'

    def test_leading_consonants_are_skipped(self):
        assert generate_prefix('Bahan Pokok') == 'ahano'

    def test_stops_at_five_characters(self):
        assert generate_prefix('Elektronika') == 'eleko'
        assert generate_prefix('Alat Tulis Kantor') == 'alatu'

    def test_non_alphabetic_characters_are_skipped(self):
        assert generate_prefix('A-1 b') == 'ab'

    def test_no_vowels_gives_empty_prefix(self):
        assert generate_prefix('XYZ 123') == ''

    def test_empty_name(self):
        assert generate_prefix('') == ''
        assert generate_prefix(None) == ''


class TestItemCode:
    def test_item_code_is_prefix_dash_suffix(self):
        code = generate_item_code('Daging')
        assert re.fullmatch(r'aging-[a-z0-9]{10}', code)

    def test_suffix_is_lowercase_alphanumeric(self):
        assert re.fullmatch(r'[a-z0-9]{10}', random_suffix())
        assert len(random_suffix(4)) == 4


class TestTransactionCode:
    def test_code_is_derived_from_the_moment(self):
        now = datetime(2025, 5, 20, 14, 35, 10)
        code = generate_transaction_code(now)
        assert code.startswith(f'trx-{int(now.timestamp())}-')

    def test_codes_in_the_same_second_differ(self):
        now = datetime(2025, 5, 20, 14, 35, 10)
        codes = {generate_transaction_code(now) for _ in range(20)}
        assert len(codes) > 1


class TestUniqueCode:
    def test_returns_first_free_code(self):
        candidates = iter(['a', 'b', 'c'])
        taken = {'a', 'b'}
        assert unique_code(lambda: next(candidates), taken.__contains__, attempts=5) == 'c'

    def test_gives_up_after_bounded_attempts(self):
        calls = []

        def generate():
            calls.append(1)
            return 'same'

        with pytest.raises(CodeCollisionError) as exc_info:
            unique_code(generate, lambda code: True, attempts=3, kind='item code')
        assert len(calls) == 3
        assert exc_info.value.kind == 'item code'
        assert exc_info.value.attempts == 3
