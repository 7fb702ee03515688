"""Tests for bootstrap password generation."""
import random
import string

from extp.passwords import ALL_CHARS, DIGITS, PASSWORD_LENGTH, SYMBOLS, generate_password

ALLOWED = set(string.ascii_letters + "23456789" + "-_+=")


class TestGeneratePassword:
    """Format guarantees of generated passwords."""

    def test_length_and_charset(self):
        """Every password is 8 characters from the allowed set."""
        for _ in range(500):
            password = generate_password()
            assert len(password) == PASSWORD_LENGTH == 8
            assert set(password) <= ALLOWED

    def test_contains_digit_and_symbol(self):
        """Shuffling never drops the seeded digit and symbol."""
        for _ in range(500):
            password = generate_password()
            assert any(c in DIGITS for c in password)
            assert any(c in SYMBOLS for c in password)

    def test_ambiguous_digits_excluded(self):
        assert "0" not in ALL_CHARS
        assert "1" not in ALL_CHARS

    def test_seeded_rng_is_reproducible(self):
        """A caller supplied random source gives repeatable output."""
        first = generate_password(random.Random(42))
        second = generate_password(random.Random(42))
        assert first == second

    def test_successive_calls_differ(self):
        """The shared random source is not reseeded between calls."""
        passwords = {generate_password() for _ in range(50)}
        assert len(passwords) > 1
