"""Unit tests for reqmanager.core.naming."""

from __future__ import annotations

import re

from reqmanager.core.naming import (
    MAX_BASE_NAME_LENGTH,
    dns_safe_shorten,
    random_suffix,
    request_name,
)


class TestRandomSuffix:
    def test_length(self):
        assert len(random_suffix(5)) == 5
        assert len(random_suffix(10)) == 10

    def test_dns_safe_alphabet(self):
        for _ in range(50):
            assert re.fullmatch(r"[a-z0-9]+", random_suffix(8))

    def test_no_vowels(self):
        assert not set("aeiou") & set(random_suffix(200))


class TestShorten:
    def test_short_name_untouched(self):
        assert dns_safe_shorten("test") == "test"

    def test_long_name_truncated(self):
        name = "a" * 80
        assert dns_safe_shorten(name) == "a" * MAX_BASE_NAME_LENGTH

    def test_trailing_separators_stripped(self):
        name = "a" * 50 + "--bbbb"
        assert dns_safe_shorten(name) == "a" * 50

    def test_trailing_dot_stripped(self):
        name = "a" * 51 + ".b"
        assert dns_safe_shorten(name) == "a" * 51


class TestRequestName:
    def test_uses_injected_generator(self):
        assert request_name("test", lambda n: "notrandom") == "test-notrandom"

    def test_passes_suffix_length(self):
        seen = []

        def gen(n):
            seen.append(n)
            return "x" * n

        assert request_name("cert", gen, 3) == "cert-xxx"
        assert seen == [3]

    def test_long_certificate_name(self):
        name = request_name("c" * 100, lambda n: "abcde")
        assert name == "c" * MAX_BASE_NAME_LENGTH + "-abcde"
        assert len(name) <= 63
