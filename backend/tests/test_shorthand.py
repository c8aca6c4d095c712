"""Tests for the dental shorthand extractors."""

from dental_coding.services.shorthand import (
    count_surfaces,
    extract_canal_count,
    extract_minutes,
    extract_surface_count,
    extract_surfaces,
    text_surface_count,
)


class TestCountSurfaces:
    """Distinct surface letter counting."""

    def test_counts_distinct_letters(self):
        """Repeated letters count once."""
        assert count_surfaces("MOM") == 2
        assert count_surfaces("MOD") == 3
        assert count_surfaces("O") == 1

    def test_order_does_not_matter(self):
        assert count_surfaces("DOM") == count_surfaces("MOD")

    def test_lowercase_and_noise(self):
        """Lowercase input and non-surface characters are tolerated."""
        assert count_surfaces("m-o-d") == 3
        assert count_surfaces("mxz") == 1

    def test_empty_is_zero(self):
        assert count_surfaces("") == 0
        assert count_surfaces(None) == 0

    def test_typo_repeat_undercounts(self):
        """A repeated letter is not treated as an extra surface."""
        assert count_surfaces("MOO") == 2


class TestExtractSurfaces:
    """Surface token detection in free text."""

    def test_finds_token(self):
        assert extract_surfaces("comp 36 MOD") == "MOD"

    def test_case_insensitive(self):
        assert extract_surfaces("comp 46 mo") == "MO"

    def test_single_letter_not_a_token(self):
        """A lone letter is too ambiguous to count as a surface token."""
        assert extract_surfaces("comp 46 O") is None

    def test_letter_outside_alphabet_rejects_token(self):
        assert extract_surfaces("comp 36 MODX") is None

    def test_longest_token_wins(self):
        """The word "op" spells O+P; the surface token is MOD."""
        assert extract_surfaces("comp op 36 MOD") == "MOD"
        assert text_surface_count("comp op 36 MOD") == 3

    def test_first_token_on_tie(self):
        assert extract_surfaces("comp 36 MO 46 DO") == "MO"

    def test_no_match(self):
        assert extract_surfaces("wkb 36") is None
        assert extract_surfaces("") is None


class TestExtractSurfaceCount:
    """Explicit surface count shorthand."""

    def test_short_form(self):
        assert extract_surface_count("comp 26 4v") == 4

    def test_word_form(self):
        assert extract_surface_count("vulling 36 3 vlakken") == 3
        assert extract_surface_count("vulling 36 1 vlak") == 1
        assert extract_surface_count("2vlakken") == 2

    def test_no_match(self):
        assert extract_surface_count("comp 36 MOD") is None


class TestTextSurfaceCount:
    """Letter token takes precedence over an explicit count."""

    def test_letter_token_wins(self):
        assert text_surface_count("comp 36 MO 3v") == 2

    def test_explicit_count_fallback(self):
        assert text_surface_count("comp 36 3v") == 3

    def test_none(self):
        assert text_surface_count("controle") is None


class TestExtractCanalCount:
    """Canal count shorthand."""

    def test_short_form(self):
        assert extract_canal_count("wkb 16 4k") == 4

    def test_word_forms(self):
        assert extract_canal_count("endo 14 2 kanalen") == 2
        assert extract_canal_count("endo 11 1 kanaal") == 1

    def test_no_match(self):
        assert extract_canal_count("wkb 36") is None


class TestExtractMinutes:
    """Treatment duration."""

    def test_minutes(self):
        assert extract_minutes("gebitsreiniging 20 min") == 20
        assert extract_minutes("tandsteen 15min") == 15
        assert extract_minutes("30 minuten reinigen") == 30

    def test_no_match(self):
        assert extract_minutes("gebitsreiniging") is None
