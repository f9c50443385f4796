"""Tests for size parsing and UK conversion."""

from app.features.sku.sizes import (
    ParsedSize,
    convert_to_uk,
    format_size_display,
    normalize_size_to_uk,
    parse_size,
)


class TestParseSize:
    """Tests for parse_size."""

    def test_prefixed_sizes(self):
        """Prefixes are recognised case-insensitively."""
        assert parse_size("UK9") == ParsedSize(system="UK", value="9")
        assert parse_size("US 10.5") == ParsedSize(system="US", value="10.5")
        assert parse_size("eu44") == ParsedSize(system="EU", value="44")
        assert parse_size("JP27") == ParsedSize(system="JP", value="27")

    def test_bare_and_missing(self):
        """Bare values have no system; None yields an empty parse."""
        assert parse_size("10.5") == ParsedSize(system=None, value="10.5")
        assert parse_size(None) == ParsedSize(system=None, value=None)

    def test_womens_marker(self):
        """A W before or after the number marks women's sizing."""
        assert parse_size("US W10") == ParsedSize(system="US", value="10", gender="W")
        assert parse_size("us10w") == ParsedSize(system="US", value="10", gender="W")
        assert parse_size("W 8.5") == ParsedSize(system=None, value="8.5", gender="W")
        assert parse_size("US10").gender is None
        assert parse_size("OW").value == "OW"


class TestConvertToUk:
    """Tests for convert_to_uk."""

    def test_uk_unchanged(self):
        """UK sizes pass through."""
        assert convert_to_uk("9.5", "UK") == "9.5"

    def test_us_mens_and_womens(self):
        """US men's is UK+1, women's is UK+2."""
        assert convert_to_uk("10", "US", "M") == "9"
        assert convert_to_uk("10", "US") == "9"
        assert convert_to_uk("10", "US", "W") == "8"

    def test_eu_and_jp(self):
        """EU and JP sizes convert to the nearest half size."""
        assert convert_to_uk("44", "EU") == "9"
        assert convert_to_uk("42", "EU") == "7.5"
        assert convert_to_uk("27", "JP") == "5"
        assert convert_to_uk("28", "JP") == "6"

    def test_half_sizes_round_up(self):
        """Exact half steps round up rather than to even."""
        assert convert_to_uk("39", "EU") == "5.5"
        assert convert_to_uk("43", "EU") == "8.5"
        assert convert_to_uk("41", "EU") == "7"
        assert convert_to_uk("27.25", "JP") == "5.5"

    def test_non_numeric(self):
        """Apparel sizes pass through untouched."""
        assert convert_to_uk("OS", "UK") == "OS"
        assert convert_to_uk("XL", "US") == "XL"

    def test_non_finite_values_pass_through(self):
        """nan and inf parse as floats but are not sizes."""
        assert convert_to_uk("nan", "US") == "nan"
        assert convert_to_uk("inf", "EU") == "inf"
        assert convert_to_uk("-inf", "JP") == "-inf"


class TestNormalizeSizeToUk:
    """Tests for normalize_size_to_uk field priority."""

    def test_uk_fields_win(self):
        """uk and size_uk take precedence."""
        assert normalize_size_to_uk({"uk": "9", "us": "10", "size": "8"}) == "9"
        assert normalize_size_to_uk({"size_uk": "9", "us": "10"}) == "9"

    def test_size_field_parsing(self):
        """The size field may be prefixed or bare UK."""
        assert normalize_size_to_uk({"size": "US10"}) == "9"
        assert normalize_size_to_uk({"size": "10.5"}) == "10.5"
        assert normalize_size_to_uk({"size": "US10", "us": "10", "eu": "44"}) == "9"

    def test_fallback_fields(self):
        """us, eu, jp and size_alt are tried in order."""
        assert normalize_size_to_uk({"us": "US10"}) == "9"
        assert normalize_size_to_uk({"eu": "44"}) == "9"
        assert normalize_size_to_uk({"jp": "27"}) == "5"
        assert normalize_size_to_uk({"size_alt": "UK9"}) == "9"
        assert normalize_size_to_uk({"us": "W10"}) == "8"
        assert normalize_size_to_uk({"size": "US 10W"}) == "8"
        assert normalize_size_to_uk({}) is None


def test_format_size_display():
    """Women's US sizes carry a W label; men's is implied."""
    assert format_size_display("9", "UK") == "UK 9"
    assert format_size_display("10", "US", "W") == "US W 10"
    assert format_size_display("10", "US", "M") == "US 10"
    assert format_size_display(None, "UK") is None
