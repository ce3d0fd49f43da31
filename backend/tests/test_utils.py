"""
Unit tests for utility functions.
"""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linkfolio.utils import (
    SHORT_ID_ALPHABET,
    apportion_percentages,
    clamp_pagination,
    day_range,
    detect_device_type,
    format_short_url,
    generate_short_id,
    is_http_url,
    normalize_destination,
    normalize_utc,
    pagination_meta,
    referrer_origin,
)

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
ANDROID_TABLET_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
ROKU_UA = "Roku4640X/DVP-7.70 (297.70E04154A)"


class TestGenerateShortId:
    """Tests for generate_short_id function."""

    def test_generates_requested_length(self):
        assert len(generate_short_id(8)) == 8
        assert len(generate_short_id(12)) == 12

    def test_uses_url_safe_alphabet(self):
        for _ in range(20):
            assert set(generate_short_id(16)) <= set(SHORT_ID_ALPHABET)

    def test_generates_unique_ids(self):
        ids = [generate_short_id(8) for _ in range(100)]
        assert len(set(ids)) == 100


class TestNormalizeDestination:
    """Tests for normalize_destination function."""

    def test_prepends_https_without_scheme(self):
        assert normalize_destination("example.com") == "https://example.com"

    def test_trims_whitespace(self):
        assert normalize_destination("  http://example.com/a  ") == "http://example.com/a"

    def test_keeps_existing_scheme(self):
        assert normalize_destination("ftp://example.com") == "ftp://example.com"


class TestIsHttpUrl:
    """Tests for is_http_url function."""

    def test_http_and_https(self):
        assert is_http_url("http://example.com") is True
        assert is_http_url("https://example.com/path") is True

    def test_other_schemes(self):
        assert is_http_url("ftp://example.com") is False
        assert is_http_url("javascript:alert(1)") is False

    def test_empty(self):
        assert is_http_url("") is False
        assert is_http_url(None) is False


class TestDetectDeviceType:
    """Tests for detect_device_type function."""

    def test_missing_user_agent(self):
        assert detect_device_type(None) == "unknown"
        assert detect_device_type("") == "unknown"

    def test_bot(self):
        assert detect_device_type(GOOGLEBOT_UA) == "bot"

    def test_mobile(self):
        assert detect_device_type(IPHONE_UA) == "mobile"

    def test_tablet(self):
        assert detect_device_type(ANDROID_TABLET_UA) == "tablet"

    def test_tv(self):
        assert detect_device_type(ROKU_UA) == "tv"

    def test_desktop(self):
        assert detect_device_type(DESKTOP_UA) == "desktop"


class TestReferrerOrigin:
    """Tests for referrer_origin function."""

    def test_reduces_to_origin(self):
        assert referrer_origin("https://News.Example.com/item?id=1") == "https://news.example.com"

    def test_keeps_port(self):
        assert referrer_origin("http://example.com:8080/page") == "http://example.com:8080"

    def test_missing_or_relative(self):
        assert referrer_origin(None) is None
        assert referrer_origin("/relative/path") is None


class TestFormatShortUrl:
    """Tests for format_short_url function."""

    def test_format(self):
        assert format_short_url("abc123") == "http://testserver/r/abc123"


class TestDates:
    """Tests for date helpers."""

    def test_normalize_naive_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert normalize_utc(naive).tzinfo == timezone.utc

    def test_day_range_is_inclusive(self):
        start, end = day_range(date(2024, 1, 1), date(2024, 1, 31))
        assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert end.date() == date(2024, 1, 31)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_day_range_open_ends(self):
        assert day_range(None, None) == (None, None)


class TestPagination:
    """Tests for pagination helpers."""

    def test_defaults(self):
        assert clamp_pagination(3, None) == (3, 10, 20)

    def test_limit_is_capped(self):
        assert clamp_pagination(1, 500) == (1, 100, 0)

    def test_page_floor(self):
        assert clamp_pagination(0, 10) == (1, 10, 0)

    def test_meta(self):
        meta = pagination_meta(2, 10, 25)
        assert meta["total_pages"] == 3
        assert meta["total_count"] == 25
        assert meta["has_next_page"] is True
        assert meta["has_prev_page"] is True

    def test_meta_empty(self):
        meta = pagination_meta(1, 10, 0)
        assert meta["total_pages"] == 0
        assert meta["has_next_page"] is False


class TestApportionPercentages:
    """Tests for apportion_percentages function."""

    def test_zero_total(self):
        assert apportion_percentages([0, 0, 0], 0) == [0, 0, 0]

    def test_exact_split(self):
        assert apportion_percentages([5, 3], 10) == [50, 30]

    def test_thirds_round_down(self):
        assert apportion_percentages([1, 1, 1], 3) == [33, 33, 33]

    def test_many_small_buckets(self):
        assert apportion_percentages([1] * 7, 7) == [14] * 7

    def test_halves_trimmed_when_over_100(self):
        assert apportion_percentages([101, 99], 200) == [51, 49]

    def test_eighths_trimmed_to_100(self):
        result = apportion_percentages([1] * 8, 8)
        assert result == [13, 13, 13, 13, 12, 12, 12, 12]

    def test_smallest_remainder_trimmed_first(self):
        # 25.5 + 24.6 + 24.6 + 25.3 rounds to 26 + 25 + 25 + 25
        assert apportion_percentages([255, 246, 246, 253], 1000) == [25, 25, 25, 25]

    def test_each_value_close_to_rounded(self):
        counts = [7, 5, 3, 2, 1]
        total = sum(counts)
        for count, pct in zip(counts, apportion_percentages(counts, total)):
            assert abs(pct - count * 100 / total) < 1
