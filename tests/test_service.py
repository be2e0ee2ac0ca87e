"""Tests for the URL service layer."""

import re
from datetime import timedelta

import pytest

from url_shortener import errors
from url_shortener.service import UrlService
from tests.conftest import START, read_log

LINK_RE = re.compile(r"^http://localhost:3000/([A-Za-z0-9]{6})$")


def shortcode_of(result) -> str:
    return result.shortLink.rsplit("/", 1)[1]


class TestCreateShortUrl:
    def test_generated_shortcode_round_trip(self, service):
        result = service.create_short_url("https://example.com", 30)
        match = LINK_RE.match(result.shortLink)
        assert match
        record = service.resolve_shortcode(match.group(1))
        assert record.original_url == "https://example.com"

    def test_expiry_is_validity_after_creation(self, service):
        result = service.create_short_url("https://example.com", 30)
        assert result.expiry == "2025-01-01T12:30:00.000Z"
        record = service.resolve_shortcode(shortcode_of(result))
        assert record.created_at == START
        assert record.expires_at - record.created_at == timedelta(minutes=30)
        assert record.validity_minutes == 30

    def test_default_validity(self, service):
        result = service.create_short_url("https://example.com")
        assert result.expiry == "2025-01-01T12:30:00.000Z"

    def test_fractional_validity(self, service):
        result = service.create_short_url("https://example.com", 0.5)
        assert result.expiry == "2025-01-01T12:00:30.000Z"

    def test_custom_shortcode(self, service):
        result = service.create_short_url("https://example.com", 30, "abc123")
        assert result.shortLink == "http://localhost:3000/abc123"

    def test_empty_custom_shortcode_means_generated(self, service):
        result = service.create_short_url("https://example.com", 30, "")
        assert LINK_RE.match(result.shortLink)

    def test_invalid_url(self, service, store):
        with pytest.raises(errors.InvalidUrl):
            service.create_short_url("not-a-url")
        assert len(store) == 0

    @pytest.mark.parametrize("code", ["ab-c", "ab c", "a" * 11])
    def test_invalid_custom_shortcode(self, service, store, code):
        with pytest.raises(errors.InvalidShortcodeFormat):
            service.create_short_url("https://example.com", 30, code)
        assert len(store) == 0

    def test_custom_shortcode_taken(self, service):
        service.create_short_url("https://example.com", 30, "ab")
        with pytest.raises(errors.ShortcodeTaken):
            service.create_short_url("https://other.com", 30, "ab")
        assert service.resolve_shortcode("ab").original_url == "https://example.com"

    def test_expired_shortcode_is_never_reissued(self, service, clock):
        service.create_short_url("https://example.com", 1, "ab")
        clock.advance(hours=1)
        with pytest.raises(errors.ShortcodeTaken):
            service.create_short_url("https://other.com", 30, "ab")

    @pytest.mark.parametrize("validity", [0, -5, float("nan"), float("inf"), "30", True])
    def test_rejects_bad_validity(self, service, store, validity):
        with pytest.raises(errors.ValidationError):
            service.create_short_url("https://example.com", validity)
        assert len(store) == 0

    def test_rejects_validity_beyond_calendar(self, service, store):
        with pytest.raises(errors.ValidationError, match="too large"):
            service.create_short_url("https://example.com", 1e20)
        assert len(store) == 0

    def test_rejects_integer_validity_too_big_for_a_float(self, service, store):
        with pytest.raises(errors.ValidationError, match="too large"):
            service.create_short_url("https://example.com", 10**400)
        assert len(store) == 0

    def test_rejects_validity_below_clock_resolution(self, service, store):
        with pytest.raises(errors.ValidationError, match="too small"):
            service.create_short_url("https://example.com", 1e-12)
        assert len(store) == 0

    def test_url_checked_before_shortcode(self, service):
        with pytest.raises(errors.InvalidUrl):
            service.create_short_url("not-a-url", 30, "bad-code")

    def test_generation_retries_on_collision(self, store, audit, clock):
        codes = iter(["taken1", "taken1", "fresh1"])
        service = UrlService(store, audit, clock=clock, generator=lambda length: next(codes))
        service.create_short_url("https://example.com", 30, "taken1")
        result = service.create_short_url("https://other.com", 30)
        assert result.shortLink == "http://localhost:3000/fresh1"
        assert service.resolve_shortcode("taken1").original_url == "https://example.com"

    def test_configured_shortcode_length(self, store, audit, clock):
        service = UrlService(store, audit, clock=clock, shortcode_length=10)
        assert len(shortcode_of(service.create_short_url("https://example.com"))) == 10

    def test_base_url_trailing_slash(self, store, audit, clock):
        service = UrlService(store, audit, base_url="https://sho.rt/", clock=clock)
        assert service.create_short_url("https://example.com", 30, "x").shortLink == "https://sho.rt/x"

    def test_audit_events(self, service, settings):
        service.create_short_url("https://example.com", 30)
        with pytest.raises(errors.InvalidUrl):
            service.create_short_url("nope")
        events = [(e["level"], e["message"]) for e in read_log(settings) if e["kind"] == "log"]
        assert events == [
            ("info", "creating short url"),
            ("info", "short url created successfully"),
            ("info", "creating short url"),
            ("error", "invalid url provided"),
        ]


class TestResolveShortcode:
    def test_unknown(self, service):
        with pytest.raises(errors.NotFound):
            service.resolve_shortcode("nope")

    def test_valid_through_exact_expiry(self, service, clock):
        service.create_short_url("https://example.com", 30, "edge")
        clock.advance(minutes=30)
        assert service.resolve_shortcode("edge").original_url == "https://example.com"

    def test_expired_just_after_expiry(self, service, clock):
        service.create_short_url("https://example.com", 30, "edge")
        clock.advance(minutes=30, microseconds=1)
        with pytest.raises(errors.Expired):
            service.resolve_shortcode("edge")

    def test_expired_is_not_found(self, service, clock):
        service.create_short_url("https://example.com", 1, "old")
        clock.advance(minutes=2)
        with pytest.raises(errors.NotFound):
            service.resolve_shortcode("old")

    def test_expiry_does_not_delete(self, service, store, clock):
        service.create_short_url("https://example.com", 1, "old")
        clock.advance(minutes=2)
        with pytest.raises(errors.Expired):
            service.resolve_shortcode("old")
        assert store.contains("old")


class TestClicks:
    def test_record_click_counts_in_order(self, service, clock):
        service.create_short_url("https://example.com", 30, "abc")
        for i in range(5):
            clock.advance(seconds=1)
            service.record_click("abc", f"https://ref{i}.example", f"agent-{i}")
        stats = service.get_url_stats("abc")
        assert stats.click_count == 5
        assert len(stats.clicks) == 5
        assert [c.referrer for c in stats.clicks] == [f"https://ref{i}.example" for i in range(5)]
        assert [c.user_agent for c in stats.clicks] == [f"agent-{i}" for i in range(5)]
        assert stats.clicks[0].timestamp == START + timedelta(seconds=1)
        assert stats.clicks[-1].timestamp == START + timedelta(seconds=5)

    @pytest.mark.parametrize("referrer", [None, ""])
    def test_missing_referrer_is_direct(self, service, referrer):
        service.create_short_url("https://example.com", 30, "abc")
        service.record_click("abc", referrer, None)
        click = service.get_url_stats("abc").clicks[0]
        assert click.referrer == "direct"
        assert click.location == "unknown"
        assert click.user_agent is None

    def test_unknown_shortcode_is_ignored(self, service, store, settings):
        service.record_click("nope", "https://ref.example", "agent")
        assert len(store) == 0
        assert any(e.get("message") == "no click stats for shortcode" for e in read_log(settings))

    def test_click_on_expired_shortcode_still_counts(self, service, clock):
        service.create_short_url("https://example.com", 1, "old")
        clock.advance(minutes=5)
        service.record_click("old", None, None)
        assert service.get_url_stats("old").click_count == 1


class TestGetUrlStats:
    def test_stats_view(self, service):
        service.create_short_url("https://example.com", 30, "abc")
        stats = service.get_url_stats("abc")
        assert stats.original_url == "https://example.com"
        assert stats.shortcode == "abc"
        assert stats.created_at == START
        assert stats.expires_at == START + timedelta(minutes=30)
        assert stats.click_count == 0
        assert stats.clicks == []

    def test_unknown(self, service):
        with pytest.raises(errors.NotFound):
            service.get_url_stats("nope")

    def test_expired_shortcode_still_has_stats(self, service, clock):
        service.create_short_url("https://example.com", 1, "old")
        service.record_click("old", None, None)
        clock.advance(days=1)
        with pytest.raises(errors.NotFound):
            service.resolve_shortcode("old")
        stats = service.get_url_stats("old")
        assert stats.original_url == "https://example.com"
        assert stats.click_count == 1
