"""Business logic for creating, resolving and tracking short URLs."""

import math
from datetime import datetime
from typing import Callable, Optional

from . import errors
from .middleware.custom_logger import Audit
from .schemas import ClickEvent, CreateShortURLResp, UrlRecord, UrlStats
from .store import UrlStore
from .utils import add_minutes, generate_shortcode, is_valid_shortcode, is_valid_url, iso_z, utc_now

Clock = Callable[[], datetime]

LOCATION_PLACEHOLDER = "unknown"


class UrlService:
    """Creates, resolves and tracks short URLs held in a UrlStore."""

    def __init__(
        self,
        store: UrlStore,
        audit: Audit,
        base_url: str = "http://localhost:3000",
        clock: Clock = utc_now,
        default_validity_minutes: float = 30,
        shortcode_length: int = 6,
        generator: Callable[[int], str] = generate_shortcode,
    ):
        self.store = store
        self.audit = audit
        self.base_url = base_url.rstrip("/")
        self.clock = clock
        self.default_validity_minutes = default_validity_minutes
        self.shortcode_length = shortcode_length
        self.generator = generator

    def short_link(self, shortcode: str) -> str:
        return f"{self.base_url}/{shortcode}"

    def create_short_url(
        self,
        original_url: str,
        validity_minutes: Optional[float] = None,
        custom_shortcode: Optional[str] = None,
    ) -> CreateShortURLResp:
        self._log("info", "creating short url")

        if not is_valid_url(original_url):
            self._log("error", "invalid url provided")
            raise errors.InvalidUrl()

        if validity_minutes is None:
            validity_minutes = self.default_validity_minutes
        if (
            isinstance(validity_minutes, bool)
            or not isinstance(validity_minutes, (int, float))
            or validity_minutes <= 0
        ):
            self._log("error", "invalid validity value")
            raise errors.ValidationError("Validity must be a positive number")
        try:
            finite = math.isfinite(validity_minutes)
        except OverflowError:
            # int too large for a float
            self._log("error", "validity too large")
            raise errors.ValidationError("Validity is too large")
        if not finite:
            self._log("error", "invalid validity value")
            raise errors.ValidationError("Validity must be a positive number")

        if custom_shortcode:
            if not is_valid_shortcode(custom_shortcode):
                self._log("error", "invalid shortcode format")
                raise errors.InvalidShortcodeFormat()
            if self.store.contains(custom_shortcode):
                self._log("error", "shortcode already exists")
                raise errors.ShortcodeTaken()

        created_at = self.clock()
        try:
            expires_at = add_minutes(created_at, validity_minutes)
        except OverflowError:
            self._log("error", "validity too large")
            raise errors.ValidationError("Validity is too large")
        if expires_at <= created_at:
            self._log("error", "validity too small")
            raise errors.ValidationError("Validity is too small")

        if custom_shortcode:
            record = self._record(original_url, custom_shortcode, created_at, expires_at, validity_minutes)
            if not self.store.insert_if_absent(record):
                # claimed between the existence check and the insert
                self._log("error", "shortcode already exists")
                raise errors.ShortcodeTaken()
        else:
            while True:
                record = self._record(
                    original_url, self.generator(self.shortcode_length), created_at, expires_at, validity_minutes
                )
                if self.store.insert_if_absent(record):
                    break

        self._log("info", "short url created successfully")
        return CreateShortURLResp(shortLink=self.short_link(record.shortcode), expiry=iso_z(expires_at))

    def resolve_shortcode(self, shortcode: str) -> UrlRecord:
        self._log("info", "retrieving url by shortcode")
        record = self.store.get(shortcode)
        if record is None:
            self._log("warn", "shortcode not found")
            raise errors.NotFound()
        # live through the exact expiry instant
        if self.clock() > record.expires_at:
            self._log("warn", "shortcode has expired")
            raise errors.Expired()
        return record

    def record_click(self, shortcode: str, referrer: Optional[str] = None, user_agent: Optional[str] = None) -> None:
        self._log("info", "recording click")
        event = ClickEvent(
            timestamp=self.clock(),
            referrer=referrer or "direct",
            location=LOCATION_PLACEHOLDER,
            user_agent=user_agent,
        )
        if not self.store.append_click(shortcode, event):
            self._log("warn", "no click stats for shortcode")

    def get_url_stats(self, shortcode: str) -> UrlStats:
        """Return the record and its clicks; expired shortcodes are included."""
        self._log("info", "retrieving url statistics")
        stats = self.store.get_stats(shortcode)
        if stats is None:
            self._log("warn", "shortcode not found for stats")
            raise errors.NotFound()
        return stats

    def _record(self, original_url, shortcode, created_at, expires_at, validity_minutes) -> UrlRecord:
        return UrlRecord(
            original_url=original_url,
            shortcode=shortcode,
            created_at=created_at,
            expires_at=expires_at,
            validity_minutes=validity_minutes,
        )

    def _log(self, level: str, message: str) -> None:
        self.audit.log(level, "service", message)
