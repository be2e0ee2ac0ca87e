import threading
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from .db import Base, make_engine
from .models import URL, Click
from .schemas import ClickEvent, UrlRecord, UrlStats
from .utils import as_utc


class UrlStore:
    """Shortcode-keyed registry and click accumulator."""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or make_engine()
        Base.metadata.create_all(bind=self.engine)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.RLock()

    def contains(self, shortcode: str) -> bool:
        with self._lock, self._sessions() as db:
            return db.scalar(select(URL.id).where(URL.shortcode == shortcode)) is not None

    def insert_if_absent(self, record: UrlRecord) -> bool:
        # the unique index on shortcode plus the lock make this insert-if-absent
        with self._lock, self._sessions() as db:
            db.add(URL(
                shortcode=record.shortcode,
                original_url=record.original_url,
                created_at=as_utc(record.created_at),
                expires_at=as_utc(record.expires_at),
                validity_minutes=record.validity_minutes,
                click_count=0,
            ))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
            return True

    def get(self, shortcode: str) -> Optional[UrlRecord]:
        with self._lock, self._sessions() as db:
            u = self._find(db, shortcode)
            return _to_record(u) if u else None

    def append_click(self, shortcode: str, event: ClickEvent) -> bool:
        with self._lock, self._sessions() as db:
            u = self._find(db, shortcode)
            if u is None:
                return False
            db.add(Click(
                url_id=u.id,
                timestamp=as_utc(event.timestamp),
                referrer=event.referrer,
                location=event.location,
                user_agent=event.user_agent,
            ))
            u.click_count += 1
            db.commit()
            return True

    def get_stats(self, shortcode: str) -> Optional[UrlStats]:
        with self._lock, self._sessions() as db:
            u = self._find(db, shortcode)
            if u is None:
                return None
            clicks = [
                ClickEvent(
                    timestamp=as_utc(c.timestamp),
                    referrer=c.referrer,
                    location=c.location,
                    user_agent=c.user_agent,
                )
                for c in u.clicks
            ]
            return UrlStats(
                original_url=u.original_url,
                shortcode=u.shortcode,
                created_at=as_utc(u.created_at),
                expires_at=as_utc(u.expires_at),
                click_count=u.click_count,
                clicks=clicks,
            )

    def __len__(self) -> int:
        with self._lock, self._sessions() as db:
            return len(db.scalars(select(URL.id)).all())

    @staticmethod
    def _find(db, shortcode: str) -> Optional[URL]:
        return db.scalar(select(URL).where(URL.shortcode == shortcode))


def _to_record(u: URL) -> UrlRecord:
    return UrlRecord(
        original_url=u.original_url,
        shortcode=u.shortcode,
        created_at=as_utc(u.created_at),
        expires_at=as_utc(u.expires_at),
        validity_minutes=u.validity_minutes,
    )
