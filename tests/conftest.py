"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from url_shortener.app import create_app
from url_shortener.config import Settings
from url_shortener.middleware.custom_logger import build_audit
from url_shortener.service import UrlService
from url_shortener.store import UrlStore

START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def read_log(settings: Settings) -> list:
    path = os.path.join(settings.log_dir, settings.log_file)
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment's .env and log directory."""
    return Settings(
        _env_file=None,
        port=3000,
        base_url="http://localhost:3000",
        default_validity_minutes=30,
        shortcode_length=6,
        log_dir=str(tmp_path / "logs"),
        log_api_url=None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit(settings):
    audit = build_audit(settings)
    yield audit
    audit.close()


@pytest.fixture
def store():
    return UrlStore()


@pytest.fixture
def service(store, audit, clock):
    return UrlService(store, audit, base_url="http://localhost:3000", clock=clock)


@pytest.fixture
def app(settings, store, clock, audit):
    return create_app(settings=settings, store=store, clock=clock, audit=audit)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
