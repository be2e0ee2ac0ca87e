from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional
import json, os, threading, time, uuid
from datetime import datetime, timezone

import httpx

LEVELS = ("info", "warn", "error", "fatal")

class JsonLineWriter:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    def write(self, record: Dict[str, Any]) -> None:
        record["_ts"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        line = json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)
        with self._lock, open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

class RemoteLogSink:
    """Posts log events to a remote collector from one background thread."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        if client_id:
            self.headers["X-Client-ID"] = client_id
        if client_secret:
            self.headers["X-Client-Secret"] = client_secret
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote-log")

    def submit(self, payload: Dict[str, Any]) -> Future:
        return self._executor.submit(self._deliver, payload)

    def _deliver(self, payload: Dict[str, Any]) -> None:
        response = self._client.post(self.url, json=payload, headers=self.headers)
        response.raise_for_status()

    def close(self) -> None:
        # queued deliveries are dropped; only the one in flight is awaited
        self._executor.shutdown(wait=True, cancel_futures=True)
        self._client.close()

class Audit:
    """Structured audit trail: local JSON lines plus optional remote delivery."""

    def __init__(self, writer: JsonLineWriter, remote: Optional[RemoteLogSink] = None, stack: str = "backend"):
        self.writer = writer
        self.remote = remote
        self.stack = stack

    def event(self, kind: str, **fields: Any) -> None:
        self.writer.write({"kind": kind, **fields})

    def log(self, level: str, package: str, message: str) -> None:
        if level not in LEVELS:
            raise ValueError(f"unknown log level: {level}")
        payload = {"stack": self.stack, "level": level, "package": package, "message": message}
        self.event("log", **payload)
        if self.remote is not None:
            try:
                future = self.remote.submit(payload)
            except RuntimeError as e:
                # executor already shut down
                self.event("log_delivery_failed", error=str(e), message=message)
                return
            future.add_done_callback(lambda f: self._delivered(f, message))

    def _delivered(self, future: Future, message: str) -> None:
        if future.cancelled():
            self.event("log_delivery_failed", error="cancelled at shutdown", message=message)
            return
        exc = future.exception()
        if exc is not None:
            self.event("log_delivery_failed", error=repr(exc), message=message)

    def close(self) -> None:
        if self.remote is not None:
            self.remote.close()

def build_audit(settings) -> Audit:
    remote = None
    if settings.log_api_url:
        remote = RemoteLogSink(
            settings.log_api_url,
            token=settings.log_api_token,
            client_id=settings.log_client_id,
            client_secret=settings.log_client_secret,
            timeout=settings.log_timeout_seconds,
        )
    writer = JsonLineWriter(os.path.join(settings.log_dir, settings.log_file))
    return Audit(writer, remote=remote, stack=settings.log_stack)

class StructuredAuditMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, audit: Audit):
        super().__init__(app)
        self.audit = audit
    async def dispatch(self, request, call_next):
        audit = self.audit
        cid = str(uuid.uuid4())
        t0 = time.perf_counter()
        try:
            try:
                body = await request.body()
                body_len = len(body or b"")
            except Exception:
                body_len = -1
            audit.event(
                "http_request",
                cid=cid,
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                body_len=body_len,
                client=getattr(request.client, "host", None),
            )
            audit.log("info", "middleware", f"{request.method} {request.url.path} - incoming request")
            response = await call_next(request)
            latency_ms = round((time.perf_counter() - t0) * 1000, 2)
            audit.event(
                "http_response",
                cid=cid,
                status=response.status_code,
                latency_ms=latency_ms,
            )
            return response
        except Exception as e:
            latency_ms = round((time.perf_counter() - t0) * 1000, 2)
            audit.event("http_exception", cid=cid, error=str(e), latency_ms=latency_ms)
            raise
