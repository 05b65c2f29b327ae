"""
Observability: Logging, Metrics, and Health

- Structured logs carrying the request id and, for submissions, the wallet
- Request middleware that times every call and tags the response
- In-process counters for submissions and latency
- Health checks that run a full chain validation

Environment:
- STARREGISTRY_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- STARREGISTRY_LOG_FORMAT: json or text (default: json in production)
- STARREGISTRY_PRODUCTION: 1/true/yes switches the default format to json

Usage:
    from starregistry.observability import get_logger

    logger = get_logger(__name__)
    logger.info("Star registered", height=block.height)
"""

import json
import logging
import os
import sys
import time
import uuid
from collections import Counter, deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
wallet_address_var: ContextVar[str] = ContextVar("wallet_address", default="")

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("wallet_address", wallet_address_var),
)

# Everything a bare LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_SAMPLE_LIMIT = 1000


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def _log_level() -> int:
    level = logging.getLevelName(os.environ.get("STARREGISTRY_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _wants_json() -> bool:
    chosen = os.environ.get("STARREGISTRY_LOG_FORMAT", "").lower()
    if chosen in ("json", "text"):
        return chosen == "json"
    return _env_flag("STARREGISTRY_PRODUCTION")


# ============================================================
# LOGGING
# ============================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"timestamp": "...", "level": "INFO", "logger": "starregistry.core.ledger",
     "message": "Block 3 appended", "request_id": "1f2e3d4c", ...extra fields}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({name: var.get() for name, var in _CONTEXT_FIELDS if var.get()})

        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line output for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        request_id = request_id_var.get()
        tag = f" [{request_id}]" if request_id else ""
        line = f"{stamp} {record.levelname:<8}{tag} {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Accepts structured fields as keyword arguments.

        logger.warning("Submission rejected", reason="expired")
    """

    _PASSTHROUGH = ("exc_info", "stack_info", "stacklevel", "extra")

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in self._PASSTHROUGH}
        kwargs["extra"] = {**kwargs.get("extra", {}), **fields}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})


def setup_logging() -> None:
    """Install a single stdout handler on the root logger. Call once at startup."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if _wants_json() else TextFormatter())
    logging.basicConfig(level=_log_level(), handlers=[handler], force=True)

    for chatty in ("uvicorn.access", "httpx"):
        logging.getLogger(chatty).setLevel(logging.WARNING)


# ============================================================
# REQUEST CONTEXT MIDDLEWARE
# ============================================================

class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id for the duration of each request.

    An incoming X-Request-ID is reused, otherwise a short one is minted.
    The id is echoed on the response, and the call is logged and timed.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_token = request_id_var.set(request_id)
        wallet_token = wallet_address_var.set("")
        logger = get_logger("starregistry.request")
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            get_metrics().record_request(elapsed_ms, success=False)
            logger.exception(f"{route} failed", duration_ms=round(elapsed_ms, 2))
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            get_metrics().record_request(elapsed_ms, success=response.status_code < 500)
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                f"{route} -> {response.status_code}",
                status_code=response.status_code,
                duration_ms=round(elapsed_ms, 2),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(request_token)
            wallet_address_var.reset(wallet_token)


# ============================================================
# METRICS
# ============================================================

def _percentile(samples, fraction: float) -> Optional[float]:
    if not samples:
        return None
    ordered = sorted(samples)
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


@dataclass
class MetricsCollector:
    """
    Process-local counters.

    Reset on restart, together with the chain they describe.
    Latency keeps the most recent samples only.
    """

    blocks_appended: int = 0
    submissions_accepted: int = 0
    submissions_rejected: Counter = field(default_factory=Counter)
    requests_total: int = 0
    requests_failed: int = 0
    append_latencies_ms: deque = field(default_factory=lambda: deque(maxlen=_SAMPLE_LIMIT))
    request_latencies_ms: deque = field(default_factory=lambda: deque(maxlen=_SAMPLE_LIMIT))

    def record_append(self, latency_ms: float) -> None:
        """An accepted submission; every accepted submission appends one block."""
        self.submissions_accepted += 1
        self.blocks_appended += 1
        self.append_latencies_ms.append(latency_ms)

    def record_rejection(self, reason: str) -> None:
        self.submissions_rejected[reason] += 1

    def record_request(self, latency_ms: float, success: bool) -> None:
        self.requests_total += 1
        self.requests_failed += not success
        self.request_latencies_ms.append(latency_ms)

    def get_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "blocks_appended": self.blocks_appended,
            "submissions_accepted": self.submissions_accepted,
            "submissions_rejected": dict(self.submissions_rejected),
            "requests_total": self.requests_total,
            "requests_failed": self.requests_failed,
        }
        for name, samples, points in (
            ("append", self.append_latencies_ms, (50, 95, 99)),
            ("request", self.request_latencies_ms, (50, 95)),
        ):
            for p in points:
                summary[f"{name}_latency_p{p}_ms"] = _percentile(samples, p / 100)
        return summary


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


# ============================================================
# HEALTH CHECKS
# ============================================================

@dataclass
class HealthStatus:
    healthy: bool
    checks: Dict[str, Dict[str, Any]]
    duration_ms: float


def check_health(ledger=None) -> HealthStatus:
    """
    Liveness, plus a full chain validation when a ledger is given.

    The chain check reports the tip height and an abbreviated tip hash.
    """
    started = time.perf_counter()
    checks: Dict[str, Dict[str, Any]] = {"liveness": {"status": "healthy"}}

    if ledger is not None:
        errors = ledger.validate_chain()
        tip = ledger.get_block_by_height(ledger.height)
        checks["chain_integrity"] = {
            "status": "unhealthy" if errors else "healthy",
            "valid": not errors,
            "error_count": len(errors),
            "height": tip.height,
            "last_hash": f"{tip.hash[:16]}...",
        }

    return HealthStatus(
        healthy=all(check["status"] == "healthy" for check in checks.values()),
        checks=checks,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
