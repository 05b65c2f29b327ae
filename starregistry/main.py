"""
Star Registry - Main application entry point.

Wallet owners prove control of an address by signing a short-lived
challenge, then register stars on an in-memory chain.

Run with:
    uvicorn starregistry.main:app --port 8000
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import router
from .config import RegistryConfig
from .core import Clock, Ledger, OwnershipService
from .observability import (
    RequestContextMiddleware,
    check_health,
    get_logger,
    get_metrics,
    setup_logging,
)

logger = get_logger(__name__)


def create_app(
    config: Optional[RegistryConfig] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the application around a fresh ledger.

    Args:
        config: Settings (default: loaded from the environment)
        clock: Time source shared by ledger and challenge gate
    """
    config = config or RegistryConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """The chain lives exactly as long as the application does."""
        ledger = Ledger(clock=clock)
        app.state.ledger = ledger
        app.state.ownership = OwnershipService(
            ledger,
            clock=clock,
            window_seconds=config.challenge_window_seconds,
            domain=config.challenge_domain,
        )
        app.state.config = config

        logger.info(
            "Application startup complete",
            height=ledger.height,
            challenge_window_seconds=config.challenge_window_seconds,
        )

        yield

        logger.info("Application shutdown complete", height=ledger.height)

    app = FastAPI(
        title="Star Registry",
        description="""
## Star Registry

Register ownership of stars on an append-only chain.

### Flow

```
POST /requestValidation  ->  sign message with wallet  ->  POST /submitstar
```

Challenges expire after the configured window (300 seconds by default).
The chain is held in memory and starts again from genesis on restart.
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(router)

    @app.get("/health", tags=["System"])
    async def health():
        """Returns 200 if the service is running."""
        return {"status": "healthy", "service": "starregistry"}

    @app.get("/health/ledger", tags=["System"])
    async def health_ledger(request: Request):
        """
        Ledger health: height, tail hash and full chain validation.

        Returns 200 if the chain is intact, 503 otherwise.
        """
        health_status = check_health(ledger=request.app.state.ledger)
        return JSONResponse(
            status_code=200 if health_status.healthy else 503,
            content={
                "status": "healthy" if health_status.healthy else "unhealthy",
                "checks": health_status.checks,
                "duration_ms": health_status.duration_ms,
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics():
        """Counters and latency percentiles."""
        return get_metrics().get_summary()

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    setup_logging()
    config = RegistryConfig.from_env()
    uvicorn.run(
        "starregistry.main:app",
        host=config.host,
        port=config.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
