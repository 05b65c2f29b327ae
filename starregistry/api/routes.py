"""
API Routes for the Star Registry

Command endpoints (append-only):
- POST /requestValidation       - Issue an ownership challenge for a wallet
- POST /submitstar              - Register a star with a signed challenge

Query endpoints:
- GET /block/height/{height}    - Block at a height
- GET /block/hash/{hash}        - Block with a hash
- GET /blocks/{address}         - Stars registered by a wallet
- GET /validateChain            - Chain integrity report
"""

import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..core import (
    Block,
    BlockNotFoundError,
    CanonicalSerializationError,
    InvalidSignatureError,
    Ledger,
    OwnershipService,
    SubmissionError,
)
from ..observability import get_logger, get_metrics, wallet_address_var
from ..schemas import Star, StarOwnership


router = APIRouter()
logger = get_logger(__name__)


# ============================================================
# Dependency Injection
# ============================================================

def get_ownership_service(request: Request) -> OwnershipService:
    return request.app.state.ownership


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


# ============================================================
# Request/Response Models
# ============================================================

class ValidationRequest(BaseModel):
    """Request an ownership challenge for a wallet."""
    address: str = Field(..., min_length=1, pattern=r"^[^:]+$")


class SubmitStarRequest(BaseModel):
    """A star claim, signed by the wallet it is registered to."""
    address: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    star: Star


class BlockResponse(BaseModel):
    """A block as stored, plus its decoded body."""
    height: int
    time: int
    previous_hash: Optional[str] = None
    hash: str
    body: str
    decoded_body: dict[str, Any]

    @classmethod
    def from_block(cls, block: Block) -> "BlockResponse":
        return cls(
            **block.to_dict(),
            decoded_body=block.decoded_body().model_dump(mode="json"),
        )


class ChainValidationResponse(BaseModel):
    """Result of a full chain validation."""
    valid: bool
    height: int
    errors: list[str]


# ============================================================
# Command Endpoints (Append-Only Operations)
# ============================================================

@router.post(
    "/requestValidation",
    response_model=str,
    tags=["Ownership"],
    summary="Request an ownership challenge",
)
async def request_validation(
    request: ValidationRequest,
    service: OwnershipService = Depends(get_ownership_service),
):
    """
    Return the message the wallet owner must sign.

    The challenge must be submitted back within the freshness window.
    """
    return service.issue_challenge(request.address)


@router.post(
    "/submitstar",
    response_model=BlockResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Ownership"],
    summary="Register a star",
)
async def submit_star(
    request: SubmitStarRequest,
    service: OwnershipService = Depends(get_ownership_service),
):
    """
    Register a star for a wallet.

    The message must be a fresh challenge issued for this address,
    signed by the wallet's key.
    """
    wallet_address_var.set(request.address)
    metrics = get_metrics()
    start = time.perf_counter()

    try:
        block = service.submit_star(
            address=request.address,
            message=request.message,
            signature=request.signature,
            star=request.star,
        )
    except InvalidSignatureError as e:
        metrics.record_rejection(type(e).__name__)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except SubmissionError as e:
        metrics.record_rejection(type(e).__name__)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CanonicalSerializationError as e:
        metrics.record_rejection(type(e).__name__)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    metrics.record_append((time.perf_counter() - start) * 1000)
    logger.info(
        "Star registered",
        height=block.height,
        block_hash=block.hash,
    )
    return BlockResponse.from_block(block)


# ============================================================
# Query Endpoints
# ============================================================

@router.get(
    "/block/height/{height}",
    response_model=BlockResponse,
    tags=["Blocks"],
    summary="Get a block by height",
)
async def get_block_by_height(
    height: int,
    ledger: Ledger = Depends(get_ledger),
):
    try:
        block = ledger.get_block_by_height(height)
    except BlockNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return BlockResponse.from_block(block)


@router.get(
    "/block/hash/{block_hash}",
    response_model=BlockResponse,
    tags=["Blocks"],
    summary="Get a block by hash",
)
async def get_block_by_hash(
    block_hash: str,
    ledger: Ledger = Depends(get_ledger),
):
    try:
        block = ledger.get_block_by_hash(block_hash)
    except BlockNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return BlockResponse.from_block(block)


@router.get(
    "/blocks/{address}",
    response_model=list[StarOwnership],
    tags=["Blocks"],
    summary="Stars registered by a wallet",
)
async def get_stars_by_wallet_address(
    address: str,
    ledger: Ledger = Depends(get_ledger),
):
    """All stars owned by the wallet, oldest first. Empty if none."""
    return ledger.get_stars_by_wallet_address(address)


@router.get(
    "/validateChain",
    response_model=ChainValidationResponse,
    tags=["Blocks"],
    summary="Validate the whole chain",
)
async def validate_chain(ledger: Ledger = Depends(get_ledger)):
    errors = ledger.validate_chain()
    return ChainValidationResponse(
        valid=not errors,
        height=ledger.height,
        errors=errors,
    )
