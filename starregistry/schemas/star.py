"""
Star and Block Payload Schemas

What a block carries.

A block body is exactly one of:
- GenesisData: the fixed sentinel of block 0
- BlockData: an authenticated star claim

The `kind` tag decides which one, so decoding never has to guess.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


GENESIS_DATA = "Genesis Block"


class Star(BaseModel):
    """
    The astronomical claim itself.

    Opaque to the registry: nothing is validated, values are kept exactly as
    the claimant sent them and any extra keys travel with the star.
    """
    model_config = ConfigDict(extra="allow")

    dec: Any = Field(
        ...,
        description="Declination",
        examples=["68° 52' 56.9"],
    )

    ra: Any = Field(
        ...,
        description="Right ascension",
        examples=["16h 29m 1.0s"],
    )

    story: Any = Field(
        default="",
        description="Narrative the claimant attaches to the star",
    )


class GenesisData(BaseModel):
    """Sentinel payload of the genesis block."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["genesis"] = "genesis"
    data: str = GENESIS_DATA


class BlockData(BaseModel):
    """
    An authenticated ownership claim.

    `message` is the signed challenge that proved control of `wallet_address`.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["star_claim"] = "star_claim"
    message: str
    wallet_address: str
    star: Star


BlockPayload = Annotated[
    Union[GenesisData, BlockData],
    Field(discriminator="kind"),
]

block_payload_adapter: TypeAdapter[GenesisData | BlockData] = TypeAdapter(BlockPayload)


class StarOwnership(BaseModel):
    """A star together with the wallet that registered it."""
    owner: str
    star: Star
