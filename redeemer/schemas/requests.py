"""Validated intake payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    """One redemption attempt as extracted from an issue."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, description="Account receiving the grant.")
    hwid: str = Field(..., min_length=1, description="Hardware identifier of the device.")
    code: str = Field(..., min_length=1, description="License code being redeemed.")


__all__ = ["RedeemRequest"]
