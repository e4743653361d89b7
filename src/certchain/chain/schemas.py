"""Pydantic schemas for direct chain endpoints."""

from typing import Optional

from pydantic import BaseModel

from certchain.common.schemas import CamelModel


class StoreHashRequest(BaseModel):
    hash: str


class StoreHashResponse(CamelModel):
    success: bool = True
    tx_hash: str


class GetHashResponse(CamelModel):
    success: bool = True
    hash: str
    address: Optional[str] = None
