"""Direct contract access: anchor a raw hash, read an address's stored hash."""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from web3 import Web3

from certchain.chain.client import describe_chain_error, normalize_hash
from certchain.chain.schemas import GetHashResponse, StoreHashRequest, StoreHashResponse
from certchain.common.exceptions import (
    ChainWriteError,
    ConfigurationError,
    DependencyError,
    InvalidInputError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blockchain", tags=["blockchain"])


def _get_chain():
    from certchain.deps import get_chain_client
    return get_chain_client()


@router.post("/hash", response_model=StoreHashResponse)
async def store_hash(body: StoreHashRequest):
    chain = _get_chain()
    normalize_hash(body.hash)
    try:
        tx_hash = await chain.store_hash(body.hash)
    except ConfigurationError:
        raise
    except Exception as exc:
        logger.error("storeHash failed for %s", body.hash, exc_info=True)
        raise ChainWriteError(describe_chain_error(exc)) from exc
    return StoreHashResponse(tx_hash=tx_hash)


@router.get("/hash", response_model=GetHashResponse)
async def get_hash(address: Optional[str] = Query(None)):
    chain = _get_chain()
    if address and not Web3.is_address(address):
        raise InvalidInputError("Invalid address", code="INVALID_ADDRESS")
    try:
        stored = await chain.get_hash(address)
    except ConfigurationError:
        raise
    except Exception as exc:
        logger.error("getHash failed for %s", address or "signer", exc_info=True)
        raise DependencyError(
            "On-chain read failed",
            code="CHAIN_READ_FAILED",
            details=describe_chain_error(exc),
        ) from exc
    return GetHashResponse(hash=stored, address=address)
