"""Upload API endpoint: store a JSON payload with its listing metadata."""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status

from config import get_storage_api_key
from datasets import Currency, price_from_wire
from storage import StorageClient, StorageError, gateway_url
from ..dependencies import get_storage_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/upload",
    tags=["Upload"]
)

REQUIRED_METADATA = ('name', 'description', 'priceETH', 'priceUSDC', 'category')

@router.post("")
async def upload(
    body: Dict[str, Any] = Body(...),
    storage: StorageClient = Depends(get_storage_client)
) -> Dict[str, Any]:
    """Store `{data, metadata}` off-chain and return its content identifier."""
    # Read per request so a key added to the environment takes effect without a restart
    api_key = get_storage_api_key()
    if not api_key:
        logger.error("Upload rejected: storage API key is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Storage API key not configured"
        )

    data = body.get("data")
    metadata = body.get("metadata")
    if data is None or not isinstance(metadata, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing data or metadata"
        )

    missing = [f for f in REQUIRED_METADATA if not str(metadata.get(f) or '').strip()]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required metadata fields: {', '.join(missing)}"
        )

    try:
        price_from_wire(metadata["priceETH"], Currency.ETH)
        price_from_wire(metadata["priceUSDC"], Currency.USDC)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        stored = await asyncio.to_thread(storage.upload_json, data, metadata, api_key)
    except StorageError as e:
        logger.error(f"Upload to storage failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload to storage"
        )

    return {
        "success": True,
        "url": gateway_url(stored.cid, storage.gateway_url),
        "hash": stored.cid,
        "metadata": metadata,
        "message": "Upload successful"
    }
