"""Dataset listing API endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from config import settings_conf
from dashboard import category_overview
from datasets import DatasetCategory, DatasetManager, DuplicateContentError, ListingError
from ..dependencies import get_dataset_manager

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/datasets",
    tags=["Datasets"]
)

REQUIRED_FIELDS = (
    'category', 'companyName', 'dataName', 'dataDescription',
    'ipfsHash', 'timestamp', 'fileSize', 'uploaderAddress'
)

@router.get("")
async def list_datasets(
    category: Optional[str] = Query(None),
    manager: DatasetManager = Depends(get_dataset_manager)
) -> Dict[str, Any]:
    """List datasets newest first, optionally for one category."""
    try:
        datasets = await manager.list_datasets(category)
    except ListingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {
        "success": True,
        "datasets": [d.to_dict() for d in datasets]
    }

@router.get("/categories")
async def list_categories(
    manager: DatasetManager = Depends(get_dataset_manager)
) -> Dict[str, Any]:
    """Categories with their publishers and per-publisher totals."""
    try:
        datasets = await manager.list_datasets()
    except ListingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    overview = category_overview(datasets, manager.categories())
    return {
        "success": True,
        "categories": [entry.model_dump() for entry in overview]
    }

@router.post("")
async def save_dataset(
    body: Dict[str, Any] = Body(...),
    manager: DatasetManager = Depends(get_dataset_manager)
) -> Dict[str, Any]:
    """Record a dataset whose content is already in storage."""
    missing = [f for f in REQUIRED_FIELDS if not body.get(f)]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required fields: {', '.join(missing)}"
        )

    try:
        category = DatasetCategory(body["category"])
        size_bytes = int(body["fileSize"])
        if size_bytes <= 0:
            raise ValueError("fileSize must be positive")
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        dataset = await manager.create_dataset(
            name=body["dataName"],
            description=body["dataDescription"],
            category=category,
            cid=body["ipfsHash"],
            size_bytes=size_bytes,
            publisher_address=body["uploaderAddress"],
            company=body["companyName"],
        )
    except DuplicateContentError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ListingError as e:
        logger.error(f"Save of dataset {body['ipfsHash']} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save dataset record"
        )

    return {
        "success": True,
        "message": "Dataset successfully saved to database",
        "dataset": dataset.to_dict(),
        "decryptUrl": f"{settings_conf['decrypt_base_url'].rstrip('/')}/{dataset.cid}"
    }
