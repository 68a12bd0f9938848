"""Data request API endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from data_requests import DataRequestManager, StoreError, ValidationError
from ..dependencies import get_data_request_manager

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/data-requests",
    tags=["Data Requests"]
)

@router.get("")
async def list_data_requests(
    uploader_address: Optional[str] = Query(None, alias="uploaderAddress"),
    manager: DataRequestManager = Depends(get_data_request_manager)
) -> Dict[str, Any]:
    """Get purchase requests addressed to a publisher, newest first."""
    try:
        requests = await manager.list_requests(uploader_address)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {
        "success": True,
        "requests": [r.to_dict() for r in requests]
    }

@router.post("")
async def create_data_request(
    payload: Dict[str, Any] = Body(...),
    manager: DataRequestManager = Depends(get_data_request_manager)
) -> Dict[str, Any]:
    """Create a pending purchase request."""
    try:
        request = await manager.create_request(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {
        "success": True,
        "message": "Data request created successfully",
        "request": request.to_dict()
    }

@router.put("")
async def update_data_request(
    payload: Dict[str, Any] = Body(...),
    manager: DataRequestManager = Depends(get_data_request_manager)
) -> Dict[str, Any]:
    """Update a purchase request's status."""
    try:
        request = await manager.update_request_status(
            payload.get("requestId"),
            payload.get("status")
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        # Unknown request IDs are reported like any other store failure
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return {
        "success": True,
        "message": "Request status updated successfully",
        "request": request.to_dict()
    }
