"""Data requests module: the record store for buyer purchase requests.

A purchase request records one buyer's intent to acquire one listing. Requests
are created as pending and then moved forward by the publisher:

    pending -> approved | rejected -> completed
"""

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union

from asyncpg.exceptions import PostgresError
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from database import DatabaseError, get_pool
from datasets.ids import MonotonicIdGenerator
from datasets.pricing import Currency, Price, price_from_wire, price_to_wire

logger = logging.getLogger(__name__)

class DataRequestError(Exception):
    """Base class for data request errors."""
    pass

class ValidationError(DataRequestError):
    """Raised when caller input is missing or malformed."""
    pass

class StoreError(DataRequestError):
    """Raised when the backing store rejects or fails an operation."""
    pass

class RequestNotFoundError(StoreError):
    """Raised when no request matches the given identifier."""
    pass

class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"

# Statuses a request may be in for a move to the key status to be accepted
ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.PENDING}),
    RequestStatus.APPROVED: frozenset({RequestStatus.PENDING, RequestStatus.APPROVED}),
    RequestStatus.REJECTED: frozenset({RequestStatus.PENDING, RequestStatus.REJECTED}),
    RequestStatus.COMPLETED: frozenset({
        RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.COMPLETED
    }),
}

class RequestIdGenerator(MonotonicIdGenerator):
    """Issues `req-<milliseconds>` identifiers."""

    def __init__(self, clock=None):
        super().__init__('req', clock)

class PurchaseRequestPayload(BaseModel):
    """Wire payload for creating a purchase request."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    dataset_id: str = Field(alias='datasetId', min_length=1)
    dataset_name: str = Field('', alias='datasetName')
    dataset_description: str = Field('', alias='datasetDescription')
    cid: str = ''
    requester_address: str = Field(alias='requesterAddress', min_length=1)
    uploader_address: str = Field(alias='uploaderAddress', min_length=1)
    category: str = ''
    size: str = ''
    oyd_cost: Decimal = Field(alias='oydCost')

class PurchaseRequest(BaseModel):
    """A stored purchase request, named after its storage columns."""
    model_config = ConfigDict(frozen=True)

    id: str
    dataset_id: str
    dataset_name: Optional[str] = None
    dataset_description: Optional[str] = None
    cid: Optional[str] = None
    requester_address: str
    uploader_address: str
    category: Optional[str] = None
    size: Optional[str] = None
    price: Price
    status: RequestStatus
    requested_at: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> 'PurchaseRequest':
        data = dict(row)
        data['price'] = Price(unit=data.pop('price_unit'), amount=data.pop('price_amount'))
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode='json', exclude={'price'})
        data['price'] = price_to_wire(self.price)
        # Legacy clients read the OYD amount directly
        if self.price.unit == Currency.OYD:
            data['oyd_cost'] = str(self.price.amount)
        return data

def parse_status(status: Any) -> RequestStatus:
    """Map a wire status onto RequestStatus.

    Raises:
        ValidationError: If status is missing or not a known status
    """
    if not status:
        raise ValidationError("status is required")
    try:
        return RequestStatus(str(status).strip().lower())
    except ValueError:
        allowed = ', '.join(s.value for s in RequestStatus)
        raise ValidationError(f"Unknown status {status!r}, expected one of: {allowed}")

class DataRequestManager:
    """Manager class for purchase request records."""

    def __init__(self, pool=None, id_generator: Optional[RequestIdGenerator] = None):
        """Initialize the data request manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            id_generator: Optional identifier source, mainly for tests
        """
        self.pool = pool
        self._next_id = id_generator or RequestIdGenerator()

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_requests(self, uploader_address: Optional[str]) -> List[PurchaseRequest]:
        """List requests addressed to a publisher, newest first.

        Args:
            uploader_address: Publisher wallet address

        Returns:
            Matching requests ordered by requested_at descending

        Raises:
            ValidationError: If uploader_address is missing
            StoreError: If the store cannot be read
        """
        if not uploader_address:
            raise ValidationError("uploaderAddress parameter is required")

        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT * FROM data_requests
                    WHERE uploader_address = $1
                    ORDER BY requested_at DESC
                    ''',
                    uploader_address
                )
        except (PostgresError, DatabaseError, OSError) as e:
            logger.error(f"Error fetching data requests for {uploader_address}: {e}")
            raise StoreError("Failed to fetch data requests")

        return [PurchaseRequest.from_row(row) for row in rows]

    async def create_request(
        self,
        payload: Union[PurchaseRequestPayload, Dict[str, Any]]
    ) -> PurchaseRequest:
        """Create a pending purchase request.

        Args:
            payload: Request payload (wire field names accepted)

        Returns:
            The stored request

        Raises:
            ValidationError: If the payload is incomplete or malformed
            StoreError: If the insert is rejected
        """
        if not isinstance(payload, PurchaseRequestPayload):
            try:
                payload = PurchaseRequestPayload.model_validate(payload or {})
            except PydanticValidationError as e:
                fields = ', '.join(
                    '.'.join(str(part) for part in err['loc']) for err in e.errors()
                )
                raise ValidationError(f"Invalid data request fields: {fields}")

        try:
            price = price_from_wire(payload.oyd_cost, Currency.OYD)
        except ValueError as e:
            raise ValidationError(str(e))

        request_id = self._next_id()

        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO data_requests (
                        id, dataset_id, dataset_name, dataset_description, cid,
                        requester_address, uploader_address, category, size,
                        price_unit, price_amount, status, requested_at, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, now(), now())
                    RETURNING *
                    ''',
                    request_id,
                    payload.dataset_id,
                    payload.dataset_name,
                    payload.dataset_description,
                    payload.cid,
                    payload.requester_address,
                    payload.uploader_address,
                    payload.category,
                    payload.size,
                    price.unit.value,
                    price.amount,
                    RequestStatus.PENDING.value
                )
        except (PostgresError, DatabaseError, OSError) as e:
            logger.error(f"Error creating data request {request_id}: {e}")
            raise StoreError("Failed to create data request")

        logger.info(
            f"Created data request {request_id} from {payload.requester_address} "
            f"for dataset {payload.dataset_id}"
        )
        return PurchaseRequest.from_row(row)

    async def update_request_status(self, request_id: Optional[str], status: Any) -> PurchaseRequest:
        """Move a request to a new status.

        The transition check and the write are a single statement, so two
        publishers updating the same request race at last-write-wins.

        Args:
            request_id: Request identifier
            status: Target status

        Returns:
            The updated request

        Raises:
            ValidationError: If an argument is missing, the status is unknown,
                or the transition goes backwards
            RequestNotFoundError: If no request has this identifier
            StoreError: If the store cannot be written
        """
        if not request_id:
            raise ValidationError("requestId and status are required")
        if not status:
            raise ValidationError("requestId and status are required")
        target = parse_status(status)
        allowed_from = sorted(s.value for s in ALLOWED_TRANSITIONS[target])

        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    UPDATE data_requests
                    SET status = $2, updated_at = now()
                    WHERE id = $1 AND status = ANY($3::text[])
                    RETURNING *
                    ''',
                    request_id,
                    target.value,
                    allowed_from
                )
                current = None
                if not row:
                    current = await conn.fetchval(
                        'SELECT status FROM data_requests WHERE id = $1',
                        request_id
                    )
        except (PostgresError, DatabaseError, OSError) as e:
            logger.error(f"Error updating data request {request_id}: {e}")
            raise StoreError("Failed to update request status")

        if row:
            logger.info(f"Data request {request_id} is now {target.value}")
            return PurchaseRequest.from_row(row)

        if current is None:
            logger.error(f"Data request {request_id} not found")
            raise RequestNotFoundError(f"Data request {request_id} not found")

        raise ValidationError(
            f"Cannot move request {request_id} from {current} to {target.value}"
        )

__all__ = [
    'DataRequestManager', 'PurchaseRequest', 'PurchaseRequestPayload',
    'RequestStatus', 'RequestIdGenerator', 'ALLOWED_TRANSITIONS', 'parse_status',
    'DataRequestError', 'ValidationError', 'StoreError', 'RequestNotFoundError',
]
