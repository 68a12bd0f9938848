"""Upload module: publish a dataset file to the marketplace.

An upload runs four steps in order:
1. Validate the form
2. Store the payload off-chain, which yields its content identifier
3. Register the identifier with the dataset registry contract
4. Wait for the registration to be confirmed

Progress is reported through an UploadStatus held by the pipeline. When the
registration fails, the content identifier is kept so the registration can be
retried without storing the payload again.
"""

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import aiofiles
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from contract import ContractError, RegistrationError
from datasets import ListingError, UPLOAD_CATEGORIES
from datasets.pricing import Currency, Price, price_from_wire
from storage import StorageError

logger = logging.getLogger(__name__)

class UploadStep(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    REGISTERING = "registering"
    COMPLETED = "completed"
    ERROR = "error"

class UploadStatus(BaseModel):
    """Where an upload run currently stands."""
    model_config = ConfigDict(frozen=True)

    step: UploadStep = UploadStep.IDLE
    message: str = ""
    cid: Optional[str] = None
    error: Optional[str] = None
    tx_hash: Optional[str] = None

class UploadForm(BaseModel):
    """The publisher's upload form."""
    file_path: Optional[Path] = None
    name: str = ""
    description: str = ""
    category: str = ""
    price_eth: str = ""
    price_usdc: str = ""
    company: Optional[str] = None

class UploadPipelineError(Exception):
    """Raised when an action is not available in the current step."""
    pass

def parse_file_content(text: str) -> Any:
    """Parse file content as JSON, wrapping anything else as `{"content": text}`."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"content": text}

class UploadPipeline:
    """Runs uploads for one publisher session."""

    def __init__(
        self,
        storage,
        registry,
        monitor,
        wallet=None,
        catalogue=None,
        on_status: Optional[Callable[[UploadStatus], None]] = None
    ):
        """Initialize the pipeline.

        Args:
            storage: Off-chain storage client (upload_json)
            registry: Contract gateway (register_dataset)
            monitor: Confirmation monitor (wait_for_confirmation)
            wallet: Connected signing identity, None when disconnected
            catalogue: Optional DatasetManager recording a listing per stored upload
            on_status: Called with every new status
        """
        self.storage = storage
        self.registry = registry
        self.monitor = monitor
        self.wallet = wallet
        self.catalogue = catalogue
        self.on_status = on_status
        self.status = UploadStatus()
        self._metadata: Optional[Dict[str, Any]] = None

    def _set(self, step: UploadStep, message: str, **fields) -> UploadStatus:
        self.status = UploadStatus(step=step, message=message, **fields)
        if step == UploadStep.ERROR:
            logger.error(f"Upload failed: {message}")
        else:
            logger.info(f"Upload {step.value}: {message}")
        if self.on_status:
            self.on_status(self.status)
        return self.status

    def _fail(self, message: str, error: Any = None, cid: Optional[str] = None) -> UploadStatus:
        return self._set(
            UploadStep.ERROR,
            message,
            error=str(error) if error is not None else message,
            cid=cid
        )

    @property
    def can_retry(self) -> bool:
        return (
            self.status.step == UploadStep.ERROR
            and self.status.cid is not None
            and self._metadata is not None
        )

    def validate(self, form: UploadForm) -> Optional[Dict[str, Any]]:
        """Check the form, returning registration metadata or None after an error status."""
        if self.wallet is None:
            self._fail("Please connect your wallet first")
            return None
        if form.file_path is None:
            self._fail("Please select a file to upload")
            return None

        for field in ('name', 'description', 'category', 'price_eth', 'price_usdc'):
            if not str(getattr(form, field) or '').strip():
                self._fail(f"Please fill in the {field.replace('_', ' ')} field")
                return None

        categories = {c.value for c in UPLOAD_CATEGORIES}
        if form.category not in categories:
            self._fail(f"Unknown category: {form.category}")
            return None

        try:
            price_eth = price_from_wire(form.price_eth, Currency.ETH)
            price_usdc = price_from_wire(form.price_usdc, Currency.USDC)
        except ValueError as e:
            self._fail(str(e))
            return None

        return {
            'name': form.name.strip(),
            'description': form.description.strip(),
            'category': form.category,
            'price_eth': price_eth,
            'price_usdc': price_usdc,
        }

    async def store(self, form: UploadForm, metadata: Dict[str, Any]) -> Optional[str]:
        """Store the file off-chain. Returns the content identifier, or None on error."""
        self._set(UploadStep.UPLOADING, "Uploading file to storage...")

        try:
            async with aiofiles.open(form.file_path, 'r', encoding='utf-8') as f:
                text = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            self._fail("Could not read the selected file", e)
            return None

        wire_metadata = {
            'name': metadata['name'],
            'description': metadata['description'],
            'priceETH': str(metadata['price_eth'].amount),
            'priceUSDC': str(metadata['price_usdc'].amount),
            'category': metadata['category'],
        }

        try:
            stored = await asyncio.to_thread(
                self.storage.upload_json, parse_file_content(text), wire_metadata
            )
        except StorageError as e:
            self._fail("Upload to storage failed", e)
            return None

        self._set(UploadStep.UPLOADED, "File stored, registering on chain...", cid=stored.cid)

        if self.catalogue is not None:
            await self._record_listing(form, metadata, stored)

        return stored.cid

    async def _record_listing(self, form: UploadForm, metadata: Dict[str, Any], stored) -> None:
        try:
            await self.catalogue.create_dataset(
                name=metadata['name'],
                description=metadata['description'],
                category=metadata['category'],
                cid=stored.cid,
                size_bytes=stored.size,
                publisher_address=self.wallet.address,
                company=form.company,
                list_prices=[metadata['price_eth'], metadata['price_usdc']],
            )
        except ListingError as e:
            # The content is stored either way; the listing can be saved again later
            logger.error(f"Could not record listing for {stored.cid}: {e}")

    async def register(self, cid: str, metadata: Dict[str, Any]) -> Optional[str]:
        """Submit the registration. Returns the transaction hash, or None on error."""
        try:
            tx_hash = await asyncio.to_thread(self.registry.register_dataset, cid, metadata)
        except ContractError as e:
            self._fail("Registration transaction failed", e, cid=cid)
            return None

        self._set(
            UploadStep.REGISTERING,
            "Waiting for registration to be confirmed...",
            cid=cid,
            tx_hash=tx_hash
        )
        return tx_hash

    async def confirm(self, cid: str, tx_hash: str) -> bool:
        try:
            await self.monitor.wait_for_confirmation(tx_hash, RegistrationError)
        except ContractError as e:
            self._fail("Registration was not confirmed", e, cid=cid)
            return False

        self._set(UploadStep.COMPLETED, "Dataset published", cid=cid, tx_hash=tx_hash)
        return True

    async def _register_and_confirm(self, cid: str) -> UploadStatus:
        tx_hash = await self.register(cid, self._metadata)
        if tx_hash:
            await self.confirm(cid, tx_hash)
        return self.status

    async def submit(self, form: Union[UploadForm, Dict[str, Any]]) -> UploadStatus:
        """Run a whole upload. Returns the final status."""
        self._metadata = None
        self._set(UploadStep.IDLE, "")

        if not isinstance(form, UploadForm):
            try:
                form = UploadForm.model_validate(form)
            except PydanticValidationError as e:
                fields = ', '.join(
                    '.'.join(str(part) for part in err['loc']) for err in e.errors()
                )
                return self._fail(f"Invalid upload form fields: {fields}", e)

        metadata = self.validate(form)
        if metadata is None:
            return self.status

        cid = await self.store(form, metadata)
        if cid is None:
            return self.status

        self._metadata = metadata
        return await self._register_and_confirm(cid)

    async def retry_registration(self) -> UploadStatus:
        """Replay registration and confirmation with the content identifier already held.

        Raises:
            UploadPipelineError: If the last run did not fail after storing its payload
        """
        if not self.can_retry:
            raise UploadPipelineError("Nothing to retry: no failed registration is pending")

        cid = self.status.cid
        logger.info(f"Retrying registration of {cid}")
        return await self._register_and_confirm(cid)

__all__ = [
    'UploadPipeline', 'UploadPipelineError', 'UploadForm', 'UploadStatus', 'UploadStep',
    'parse_file_content',
]
