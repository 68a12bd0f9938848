"""Purchase module: buy datasets, request them, and preview their content.

Buying pays for a listing through the registry contract, waits for the payment
to confirm and then grants the buyer access. Previewing is independent of
buying: the wallet signs the storage service's auth message, the signature is
exchanged for the content key, and the decrypted content lands in a temporary
file until it is released.
"""

import asyncio
import logging
import os
import tempfile
from typing import Iterable, Optional, Set

import aiofiles
from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel

from contract import ContractError, PaymentError, WalletError
from data_requests import DataRequestError, PurchaseRequest
from datasets import Currency, DatasetListing
from storage import DecryptionError, StorageError
from .access import AccessGrantError, AccessGrantManager

logger = logging.getLogger(__name__)

class PurchaseResult(BaseModel):
    success: bool
    tx_hash: Optional[str] = None
    request: Optional[PurchaseRequest] = None
    error: Optional[str] = None

class DecryptedPreview(BaseModel):
    """A decrypted copy of a listing's content in a local temporary file."""
    dataset_id: str
    cid: str
    path: str
    size_bytes: int

    def release(self) -> None:
        """Delete the temporary file. Safe to call more than once."""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass

class PreviewResult(BaseModel):
    preview: Optional[DecryptedPreview] = None
    error: Optional[str] = None

class PurchasePipeline:
    """Buying and previewing for one buyer session."""

    def __init__(
        self,
        registry,
        monitor,
        access: AccessGrantManager,
        wallet=None,
        storage=None,
        requests=None,
        notifier=None,
        purchased: Optional[Set[str]] = None
    ):
        """Initialize the pipeline.

        Args:
            registry: Contract gateway (buy_dataset, has_purchased)
            monitor: Confirmation monitor (wait_for_confirmation)
            access: Access grant collaborator (grant_access)
            wallet: Connected signing identity, None when disconnected
            storage: Storage client, needed for previews
            requests: DataRequestManager, needed for purchase requests
            notifier: Shows transient success messages
            purchased: Dataset IDs already bought in this session
        """
        self.registry = registry
        self.monitor = monitor
        self.access = access
        self.wallet = wallet
        self.storage = storage
        self.requests = requests
        self.notifier = notifier
        self.purchased = purchased if purchased is not None else set()

    def has_purchased(self, dataset_id: str) -> bool:
        return dataset_id in self.purchased

    def can_purchase(self, listing: DatasetListing) -> bool:
        return self.wallet is not None and not self.has_purchased(listing.id)

    async def load_purchases(self, listings: Iterable[DatasetListing]) -> Set[str]:
        """Seed the purchased set from the registry's on-chain purchase records.

        Listings the registry cannot answer for are left as they are.
        """
        if self.wallet is None:
            return self.purchased

        for listing in listings:
            if listing.id in self.purchased:
                continue
            try:
                owned = await asyncio.to_thread(
                    self.registry.has_purchased, self.wallet.address, listing.id
                )
            except ContractError as e:
                logger.error(f"Could not check purchase of {listing.id}: {e}")
                continue
            if owned:
                self.purchased.add(listing.id)
        return self.purchased

    async def buy(self, listing: DatasetListing, currency: Currency = Currency.OYD) -> PurchaseResult:
        """Pay for a listing and grant access once the payment confirms."""
        if self.wallet is None:
            return PurchaseResult(success=False, error="Please connect your wallet first")
        if self.has_purchased(listing.id):
            return PurchaseResult(success=False, error="You already own this dataset")

        try:
            currency = Currency(currency)
        except ValueError:
            return PurchaseResult(success=False, error=f"Unknown currency: {currency}")

        price = listing.price_in(currency)
        if price is None:
            return PurchaseResult(
                success=False,
                error=f"{listing.name} is not sold in {currency.value}"
            )

        logger.info(f"Buying {listing.id} for {price}")
        try:
            tx_hash = await asyncio.to_thread(self.registry.buy_dataset, listing.id, price)
            await self.monitor.wait_for_confirmation(tx_hash, PaymentError)
        except ContractError as e:
            logger.error(f"Purchase of {listing.id} failed: {e}")
            return PurchaseResult(success=False, error=f"Purchase failed: {e}")

        # Paid on chain, so the listing counts as owned even if the grant fails
        self.purchased.add(listing.id)

        try:
            await self.access.grant_access(listing.id, listing.cid, self.wallet.address, tx_hash)
        except AccessGrantError as e:
            logger.error(f"Access grant for {listing.id} failed after payment {tx_hash}: {e}")
            return PurchaseResult(
                success=False,
                tx_hash=tx_hash,
                error=f"Payment confirmed but access could not be granted: {e}"
            )

        if self.notifier:
            self.notifier.show(f"Successfully purchased {listing.name}!")
        logger.info(f"Purchased {listing.id} in {tx_hash}")
        return PurchaseResult(success=True, tx_hash=tx_hash)

    async def request_dataset(
        self,
        listing: DatasetListing,
        requester_address: Optional[str] = None
    ) -> PurchaseResult:
        """Ask the publisher for a dataset by creating a pending purchase request."""
        requester_address = requester_address or (self.wallet.address if self.wallet else None)
        if not requester_address:
            return PurchaseResult(success=False, error="Please connect your wallet first")
        if self.requests is None:
            return PurchaseResult(success=False, error="Requests are not available")

        oyd_price = listing.price_in(Currency.OYD)
        try:
            request = await self.requests.create_request({
                'datasetId': listing.id,
                'datasetName': listing.name,
                'datasetDescription': listing.description,
                'cid': listing.cid,
                'requesterAddress': requester_address,
                'uploaderAddress': listing.publisher_address,
                'category': listing.category.value,
                'size': listing.size,
                'oydCost': str(oyd_price.amount) if oyd_price else None,
            })
        except DataRequestError as e:
            logger.error(f"Request for {listing.id} failed: {e}")
            return PurchaseResult(success=False, error=f"Request failed: {e}")

        if self.notifier:
            self.notifier.show(f"Request sent for {listing.name}")
        return PurchaseResult(success=True, request=request)

    def _fetch_plaintext(self, listing: DatasetListing) -> bytes:
        address = self.wallet.address
        message = self.storage.get_auth_message(address)
        signature = self.wallet.sign_message(message)
        key = self.storage.fetch_encryption_key(listing.cid, address, signature)
        content = self.storage.download(listing.cid)
        try:
            return Fernet(key).decrypt(content)
        except (InvalidToken, ValueError) as e:
            raise DecryptionError(f"Could not decrypt {listing.cid}") from e

    async def preview(self, listing: DatasetListing) -> PreviewResult:
        """Decrypt a listing's content into a temporary file. Purchase state is untouched."""
        if self.wallet is None:
            return PreviewResult(error="Please connect your wallet first")
        if self.storage is None:
            return PreviewResult(error="Preview is not available")

        try:
            plaintext = await asyncio.to_thread(self._fetch_plaintext, listing)
        except WalletError as e:
            logger.error(f"Preview of {listing.id}: signing failed: {e}")
            return PreviewResult(error=f"Signing failed: {e}")
        except DecryptionError as e:
            logger.error(f"Preview of {listing.id}: decryption failed: {e}")
            return PreviewResult(error=f"Decryption failed: {e}")
        except StorageError as e:
            logger.error(f"Preview of {listing.id}: download failed: {e}")
            return PreviewResult(error=f"Download failed: {e}")

        fd, path = tempfile.mkstemp(prefix=f"{listing.id}-", suffix='.dat')
        os.close(fd)
        try:
            async with aiofiles.open(path, 'wb') as f:
                await f.write(plaintext)
        except OSError as e:
            logger.error(f"Preview of {listing.id}: could not write {path}: {e}")
            os.remove(path)
            return PreviewResult(error=f"Could not save preview: {e}")

        logger.info(f"Decrypted preview of {listing.id} at {path}")
        return PreviewResult(preview=DecryptedPreview(
            dataset_id=listing.id,
            cid=listing.cid,
            path=path,
            size_bytes=len(plaintext),
        ))

__all__ = [
    'PurchasePipeline', 'PurchaseResult', 'PreviewResult', 'DecryptedPreview',
    'AccessGrantManager', 'AccessGrantError',
]
