"""Monitor module for tracking submitted contract transactions.

This module polls the chain for a transaction's receipt and reports it as
confirmed once it is buried under enough blocks, or as failed when the
receipt says the transaction reverted.
"""

import asyncio
import logging
from typing import Optional, Type

from pydantic import BaseModel

from config import settings_conf
from contract import ContractError, RegistrationError

# Configure logging
logger = logging.getLogger(__name__)

class Confirmation(BaseModel):
    """A transaction observed on chain with enough confirmations."""
    tx_hash: str
    block_number: int
    confirmations: int

class ConfirmationMonitor:
    """Wait for contract transactions to be confirmed."""

    def __init__(
        self,
        registry,
        min_confirmations: Optional[int] = None,
        poll_interval: Optional[float] = None
    ):
        """Initialize the confirmation monitor.

        Args:
            registry: Contract gateway exposing get_receipt() and block_number()
            min_confirmations: Blocks (inclusion block counted) before a
                transaction is considered confirmed
            poll_interval: Seconds between receipt checks
        """
        self.registry = registry
        self.min_confirmations = min_confirmations or settings_conf['min_confirmations']
        self.poll_interval = poll_interval or settings_conf['confirmation_poll_interval']
        self.running = True
        logger.info(f"Using minimum confirmations: {self.min_confirmations}")

    def stop(self) -> None:
        """Stop every wait in progress; they fail with their error class."""
        self.running = False

    async def check(self, tx_hash: str) -> Optional[Confirmation]:
        """Check a transaction once.

        Returns:
            The confirmation, or None while pending or under-confirmed

        Raises:
            ContractError: If the receipt shows the transaction reverted
        """
        receipt = await asyncio.to_thread(self.registry.get_receipt, tx_hash)
        if receipt is None:
            return None
        if receipt['status'] == 0:
            raise ContractError(f"Transaction {tx_hash} reverted")

        head = await asyncio.to_thread(self.registry.block_number)
        confirmations = head - receipt['blockNumber'] + 1
        if confirmations < self.min_confirmations:
            return None

        return Confirmation(
            tx_hash=tx_hash,
            block_number=receipt['blockNumber'],
            confirmations=confirmations
        )

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        error_cls: Type[ContractError] = RegistrationError
    ) -> Confirmation:
        """Poll until the transaction is confirmed.

        There is no timeout: the wait lasts until the chain gives an answer
        or the monitor is stopped.

        Args:
            tx_hash: Hash of the submitted transaction
            error_cls: Error raised on failure, so callers see their own taxonomy

        Raises:
            error_cls: If the transaction reverts, a poll fails, or the monitor stops
        """
        logger.info(f"Waiting for confirmation of {tx_hash}")
        while self.running:
            try:
                confirmation = await self.check(tx_hash)
            except Exception as e:
                logger.error(f"Confirmation of {tx_hash} failed: {e}")
                raise error_cls(str(e)) from e

            if confirmation:
                logger.info(
                    f"Transaction {tx_hash} confirmed in block {confirmation.block_number} "
                    f"({confirmation.confirmations} confirmations)"
                )
                return confirmation

            await asyncio.sleep(self.poll_interval)

        raise error_cls(f"Stopped waiting for {tx_hash}")

__all__ = ['ConfirmationMonitor', 'Confirmation']
