"""Wallet signer and dataset registry contract gateway.

The registry contract records uploaded datasets and takes payment for them.
Calls are synchronous web3 calls; async callers run them in a thread.
"""
import logging
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from config import get_wallet_private_key, settings_conf, WALLET_PRIVATE_KEY_ENV
from datasets.pricing import CURRENCY_CODES, Currency, Price, to_base_units
from .abi import DATASET_REGISTRY_ABI

logger = logging.getLogger(__name__)

class ContractError(Exception):
    """Base exception for contract gateway errors"""
    pass

class RegistrationError(ContractError):
    """Raised when a dataset registration cannot be submitted or fails on chain"""
    pass

class PaymentError(ContractError):
    """Raised when a purchase payment cannot be submitted or fails on chain"""
    pass

class WalletError(ContractError):
    """Raised when no wallet is available or it refuses to sign"""
    pass

class Wallet:
    """Signing identity backed by a local private key."""

    def __init__(self, private_key: Optional[str] = None):
        private_key = private_key or get_wallet_private_key()
        if not private_key:
            raise WalletError(f"No wallet connected ({WALLET_PRIVATE_KEY_ENV} not set)")
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise WalletError(f"Invalid wallet key: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign_message(self, message: str) -> str:
        """Sign a plain text message (EIP-191), returning the hex signature."""
        try:
            signed = self._account.sign_message(encode_defunct(text=message))
        except (ValueError, TypeError) as e:
            raise WalletError(f"Signing rejected: {e}") from e
        return Web3.to_hex(signed.signature)

    def sign_transaction(self, tx: Dict[str, Any]):
        return self._account.sign_transaction(tx)

class DatasetRegistry:
    """Gateway to the dataset registry contract."""

    def __init__(
        self,
        wallet: Wallet,
        web3: Optional[Web3] = None,
        contract_address: Optional[str] = None,
        chain_id: Optional[int] = None
    ):
        """Initialize the gateway.

        Args:
            wallet: Wallet that signs and pays for transactions
            web3: Optional Web3 instance, built from rpc_url if omitted
            contract_address: Registry address, from settings if omitted
            chain_id: Chain ID, from settings if omitted
        """
        self.wallet = wallet
        self.web3 = web3 or Web3(Web3.HTTPProvider(
            settings_conf['rpc_url'], request_kwargs={'timeout': 20}
        ))
        self.chain_id = chain_id or settings_conf['chain_id']
        self.contract = self.web3.eth.contract(
            address=Web3.to_checksum_address(contract_address or settings_conf['contract_address']),
            abi=DATASET_REGISTRY_ABI,
        )

    def _transact(self, function, error_cls, value: int = 0) -> str:
        """Build, sign and send a contract call, returning its transaction hash.

        Raises:
            error_cls: If the node rejects the transaction
        """
        try:
            tx = function.build_transaction({
                'from': self.wallet.address,
                'chainId': self.chain_id,
                'nonce': self.web3.eth.get_transaction_count(self.wallet.address),
                'value': value,
            })
            signed = self.wallet.sign_transaction(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError) as e:
            raise error_cls(f"Transaction rejected: {e}") from e
        return Web3.to_hex(tx_hash)

    def register_dataset(self, cid: str, metadata: Dict[str, Any]) -> str:
        """Submit a registration for stored content.

        Args:
            cid: Content identifier of the stored payload
            metadata: name, description, category and the ETH/USDC list prices

        Returns:
            Transaction hash of the accepted (unconfirmed) transaction

        Raises:
            RegistrationError: If the metadata is incomplete or the node rejects it
        """
        try:
            price_eth = to_base_units(metadata['price_eth'])
            price_usdc = to_base_units(metadata['price_usdc'])
            function = self.contract.functions.registerDataset(
                cid,
                metadata['name'],
                metadata['description'],
                price_eth,
                price_usdc,
                metadata['category'],
            )
        except (KeyError, ValueError) as e:
            raise RegistrationError(f"Invalid registration metadata: {e}") from e

        tx_hash = self._transact(function, RegistrationError)
        logger.info(f"Submitted registration of {cid} in {tx_hash}")
        return tx_hash

    def buy_dataset(self, dataset_id: str, price: Price) -> str:
        """Submit a payment for a dataset.

        ETH is sent as the transaction value; token currencies are settled by
        the contract from the buyer's allowance.

        Raises:
            PaymentError: If the node rejects the payment
        """
        try:
            value = to_base_units(price) if price.unit == Currency.ETH else 0
        except ValueError as e:
            raise PaymentError(str(e)) from e
        function = self.contract.functions.buyDataset(dataset_id, CURRENCY_CODES[price.unit])
        tx_hash = self._transact(function, PaymentError, value=value)
        logger.info(f"Submitted payment of {price} for {dataset_id} in {tx_hash}")
        return tx_hash

    def has_purchased(self, buyer: str, dataset_id: str) -> bool:
        try:
            return self.contract.functions.hasPurchased(
                Web3.to_checksum_address(buyer), dataset_id
            ).call()
        except (Web3Exception, ValueError) as e:
            raise ContractError(f"Failed to read purchase state: {e}") from e

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt of a mined transaction, or None while it is still pending."""
        try:
            receipt = self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return {'status': receipt['status'], 'blockNumber': receipt['blockNumber']}

    def block_number(self) -> int:
        return self.web3.eth.block_number

__all__ = [
    'Wallet', 'DatasetRegistry', 'DATASET_REGISTRY_ABI',
    'ContractError', 'RegistrationError', 'PaymentError', 'WalletError',
]
