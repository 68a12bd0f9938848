"""Tests for the wallet signer and the registry contract gateway."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3.exceptions import TransactionNotFound, Web3Exception

from config import WALLET_PRIVATE_KEY_ENV
from contract import DatasetRegistry, PaymentError, RegistrationError, Wallet, WalletError
from datasets import Currency, Price
from datasets.pricing import CURRENCY_CODES

PRIVATE_KEY = "0x" + "4c" * 32
REGISTRY_ADDRESS = "0x" + "11" * 20
CHAIN_ID = 84532

def unsigned_tx(value=0):
    return {
        'to': REGISTRY_ADDRESS,
        'value': value,
        'gas': 200000,
        'gasPrice': 1000000000,
        'nonce': 7,
        'chainId': CHAIN_ID,
        'data': '0x',
    }

@pytest.fixture
def wallet():
    return Wallet(PRIVATE_KEY)

@pytest.fixture
def web3():
    web3 = MagicMock()
    web3.eth.get_transaction_count.return_value = 7
    web3.eth.send_raw_transaction.return_value = b'\x12' * 32
    web3.eth.block_number = 120
    return web3

@pytest.fixture
def contract(web3):
    contract = MagicMock()
    web3.eth.contract.return_value = contract
    contract.functions.registerDataset.return_value.build_transaction.return_value = unsigned_tx()
    contract.functions.buyDataset.return_value.build_transaction.side_effect = (
        lambda params: unsigned_tx(params['value'])
    )
    return contract

@pytest.fixture
def registry(wallet, web3, contract):
    return DatasetRegistry(wallet, web3=web3, contract_address=REGISTRY_ADDRESS, chain_id=CHAIN_ID)

def test_wallet_address_matches_key(wallet):
    assert wallet.address == Account.from_key(PRIVATE_KEY).address

def test_wallet_signature_recovers_to_address(wallet):
    signature = wallet.sign_message("Please sign to prove you own it")

    assert signature.startswith("0x")
    recovered = Account.recover_message(
        encode_defunct(text="Please sign to prove you own it"), signature=signature
    )
    assert recovered == wallet.address

def test_wallet_requires_a_key(monkeypatch):
    monkeypatch.delenv(WALLET_PRIVATE_KEY_ENV, raising=False)

    with pytest.raises(WalletError):
        Wallet("")

def test_wallet_key_from_environment(monkeypatch):
    monkeypatch.setenv(WALLET_PRIVATE_KEY_ENV, PRIVATE_KEY)

    assert Wallet().address == Account.from_key(PRIVATE_KEY).address

def test_wallet_rejects_malformed_key():
    with pytest.raises(WalletError):
        Wallet("0x1234")

def test_register_dataset_sends_prices_in_base_units(registry, web3, contract):
    tx_hash = registry.register_dataset("bafy1", {
        'name': "Test",
        'description': "A test dataset",
        'category': "Finance",
        'price_eth': Price(unit=Currency.ETH, amount=Decimal("0.1")),
        'price_usdc': Price(unit=Currency.USDC, amount=Decimal("100")),
    })

    contract.functions.registerDataset.assert_called_once_with(
        "bafy1", "Test", "A test dataset", 10 ** 17, 100 * 10 ** 6, "Finance"
    )
    params = contract.functions.registerDataset.return_value.build_transaction.call_args.args[0]
    assert params['from'] == registry.wallet.address
    assert params['chainId'] == CHAIN_ID
    assert params['nonce'] == 7
    assert params['value'] == 0
    assert web3.eth.send_raw_transaction.called
    assert tx_hash == "0x" + "12" * 32

def test_register_dataset_with_incomplete_metadata(registry, web3):
    with pytest.raises(RegistrationError):
        registry.register_dataset("bafy1", {'name': "Test"})

    assert not web3.eth.send_raw_transaction.called

def test_rejected_registration_raises_registration_error(registry, web3):
    web3.eth.send_raw_transaction.side_effect = Web3Exception("nonce too low")

    with pytest.raises(RegistrationError, match="nonce too low"):
        registry.register_dataset("bafy1", {
            'name': "Test",
            'description': "A test dataset",
            'category': "Finance",
            'price_eth': Price(unit=Currency.ETH, amount=Decimal("0.1")),
            'price_usdc': Price(unit=Currency.USDC, amount=Decimal("100")),
        })

def test_buy_with_eth_sends_value(registry, contract):
    registry.buy_dataset("acme-1", Price(unit=Currency.ETH, amount=Decimal("0.1")))

    contract.functions.buyDataset.assert_called_once_with("acme-1", CURRENCY_CODES[Currency.ETH])
    params = contract.functions.buyDataset.return_value.build_transaction.call_args.args[0]
    assert params['value'] == 10 ** 17

@pytest.mark.parametrize("unit", [Currency.USDC, Currency.OYD])
def test_buy_with_token_sends_no_value(registry, contract, unit):
    registry.buy_dataset("acme-1", Price(unit=unit, amount=Decimal("900")))

    contract.functions.buyDataset.assert_called_once_with("acme-1", CURRENCY_CODES[unit])
    params = contract.functions.buyDataset.return_value.build_transaction.call_args.args[0]
    assert params['value'] == 0

def test_rejected_payment_raises_payment_error(registry, contract):
    contract.functions.buyDataset.return_value.build_transaction.side_effect = ValueError(
        "insufficient funds for gas * price + value"
    )

    with pytest.raises(PaymentError, match="insufficient funds"):
        registry.buy_dataset("acme-1", Price(unit=Currency.ETH, amount=Decimal("0.1")))

def test_has_purchased_reads_contract(registry, contract, wallet):
    contract.functions.hasPurchased.return_value.call.return_value = True

    assert registry.has_purchased(wallet.address, "acme-1")
    contract.functions.hasPurchased.assert_called_once_with(wallet.address, "acme-1")

def test_pending_receipt_is_none(registry, web3):
    web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not mined yet")

    assert registry.get_receipt("0xabc") is None

def test_mined_receipt(registry, web3):
    web3.eth.get_transaction_receipt.return_value = {'status': 1, 'blockNumber': 118, 'gasUsed': 21000}

    assert registry.get_receipt("0xabc") == {'status': 1, 'blockNumber': 118}
    assert registry.block_number() == 120
