"""Shared fixtures: in-memory stand-ins for the database, storage, chain and wallet."""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from cryptography.fernet import Fernet

from contract import ContractError, PaymentError, RegistrationError, WalletError
from datasets import DatasetListing, Price, Currency
from storage import DecryptionError, StoredContent, UploadError

WALLET_ADDRESS = "0x" + "ab" * 20
PUBLISHER_ADDRESS = "0x" + "cd" * 20

class FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

class FakeConnection:
    """Connection whose query methods are AsyncMocks tests can program."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")

    def transaction(self):
        return FakeTransaction()

class FakePool:
    def __init__(self, conn=None):
        self.conn = conn or FakeConnection()
        self.acquired = 0

    @asynccontextmanager
    async def acquire(self):
        self.acquired += 1
        yield self.conn

class RequestStoreConnection(FakeConnection):
    """Keeps data_requests rows in a dict and answers the gateway's statements."""

    def __init__(self):
        super().__init__()
        self.rows = {}
        self._tick = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.fetch.side_effect = self._fetch
        self.fetchrow.side_effect = self._fetchrow
        self.fetchval.side_effect = self._fetchval

    def _now(self):
        self._tick += timedelta(seconds=1)
        return self._tick

    async def _fetch(self, query, uploader_address):
        rows = [r for r in self.rows.values() if r['uploader_address'] == uploader_address]
        return sorted(rows, key=lambda r: r['requested_at'], reverse=True)

    async def _fetchrow(self, query, *args):
        if 'INSERT INTO data_requests' in query:
            (request_id, dataset_id, dataset_name, dataset_description, cid,
             requester, uploader, category, size, unit, amount, status) = args
            if request_id in self.rows:
                raise AssertionError(f"duplicate id {request_id}")
            now = self._now()
            self.rows[request_id] = {
                'id': request_id,
                'dataset_id': dataset_id,
                'dataset_name': dataset_name,
                'dataset_description': dataset_description,
                'cid': cid,
                'requester_address': requester,
                'uploader_address': uploader,
                'category': category,
                'size': size,
                'price_unit': unit,
                'price_amount': amount,
                'status': status,
                'requested_at': now,
                'created_at': now,
                'updated_at': None,
            }
            return dict(self.rows[request_id])

        if 'UPDATE data_requests' in query:
            request_id, status, allowed = args
            row = self.rows.get(request_id)
            if row is None or row['status'] not in allowed:
                return None
            row['status'] = status
            row['updated_at'] = self._now()
            return dict(row)

        raise AssertionError(f"unexpected query: {query}")

    async def _fetchval(self, query, request_id):
        row = self.rows.get(request_id)
        return row['status'] if row else None

class FakeStorage:
    """Storage service holding Fernet-encrypted content keyed by identifier."""

    gateway_url = "https://gateway.test"

    def __init__(self):
        self.uploads = []
        self.fail_upload = False
        self.fail_key = False
        self.key = Fernet.generate_key()
        self.content = {}

    def upload_json(self, data, metadata, api_key=None):
        self.uploads.append({'data': data, 'metadata': metadata, 'api_key': api_key})
        if self.fail_upload:
            raise UploadError("service unavailable", 503)
        body = json.dumps({'data': data, 'metadata': metadata})
        return StoredContent(name=f"{metadata['name']}.json", cid=f"bafy{len(self.uploads)}", size=len(body))

    def put_encrypted(self, cid, plaintext: bytes):
        self.content[cid] = Fernet(self.key).encrypt(plaintext)

    def get_auth_message(self, address):
        return f"Please sign to prove you own {address}"

    def fetch_encryption_key(self, cid, address, signature):
        if self.fail_key:
            raise DecryptionError("access denied", 403)
        return self.key

    def download(self, cid):
        return self.content[cid]

class FakeRegistry:
    def __init__(self):
        self.registrations = []
        self.payments = []
        self.fail_register = 0
        self.fail_payment = False
        self.before_register = None
        self.owned = set()
        self.unreadable = set()

    def register_dataset(self, cid, metadata):
        if self.before_register:
            self.before_register()
        self.registrations.append((cid, metadata))
        if self.fail_register:
            self.fail_register -= 1
            raise RegistrationError("nonce too low")
        return f"0xregister{len(self.registrations)}"

    def buy_dataset(self, dataset_id, price):
        self.payments.append((dataset_id, price))
        if self.fail_payment:
            raise PaymentError("insufficient funds")
        return f"0xbuy{len(self.payments)}"

    def has_purchased(self, buyer, dataset_id):
        if dataset_id in self.unreadable:
            raise ContractError("execution reverted")
        return dataset_id in self.owned

class FakeMonitor:
    """Confirms transactions, optionally holding each one until release()."""

    def __init__(self, hold=False):
        self.waited = []
        self.fail = set()
        self._gate = asyncio.Event()
        if not hold:
            self._gate.set()

    def release(self):
        self._gate.set()

    async def wait_for_confirmation(self, tx_hash, error_cls=RegistrationError):
        self.waited.append(tx_hash)
        await self._gate.wait()
        if tx_hash in self.fail:
            raise error_cls(f"Transaction {tx_hash} reverted")
        return tx_hash

class FakeWallet:
    address = WALLET_ADDRESS

    def __init__(self, refuse=False):
        self.refuse = refuse
        self.signed = []

    def sign_message(self, message):
        if self.refuse:
            raise WalletError("User rejected the request")
        self.signed.append(message)
        return "0x" + "11" * 65

class FakeAccess:
    def __init__(self):
        self.grants = []

    async def grant_access(self, dataset_id, cid, buyer_address, tx_hash=None):
        self.grants.append((dataset_id, cid, buyer_address, tx_hash))

def make_listing(**overrides) -> DatasetListing:
    fields = {
        'id': 'acme-1700000000000',
        'name': 'Store Sales',
        'description': 'Daily sales by store',
        'category': 'Business',
        'company': 'Acme',
        'cid': 'bafy-listing',
        'size_bytes': 900 * 1024 * 1024,
        'publisher_address': PUBLISHER_ADDRESS,
        'price': Price(unit=Currency.OYD, amount=Decimal(900)),
        'list_prices': [Price(unit=Currency.ETH, amount=Decimal('0.1'))],
        'downloads': 3,
        'created_at': datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return DatasetListing(**fields)

@pytest.fixture
def pool():
    return FakePool()

@pytest.fixture
def request_store():
    return FakePool(RequestStoreConnection())

@pytest.fixture
def storage():
    return FakeStorage()

@pytest.fixture
def registry():
    return FakeRegistry()

@pytest.fixture
def monitor():
    return FakeMonitor()

@pytest.fixture
def wallet():
    return FakeWallet()

@pytest.fixture
def access():
    return FakeAccess()

@pytest.fixture
def listing():
    return make_listing()

@pytest.fixture
def listing_factory():
    return make_listing
