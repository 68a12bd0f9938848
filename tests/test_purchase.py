"""Tests for buying, requesting and previewing datasets."""

import os
import tempfile
from decimal import Decimal

import aiofiles
import pytest

from conftest import FakeWallet
from dashboard import Notifier
from database import DatabaseConnectionError
from data_requests import DataRequestManager, RequestStatus
from datasets import Currency, Price
from purchase import AccessGrantError, AccessGrantManager, PurchasePipeline

@pytest.fixture
def notifier():
    return Notifier(dismiss_after=5)

@pytest.fixture
def pipeline(registry, monitor, access, wallet, storage, request_store, notifier):
    return PurchasePipeline(
        registry, monitor, access,
        wallet=wallet,
        storage=storage,
        requests=DataRequestManager(request_store),
        notifier=notifier,
    )

@pytest.mark.asyncio
async def test_successful_purchase_grants_access_and_marks_purchased(
    pipeline, registry, access, listing, notifier, wallet
):
    assert pipeline.can_purchase(listing)

    result = await pipeline.buy(listing)

    assert result.success
    assert result.tx_hash == "0xbuy1"
    assert registry.payments == [(listing.id, listing.price)]
    assert access.grants == [(listing.id, listing.cid, wallet.address, "0xbuy1")]
    assert pipeline.has_purchased(listing.id)
    assert not pipeline.can_purchase(listing)
    assert "Store Sales" in notifier.current

@pytest.mark.asyncio
async def test_purchased_listing_cannot_be_bought_again(pipeline, registry, listing):
    await pipeline.buy(listing)

    result = await pipeline.buy(listing)

    assert not result.success
    assert len(registry.payments) == 1

@pytest.mark.asyncio
async def test_pay_with_declared_list_price(pipeline, registry, listing):
    result = await pipeline.buy(listing, Currency.ETH)

    assert result.success
    assert registry.payments[0][1] == Price(unit=Currency.ETH, amount=Decimal("0.1"))

@pytest.mark.asyncio
async def test_currency_without_price(pipeline, registry, listing):
    result = await pipeline.buy(listing, Currency.USDC)

    assert not result.success
    assert "USDC" in result.error
    assert registry.payments == []

@pytest.mark.asyncio
async def test_rejected_payment_leaves_listing_unpurchased(pipeline, registry, access, listing):
    registry.fail_payment = True

    result = await pipeline.buy(listing)

    assert not result.success
    assert "insufficient funds" in result.error
    assert access.grants == []
    assert not pipeline.has_purchased(listing.id)

@pytest.mark.asyncio
async def test_reverted_payment_leaves_listing_unpurchased(pipeline, monitor, access, listing):
    monitor.fail.add("0xbuy1")

    result = await pipeline.buy(listing)

    assert not result.success
    assert access.grants == []
    assert pipeline.can_purchase(listing)

@pytest.mark.asyncio
async def test_failed_grant_after_payment(registry, monitor, wallet, listing):
    class FailingAccess:
        async def grant_access(self, *args):
            raise AccessGrantError("store down")

    pipeline = PurchasePipeline(registry, monitor, FailingAccess(), wallet=wallet)

    result = await pipeline.buy(listing)

    assert not result.success
    assert result.tx_hash == "0xbuy1"
    assert pipeline.has_purchased(listing.id)

@pytest.mark.asyncio
async def test_buy_requires_wallet(registry, monitor, access, listing):
    pipeline = PurchasePipeline(registry, monitor, access)

    result = await pipeline.buy(listing)

    assert not result.success
    assert not pipeline.can_purchase(listing)
    assert registry.payments == []

@pytest.mark.asyncio
async def test_request_dataset_creates_pending_request(pipeline, listing, wallet):
    result = await pipeline.request_dataset(listing)

    assert result.success
    assert result.request.status == RequestStatus.PENDING
    assert result.request.requester_address == wallet.address
    assert result.request.uploader_address == listing.publisher_address
    assert result.request.price == listing.price
    assert result.request.size == "900 MB"

@pytest.mark.asyncio
async def test_preview_decrypts_to_temporary_file(pipeline, storage, listing, wallet):
    storage.put_encrypted(listing.cid, b'{"rows": 3}')

    result = await pipeline.preview(listing)

    assert result.error is None
    preview = result.preview
    with open(preview.path, 'rb') as f:
        assert f.read() == b'{"rows": 3}'
    assert preview.size_bytes == len(b'{"rows": 3}')
    assert wallet.signed == [f"Please sign to prove you own {wallet.address}"]

    preview.release()
    preview.release()
    assert not os.path.exists(preview.path)

@pytest.mark.asyncio
async def test_preview_does_not_touch_purchase_state(pipeline, storage, listing):
    storage.put_encrypted(listing.cid, b"data")

    await pipeline.preview(listing)

    assert not pipeline.has_purchased(listing.id)

@pytest.mark.asyncio
async def test_preview_errors_are_scoped(registry, monitor, access, storage, listing):
    storage.put_encrypted(listing.cid, b"data")

    no_wallet = await PurchasePipeline(registry, monitor, access, storage=storage).preview(listing)
    refused = await PurchasePipeline(
        registry, monitor, access, wallet=FakeWallet(refuse=True), storage=storage
    ).preview(listing)
    storage.fail_key = True
    no_key = await PurchasePipeline(
        registry, monitor, access, wallet=FakeWallet(), storage=storage
    ).preview(listing)

    assert "wallet" in no_wallet.error
    assert refused.error.startswith("Signing failed")
    assert no_key.error.startswith("Decryption failed")

@pytest.mark.asyncio
async def test_preview_with_wrong_key(pipeline, storage, listing):
    storage.put_encrypted(listing.cid, b"data")
    storage.key = b"not-a-fernet-key"

    result = await pipeline.preview(listing)

    assert result.preview is None
    assert result.error.startswith("Decryption failed")

@pytest.mark.asyncio
async def test_access_grants_are_persisted(pool):
    manager = AccessGrantManager(pool)
    pool.conn.fetchval.return_value = True

    await manager.grant_access("acme-1", "bafy1", "0xABC", "0xbuy1")
    allowed = await manager.has_access("acme-1", "0xAbc")

    query, *args = pool.conn.execute.call_args.args
    assert "ON CONFLICT (dataset_id, buyer_address) DO NOTHING" in query
    assert args == ["acme-1", "0xabc", "bafy1", "0xbuy1"]
    assert pool.conn.fetchval.call_args.args[1:] == ("acme-1", "0xabc")
    assert allowed

@pytest.mark.asyncio
async def test_unknown_currency_is_a_failed_result(pipeline, registry, listing):
    result = await pipeline.buy(listing, "DOGE")

    assert not result.success
    assert "DOGE" in result.error
    assert registry.payments == []

@pytest.mark.asyncio
async def test_database_outage_after_payment_is_reported(registry, monitor, wallet, listing, monkeypatch):
    async def unavailable():
        raise DatabaseConnectionError("Failed to connect to database: connection refused")

    monkeypatch.setattr("purchase.access.get_pool", unavailable)
    pipeline = PurchasePipeline(registry, monitor, AccessGrantManager(), wallet=wallet)

    result = await pipeline.buy(listing)

    assert not result.success
    assert result.tx_hash == "0xbuy1"
    assert "access could not be granted" in result.error
    assert pipeline.has_purchased(listing.id)

@pytest.mark.asyncio
async def test_access_grant_outage_raises_grant_error(monkeypatch):
    async def unavailable():
        raise DatabaseConnectionError("connection refused")

    monkeypatch.setattr("purchase.access.get_pool", unavailable)

    with pytest.raises(AccessGrantError):
        await AccessGrantManager().has_access("acme-1", "0xabc")

@pytest.mark.asyncio
async def test_load_purchases_from_registry(pipeline, registry, listing_factory):
    owned = listing_factory(id="owned")
    unknown = listing_factory(id="unknown")
    unreadable = listing_factory(id="unreadable")
    registry.owned.add("owned")
    registry.unreadable.add("unreadable")

    purchased = await pipeline.load_purchases([owned, unknown, unreadable])

    assert purchased == {"owned"}
    assert not pipeline.can_purchase(owned)
    assert pipeline.can_purchase(unknown)
    assert pipeline.can_purchase(unreadable)

@pytest.mark.asyncio
async def test_load_purchases_needs_wallet(registry, monitor, access, listing):
    registry.owned.add(listing.id)
    pipeline = PurchasePipeline(registry, monitor, access)

    assert await pipeline.load_purchases([listing]) == set()

@pytest.mark.asyncio
async def test_failed_preview_write_leaves_no_file(pipeline, storage, listing, monkeypatch):
    storage.put_encrypted(listing.cid, b"data")
    created = []
    real_mkstemp = tempfile.mkstemp

    def mkstemp(*args, **kwargs):
        fd, path = real_mkstemp(*args, **kwargs)
        created.append(path)
        return fd, path

    def failing_open(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(tempfile, "mkstemp", mkstemp)
    monkeypatch.setattr(aiofiles, "open", failing_open)

    result = await pipeline.preview(listing)

    assert result.preview is None
    assert "No space left on device" in result.error
    assert not os.path.exists(created[0])
