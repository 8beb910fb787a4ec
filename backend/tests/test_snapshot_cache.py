from datetime import timedelta

from cryptosage.schemas.market import CoinRecord, GlobalStats
from cryptosage.services.market_data.snapshot_cache import (
    COIN_LIST_KEY,
    GLOBAL_STATS_KEY,
    MarketDataCache,
)


async def test_absent_slot_reads_as_none(db):
    cache = MarketDataCache(db)

    assert await cache.load_coins() is None
    assert await cache.global_stats.load_entry() is None


async def test_saved_coins_are_reloaded_by_a_new_cache(db):
    coins = [
        CoinRecord(symbol="BTC", name="Bitcoin", price=27000, sparkline_7d=[1.0, 2.0]),
        CoinRecord(symbol="ETH", name="Ethereum", price=1800),
    ]
    assert await MarketDataCache(db).save_coins(coins) is True

    reloaded = await MarketDataCache(db).load_coins()

    assert reloaded == coins


async def test_save_overwrites_previous_value(db):
    cache = MarketDataCache(db)
    await cache.save_global_stats(GlobalStats(total_market_cap={"usd": 1.0}, source="coingecko"))
    await cache.save_global_stats(GlobalStats(total_market_cap={"usd": 2.0}, source="coinpaprika"))

    stats = await cache.load_global_stats()

    assert stats.source == "coinpaprika"
    assert stats.total_market_cap == {"usd": 2.0}


async def test_slots_are_independent(db):
    cache = MarketDataCache(db)
    await cache.save_global_stats(GlobalStats(source="coingecko"))

    assert await cache.load_coins() is None
    assert (await cache.load_global_stats()).source == "coingecko"


async def test_corrupt_blob_reads_as_absent(db):
    await db.put_blob(COIN_LIST_KEY, "[{\"symbol\": \"BTC\"")
    await db.put_blob(GLOBAL_STATS_KEY, "{\"total_market_cap\": \"lots\"}")
    cache = MarketDataCache(db)

    assert await cache.load_coins() is None
    assert await cache.load_global_stats() is None


async def test_entry_records_save_time(db):
    cache = MarketDataCache(db)
    await cache.save_coins([CoinRecord(symbol="BTC", name="Bitcoin", price=1)])

    entry = await cache.coins.load_entry()

    assert entry.saved_at.tzinfo is not None
    assert 0 <= entry.age_seconds() < 60
    assert entry.age_seconds(now=entry.saved_at + timedelta(minutes=5)) == 300
