from cryptosage.services.market_data.favorites import FAVORITES_KEY, FavoritesStore


async def test_toggle_twice_restores_original(db):
    store = FavoritesStore(db)
    await store.load()

    assert await store.toggle("btc") is True
    assert store.contains("BTC")
    assert await store.toggle("BTC") is False
    assert store.symbols == frozenset()


async def test_favorites_survive_restart(db):
    store = FavoritesStore(db)
    await store.load()
    await store.toggle("eth")
    await store.toggle("sol")

    restarted = FavoritesStore(db)
    assert await restarted.load() == frozenset({"ETH", "SOL"})


async def test_corrupt_favorites_start_empty(db):
    await db.put_blob(FAVORITES_KEY, "{not json")

    store = FavoritesStore(db)
    assert await store.load() == frozenset()
