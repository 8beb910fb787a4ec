import asyncio

from cryptosage.schemas.market import OrderBookLevel, OrderBookSnapshot
from cryptosage.services.base import ChainExhaustedError, ServerError
from cryptosage.services.cache.redis_client import PriceCache
from cryptosage.services.market_data.order_book_poller import OrderBookPoller


def snapshot(symbol="BTC", best_bid=99.0):
    return OrderBookSnapshot(
        symbol=symbol,
        bids=[OrderBookLevel(price=best_bid, quantity=1.0)],
        asks=[OrderBookLevel(price=best_bid + 2, quantity=1.0)],
        source="coinbase",
    )


class BookFetch:
    def __init__(self):
        self.fail = False
        self.symbols = []
        self.best_bid = 99.0

    async def __call__(self, symbol):
        self.symbols.append(symbol)
        if self.fail:
            raise ChainExhaustedError("order_book", [ServerError("coinbase", "HTTP 500")])
        return snapshot(symbol, self.best_bid)


async def never(delay):
    await asyncio.Event().wait()


async def test_success_replaces_snapshot():
    fetch = BookFetch()
    poller = OrderBookPoller(fetch)
    poller.symbol = "BTC"

    await poller.poll_once()
    fetch.best_bid = 98.0
    await poller.poll_once()

    assert poller.snapshot.bids[0].price == 98.0
    assert len(poller.snapshot.bids) == 1


async def test_failure_keeps_last_snapshot_and_sets_error():
    fetch = BookFetch()
    poller = OrderBookPoller(fetch)
    poller.symbol = "BTC"
    await poller.poll_once()

    fetch.fail = True
    assert await poller.poll_once() is False

    assert poller.snapshot.bids[0].price == 99.0
    assert poller.last_error

    fetch.fail = False
    await poller.poll_once()
    assert poller.last_error is None


async def test_symbol_change_discards_previous_snapshot():
    fetch = BookFetch()
    cache = PriceCache()
    poller = OrderBookPoller(fetch, price_cache=cache, sleep=never)

    await poller.start("BTC")
    await asyncio.sleep(0)
    assert poller.snapshot.symbol == "BTC"

    fetch.fail = True
    await poller.start("ETH")
    await asyncio.sleep(0)

    assert poller.symbol == "ETH"
    assert poller.snapshot is None
    assert await cache.get_order_book("BTC") is None
    await poller.stop()


async def test_restart_same_symbol_keeps_snapshot():
    fetch = BookFetch()
    poller = OrderBookPoller(fetch, sleep=never)

    await poller.start("BTC")
    await asyncio.sleep(0)
    fetch.fail = True
    await poller.start("btc")
    await asyncio.sleep(0)

    assert poller.snapshot is not None
    await poller.stop()
    assert not poller.running


async def test_overlapping_starts_leave_one_loop_that_stop_cancels():
    fetch = BookFetch()

    async def tick(delay):
        await asyncio.sleep(0)

    poller = OrderBookPoller(fetch, sleep=tick)

    await poller.start("BTC")
    await asyncio.gather(poller.start("ETH"), poller.start("SOL"))
    await poller.stop()
    polls_at_stop = len(fetch.symbols)
    for _ in range(20):
        await asyncio.sleep(0)

    assert len(fetch.symbols) == polls_at_stop
    assert not poller.running
    assert poller.symbol == "SOL"
