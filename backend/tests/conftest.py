import pytest

from cryptosage.core.config import Settings
from cryptosage.db.database import Database


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        sqlite_path=str(tmp_path / "test.db"),
        enable_auto_refresh=False,
        market_retry_delay_seconds=0.0,
        request_timeout_seconds=2.0,
        price_timeout_seconds=2.0,
    )


@pytest.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.init()
    yield database
    await database.close()
