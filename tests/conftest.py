import pytest
import pytest_asyncio
from typing import AsyncGenerator

from sleep_log.core.config import Config
from sleep_log.core.session_service import SessionService
from sleep_log.storage.database import Database, init_database

from fixtures import UTC


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
    )


@pytest_asyncio.fixture
async def db(config: Config) -> AsyncGenerator[Database, None]:
    database = await init_database(config.db_path)
    yield database
    await database.close()


@pytest.fixture
def service(config: Config, db: Database) -> SessionService:
    return SessionService(config, db, tz=UTC)
