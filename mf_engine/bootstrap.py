"""
Wiring
Build a ready-to-use orchestrator from settings
"""

import logging
from typing import Optional

from mf_engine.config import Settings, settings as default_settings
from mf_engine.core.config import EngineConfig
from mf_engine.core.logging import setup_logging
from mf_engine.domain.services.portfolio_orchestrator import PortfolioOrchestrator
from mf_engine.infrastructure.cache.memory_cache import InMemoryCache
from mf_engine.infrastructure.cache.redis_cache import RedisCache
from mf_engine.infrastructure.config_store import InMemoryFundReference, YamlPortfolioConfigStore
from mf_engine.infrastructure.repositories.memory_ledger_store import InMemoryLedgerStore

logger = logging.getLogger(__name__)


def build_ledger_store(settings: Settings):
    backend = settings.LEDGER_BACKEND.lower()
    if backend == "memory":
        return InMemoryLedgerStore()
    if backend == "sql":
        from mf_engine.infrastructure.db.database import (
            create_db_engine,
            create_session_factory,
            init_db,
        )
        from mf_engine.infrastructure.db.repositories.ledger_repository import SqlLedgerStore

        engine = create_db_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
        init_db(engine)
        return SqlLedgerStore(create_session_factory(engine))
    raise ValueError(f"Unknown LEDGER_BACKEND: {settings.LEDGER_BACKEND}")


def build_cache(settings: Settings):
    if settings.REDIS_ENABLED:
        return RedisCache(settings.REDIS_URL, prefix=settings.REDIS_PREFIX)
    return InMemoryCache()


def build_orchestrator(
    settings: Optional[Settings] = None,
    configure_logging: bool = True,
) -> PortfolioOrchestrator:
    """
    Assemble ledger store, config store, fund reference and cache

    Args:
        settings: Settings to use (module-level settings by default)
        configure_logging: Apply LOG_LEVEL via setup_logging

    Returns:
        PortfolioOrchestrator
    """
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings.LOG_LEVEL)

    engine_config = EngineConfig.load(settings)
    config_store = YamlPortfolioConfigStore(
        settings.PORTFOLIO_CONFIG_FILE,
        default_threshold_pct=engine_config.default_rebalance_threshold_pct,
    )

    orchestrator = PortfolioOrchestrator(
        ledger_store=build_ledger_store(settings),
        config_store=config_store,
        engine_config=engine_config,
        fund_reference=InMemoryFundReference(config_store.funds()),
        cache=build_cache(settings),
    )
    logger.info(
        f"🚀 Portfolio engine ready (env={settings.APP_ENV}, ledger={settings.LEDGER_BACKEND}, "
        f"redis={'on' if settings.REDIS_ENABLED else 'off'})"
    )
    return orchestrator
