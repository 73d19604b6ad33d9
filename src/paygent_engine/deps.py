"""Dependency injection singletons for Paygent-Engine."""

from paygent_engine.agents.service import AgentService
from paygent_engine.analytics.service import ProfitabilityService
from paygent_engine.catalog.service import CatalogService
from paygent_engine.common.clock import Clock, SystemClock
from paygent_engine.common.config import get_settings
from paygent_engine.common.database import DatabaseManager
from paygent_engine.credits.service import CreditLedger
from paygent_engine.customers.service import CustomerService
from paygent_engine.fees.service import FeeScheduler
from paygent_engine.metering.service import MeteringService

_db: DatabaseManager | None = None
_clock: Clock | None = None
_catalog: CatalogService | None = None
_agents: AgentService | None = None
_fees: FeeScheduler | None = None
_customers: CustomerService | None = None
_credits: CreditLedger | None = None
_metering: MeteringService | None = None
_profitability: ProfitabilityService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_clock() -> Clock:
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def set_clock(clock: Clock) -> None:
    """Swap the time source; services built afterwards pick it up."""
    global _clock, _fees, _customers, _credits, _metering
    _clock = clock
    _fees = None
    _customers = None
    _credits = None
    _metering = None


def get_catalog_service() -> CatalogService:
    global _catalog
    if _catalog is None:
        _catalog = CatalogService(get_settings())
    return _catalog


def get_agent_service() -> AgentService:
    global _agents
    if _agents is None:
        _agents = AgentService()
    return _agents


def get_fee_scheduler() -> FeeScheduler:
    global _fees
    if _fees is None:
        _fees = FeeScheduler(get_settings(), clock=get_clock())
    return _fees


def get_customer_service() -> CustomerService:
    global _customers
    if _customers is None:
        _customers = CustomerService(
            get_settings(), get_fee_scheduler(), agents=get_agent_service(),
        )
    return _customers


def get_credit_ledger() -> CreditLedger:
    global _credits
    if _credits is None:
        _credits = CreditLedger(get_settings(), clock=get_clock())
    return _credits


def get_metering_service() -> MeteringService:
    global _metering
    if _metering is None:
        _metering = MeteringService(
            get_settings(),
            catalog=get_catalog_service(),
            customers=get_customer_service(),
            credits=get_credit_ledger(),
            agents=get_agent_service(),
            clock=get_clock(),
        )
    return _metering


def get_profitability_service() -> ProfitabilityService:
    global _profitability
    if _profitability is None:
        _profitability = ProfitabilityService(get_settings())
    return _profitability


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _clock, _catalog, _agents, _fees, _customers, _credits, _metering, _profitability
    _db = None
    _clock = None
    _catalog = None
    _agents = None
    _fees = None
    _customers = None
    _credits = None
    _metering = None
    _profitability = None
