"""
Service wiring, startup and shutdown procedures
"""

from dataclasses import dataclass
from typing import Optional

from cache.ttl_cache import TTLCache
from config.config import CONTRACT_ADDRESS, CONTRACT_NAME, STACKS_API_URL
from config.sync_config import SyncConfig, sync_config
from database.database import BlobStore, open_store
from events.event_bus import EventBus
from log_utils import get_logger
from monitoring.health import SyncHealthMonitor
from network.rate_limiter import RateLimiter
from network.read_client import ReadCallClient
from network.transport import StacksTransport
from state.state import AppStateStore
from sync.polling import AppLifecycle, PollingDriver
from sync.sync import SyncCoordinator
from wallet.contract_calls import ContractWriter, Signer
from wallet.transaction_tracker import TransactionTracker

logger = get_logger(__name__)


@dataclass
class SyncServices:
    """One instance of every sync component, sharing one limiter and one store"""
    config: SyncConfig
    store: BlobStore
    event_bus: EventBus
    rate_limiter: RateLimiter
    cache: TTLCache
    transport: StacksTransport
    client: ReadCallClient
    state: AppStateStore
    coordinator: SyncCoordinator
    tracker: TransactionTracker
    writer: ContractWriter
    lifecycle: AppLifecycle
    polling: PollingDriver
    health: SyncHealthMonitor


def create_services(
    config: SyncConfig = sync_config,
    store: Optional[BlobStore] = None,
    transport: Optional[StacksTransport] = None,
    signer: Optional[Signer] = None,
    api_url: str = STACKS_API_URL,
) -> SyncServices:
    """Construct the sync core; nothing touches the network until used"""
    if store is None:
        store = open_store(config.STORAGE_BACKEND, config.STORAGE_PATH)
    if transport is None:
        transport = StacksTransport(api_url)

    event_bus = EventBus()
    rate_limiter = RateLimiter(
        max_requests=config.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
        request_delay=config.RATE_LIMIT_REQUEST_DELAY,
        safety_margin=config.RATE_LIMIT_SAFETY_MARGIN,
    )
    cache = TTLCache(
        store,
        prefix=config.CACHE_PREFIX,
        default_ttl=config.CACHE_TTL,
        memory_size=config.CACHE_MEMORY_SIZE,
    )
    client = ReadCallClient(
        transport,
        rate_limiter,
        CONTRACT_ADDRESS,
        CONTRACT_NAME,
        timeout=config.READ_CALL_TIMEOUT,
    )
    state = AppStateStore(store, event_bus=event_bus)
    coordinator = SyncCoordinator(client, cache, state, ttl=config.CACHE_TTL, event_bus=event_bus)
    tracker = TransactionTracker(store, event_bus=event_bus)
    writer = ContractWriter(transport, tracker, signer=signer)

    async def refresh():
        await coordinator.fetch_all_entities()
        if tracker.pending():
            await writer.confirm_pending()

    lifecycle = AppLifecycle()
    polling = PollingDriver(refresh, lifecycle=lifecycle, interval=config.POLL_INTERVAL)
    health = SyncHealthMonitor(store, rate_limiter, client=client, tracker=tracker)

    logger.info(f"Sync services created for {CONTRACT_ADDRESS}.{CONTRACT_NAME} via {api_url}")
    return SyncServices(
        config=config,
        store=store,
        event_bus=event_bus,
        rate_limiter=rate_limiter,
        cache=cache,
        transport=transport,
        client=client,
        state=state,
        coordinator=coordinator,
        tracker=tracker,
        writer=writer,
        lifecycle=lifecycle,
        polling=polling,
        health=health,
    )


async def startup(services: SyncServices):
    """Load persisted state and start the event bus"""
    logger.info("Starting sync services")
    try:
        await services.state.load()
        await services.tracker.load()
        if not services.event_bus.running:
            await services.event_bus.start()
            logger.info("Event bus started")
        logger.info("Sync services started")
    except Exception as e:
        logger.error(f"Failed to start sync services: {str(e)}")
        raise


async def shutdown(services: SyncServices):
    """Stop polling, persist state and release the transport and store"""
    logger.info("Starting sync shutdown")
    try:
        services.polling.stop()
        await services.state.save()

        if services.event_bus.running:
            await services.event_bus.stop()
            logger.info("Event bus stopped")

        await services.transport.close()
        services.store.close()
        logger.info("Sync shutdown completed")

    except Exception as e:
        # Don't raise during shutdown to allow graceful exit
        logger.error(f"Error during shutdown: {str(e)}")
