"""ChargeEngine: central engine owning the store, notifiers and services."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from lightning_charge.datastore.client import Datastore
from lightning_charge.engine.repository import (
    InvoiceRepository,
    OfferRepository,
    WebhookRepository,
)
from lightning_charge.engine.services.invoice_service import InvoiceService
from lightning_charge.engine.services.offer_service import OfferService
from lightning_charge.metrics.collector import EngineMetrics
from lightning_charge.node.cln.service import ClnRestNode
from lightning_charge.notifications.listener import PaymentListener
from lightning_charge.notifications.waiter import WaitRegistry
from lightning_charge.notifications.webhook import WebhookDispatcher
from lightning_charge.taskmanager.manager import CronJob, TaskManager
from lightning_charge.taskmanager.tasks import (
    DELETE_EXPIRED_JOB,
    PRUNE_WAITERS_JOB,
    PRUNE_WAITERS_PERIOD,
    task_delete_expired_invoices,
    task_prune_wait_registry,
)

if TYPE_CHECKING:
    from lightning_charge.config.settings import AppConfig
    from lightning_charge.node.client import NodeRPC
    from lightning_charge.rates import RateProvider

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class ChargeEngine:
    """Central engine that owns all infrastructure and services.

    Usage::

        engine = ChargeEngine(config)            # or ChargeEngine(config, node=my_node)
        await engine.initialize()
        view = await engine.invoice_service.new_invoice(msatoshi=1000)
        result = await engine.invoice_service.wait_for_payment(view.id, timeout=30)
        await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        node: NodeRPC | None = None,
        rates: RateProvider | None = None,
        metrics: EngineMetrics | None = None,
    ) -> None:
        """Initialize engine with configuration and optional collaborators.

        Args:
            config: Application configuration.
            node: Node RPC implementation; defaults to ``ClnRestNode``.
            rates: Currency conversion; without one, quoted-currency invoices
                fail with ``ConversionUnavailableError``.
            metrics: Metrics sink; created when ``metrics.enabled``.
        """
        self._config = config
        self._initialized = False
        self._node: NodeRPC | None = node
        self._rates = rates
        self._metrics = metrics

        self._datastore: Datastore | None = None
        self._invoices: InvoiceRepository | None = None
        self._offers: OfferRepository | None = None
        self._webhooks: WebhookRepository | None = None
        self._registry = WaitRegistry()
        self._dispatcher: WebhookDispatcher | None = None
        self._listener: PaymentListener | None = None
        self._task_manager: TaskManager | None = None
        self._invoice_service: InvoiceService | None = None
        self._offer_service: OfferService | None = None

    async def initialize(self) -> None:
        """Open the store, connect the node and start background work.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)
        config = self._config

        if self._metrics is None and config.metrics.enabled:
            self._metrics = EngineMetrics()
        if self._metrics is not None:
            self._metrics.track_pending_waiters(lambda: self._registry.pending_count)

        # Store
        self._datastore = Datastore(config.db)
        await self._datastore.open()
        await self._datastore.create_schema()
        self._invoices = InvoiceRepository(self._datastore)
        self._offers = OfferRepository(self._datastore)
        self._webhooks = WebhookRepository(self._datastore)

        # Node
        if self._node is None:
            self._node = ClnRestNode(config.node)
        await self._node.connect()

        # Notifications
        self._dispatcher = WebhookDispatcher(
            self._webhooks,
            timeout=config.webhook.timeout,
            drain_timeout=config.webhook.drain_timeout,
            metrics=self._metrics,
        )
        await self._dispatcher.start()

        # Services
        self._invoice_service = InvoiceService(self)
        self._offer_service = OfferService(self)

        if config.listener.enabled:
            self._listener = PaymentListener(
                self._node,
                self._invoices,
                self._offers,
                self._registry,
                self._dispatcher,
                retry_delay=config.listener.retry_delay,
                wait_timeout=config.node.wait_any_timeout,
                metrics=self._metrics,
            )
            await self._listener.start()

        # Cron jobs
        self._task_manager = TaskManager(metrics=self._metrics)
        if config.reconciler.enabled:
            self._task_manager.register(
                DELETE_EXPIRED_JOB,
                CronJob(
                    handler=partial(task_delete_expired_invoices, self),
                    period=config.reconciler.period,
                ),
            )
        self._task_manager.register(
            PRUNE_WAITERS_JOB,
            CronJob(handler=partial(task_prune_wait_registry, self), period=PRUNE_WAITERS_PERIOD),
        )
        if config.task.enabled:
            await self._task_manager.start()

        self._initialized = True

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None

        # Stop consuming payments before the dispatcher goes away
        if self._listener is not None:
            await self._listener.stop()
            self._listener = None

        if self._dispatcher is not None:
            await self._dispatcher.stop()
            self._dispatcher = None

        self._invoice_service = None
        self._offer_service = None

        if self._node is not None:
            await self._node.close()

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None
        self._invoices = None
        self._offers = None
        self._webhooks = None

        self._initialized = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def datastore(self) -> Datastore:
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def invoices(self) -> InvoiceRepository:
        if self._invoices is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._invoices

    @property
    def offers(self) -> OfferRepository:
        if self._offers is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._offers

    @property
    def webhooks(self) -> WebhookRepository:
        if self._webhooks is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._webhooks

    @property
    def node(self) -> NodeRPC:
        if self._node is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._node

    @property
    def rates(self) -> RateProvider | None:
        """Currency conversion collaborator (None if not configured)."""
        return self._rates

    @property
    def wait_registry(self) -> WaitRegistry:
        """The in-memory payment wait registry (rebuilt empty on restart)."""
        return self._registry

    @property
    def webhook_dispatcher(self) -> WebhookDispatcher:
        if self._dispatcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._dispatcher

    @property
    def payment_listener(self) -> PaymentListener | None:
        """The node payment consumer (None if disabled)."""
        return self._listener

    @property
    def task_manager(self) -> TaskManager:
        if self._task_manager is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._task_manager

    @property
    def metrics(self) -> EngineMetrics | None:
        return self._metrics

    @property
    def invoice_service(self) -> InvoiceService:
        if self._invoice_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._invoice_service

    @property
    def offer_service(self) -> OfferService:
        if self._offer_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._offer_service

    async def health_check(self) -> dict[str, str]:
        """Check health status of engine components.

        Returns:
            Dictionary with component statuses.
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "listener": "unknown",
        }
        if self._initialized:
            status["datastore"] = (
                "ok" if self._datastore is not None and self._datastore.is_open else "error"
            )
            if self._listener is None:
                status["listener"] = "disabled"
            else:
                status["listener"] = "ok" if self._listener.is_running else "stopped"
        return status
