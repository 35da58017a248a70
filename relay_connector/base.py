"""BaseConnector: runs a message source through services into Kafka."""

from __future__ import annotations

import asyncio
import signal
import time
from collections.abc import AsyncIterator, Sequence

import structlog
import uvicorn

from .config import ConnectorConfig
from .dead_letter import DeadLetterHandler
from .errors import ServiceError
from .health import create_health_app
from .interface import ConnectorInterface, MessageService
from .kafka_producer import KafkaProducerWrapper
from .logging import setup_logging
from .models import BackfillRequest, ConnectorStatus, RelayMessage
from .retry import with_retry

logger = structlog.get_logger()


class BaseConnector(ConnectorInterface):
    """Base class for relay connectors.

    Subclasses implement :meth:`ingest` and may override :meth:`backfill`
    and :meth:`health_check`.  ``asyncio.run(connector.run())`` polls the
    live source until SIGTERM/SIGINT; ``run(backfill=request)`` replays a
    window once and exits.

    Every message passes through *services* in order before it is
    published.  The message loop and the FastAPI health server share one
    :class:`asyncio.TaskGroup`.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        services: Sequence[MessageService] = (),
    ) -> None:
        self.config = config
        self.services: list[MessageService] = list(services)
        self.status = ConnectorStatus.STARTING
        self.start_time = time.monotonic()
        self.messages_delivered = 0
        self.messages_dead_lettered = 0

        self._producer = KafkaProducerWrapper(config.kafka, config.name)
        self._dead_letter = DeadLetterHandler(self._producer, config.name)
        self._shutdown_event = asyncio.Event()

    # ------------------------------------------------------------------
    # Per-message pipeline
    # ------------------------------------------------------------------

    async def _dead_lettered(self, message: RelayMessage, exc: BaseException, attempts: int) -> bool:
        await self._dead_letter.send(message, error=exc, attempts=attempts)
        self.messages_dead_lettered += 1
        return False

    async def _deliver(self, message: RelayMessage) -> bool:
        """Apply services, then publish; return whether Kafka accepted it.

        A :class:`ServiceError` means the message itself is bad, so it is
        dead-lettered after one attempt.  Kafka failures are retried per
        ``config.retry`` before the message is dead-lettered.  Any other
        exception from a service is a bug and propagates.
        """
        for service in self.services:
            try:
                service.do_service(message)
            except ServiceError as exc:
                logger.error(
                    "service_failed",
                    service=type(service).__name__,
                    message_id=message.message_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return await self._dead_lettered(message, exc, attempts=1)

        @with_retry(self.config.retry)
        async def publish() -> None:
            await self._producer.send_message(message)

        try:
            await publish()
        except Exception as exc:
            logger.error(
                "kafka_delivery_failed_permanently",
                message_id=message.message_id,
                error=str(exc),
            )
            return await self._dead_lettered(message, exc, attempts=self.config.retry.max_attempts)

        self.messages_delivered += 1
        return True

    # ------------------------------------------------------------------
    # Message loop
    # ------------------------------------------------------------------

    async def _pump(self, source: AsyncIterator[RelayMessage], mode: str) -> None:
        """Deliver every message *source* yields until it ends or shutdown."""
        log = logger.bind(connector=self.config.name, mode=mode)
        log.info("message_loop_started")
        self.status = ConnectorStatus.RUNNING
        try:
            async for message in source:
                if self._shutdown_event.is_set():
                    break
                await self._deliver(message)
        except Exception:
            self.status = ConnectorStatus.DEGRADED
            log.exception("message_loop_error")
            raise
        finally:
            log.info(
                "message_loop_stopped",
                delivered=self.messages_delivered,
                dead_lettered=self.messages_dead_lettered,
            )

    async def _pump_until_shutdown(self, source: AsyncIterator[RelayMessage], mode: str) -> None:
        """Run :meth:`_pump`, cancelling it once shutdown is requested.

        A source idling between polls never yields, so the shutdown flag
        alone would not stop it.
        """
        pump = asyncio.create_task(self._pump(source, mode))
        shutdown = asyncio.create_task(self._shutdown_event.wait())
        try:
            await asyncio.wait({pump, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown.cancel()
            if not pump.done():
                pump.cancel()
                try:
                    await pump
                except asyncio.CancelledError:
                    pass
        if not pump.cancelled():
            pump.result()

    async def _run_ingest_loop(self) -> None:
        await self._pump_until_shutdown(self.ingest(), "ingest")

    async def _run_backfill(self, request: BackfillRequest) -> None:
        try:
            await self._pump_until_shutdown(self.backfill(request), "backfill")
        finally:
            # a backfill is finite: take the health server down with it
            self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Health server and signals
    # ------------------------------------------------------------------

    async def _run_health_server(self) -> None:
        server = uvicorn.Server(
            uvicorn.Config(
                create_health_app(self),
                host="0.0.0.0",
                port=self.config.health_port,
                log_level="warning",
            )
        )
        serving = asyncio.create_task(server.serve())
        await self._shutdown_event.wait()
        server.should_exit = True
        await serving

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _on_signal(sig: signal.Signals) -> None:
            logger.info("shutdown_signal_received", signal=sig.name)
            self._shutdown_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _on_signal, sig)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, *, backfill: BackfillRequest | None = None) -> None:
        """Start the producer, message loop and health server; block until done."""
        setup_logging(self.config.logging, connector=self.config.name)
        self._install_signal_handlers()
        self.start_time = time.monotonic()

        logger.info(
            "connector_starting",
            connector=self.config.name,
            services=[type(s).__name__ for s in self.services],
            backfill=backfill is not None,
        )
        await self._producer.start()

        try:
            async with asyncio.TaskGroup() as tg:
                if backfill is None:
                    tg.create_task(self._run_ingest_loop())
                else:
                    tg.create_task(self._run_backfill(backfill))
                tg.create_task(self._run_health_server())
        except* Exception:
            logger.exception("connector_task_group_error", connector=self.config.name)
        finally:
            self.status = ConnectorStatus.STOPPING
            await self._producer.stop()
            self.status = ConnectorStatus.STOPPED
            logger.info("connector_stopped", connector=self.config.name)
