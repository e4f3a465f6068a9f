"""Application lifecycle.

Contains the worker-pool owning ``Application``, the ``Container`` view
handed to handlers, the ``ApplicationRoot`` bootstrap hooks and logging setup.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from .config import Config, load_config
from .runtime import WorkerPool
from .utility import ProcessUtility

__all__ = [
    "Application",
    "ApplicationRoot",
    "Container",
    "Context",
    "Handler",
    "bootstrap_logging",
]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def bootstrap_logging(config: Config) -> None:
    """Configure logging for the procloop namespace.

    Logs go to ``config.log_file`` when set, otherwise to stderr. Third-party
    loggers stay at WARNING.
    """
    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=logging.WARNING, handlers=[handler])
    logging.getLogger("procloop").setLevel(config.log_level_value)


class Container(Protocol):
    """What a handler can reach while it runs."""

    @property
    def application(self) -> "Application": ...

    @property
    def loop(self) -> asyncio.AbstractEventLoop: ...

    @property
    def logger(self) -> logging.Logger: ...


@dataclass(frozen=True)
class Context:
    """Concrete ``Container`` passed to startup handlers."""

    application: "Application"
    loop: asyncio.AbstractEventLoop
    logger: logging.Logger

    @property
    def process(self) -> ProcessUtility:
        return self.application.process_utility(self.loop)


Handler = Callable[[Context], Awaitable["int | None"]]


class Application:
    """Owns the worker pool and runs registered handlers.

    Example:
        app = Application(Config())

        @app.on_startup
        async def hello(ctx: Context) -> int:
            ctx.logger.info(await ctx.process.whoami())
            return 0

        try:
            status = app.run()
        finally:
            app.shutdown()
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config if config is not None else Config()
        self.environment = self.config.environment
        self.logger = logging.getLogger("procloop.app")
        self.thread_pool = WorkerPool(self.config.workers)
        self.thread_pool.start()
        self._handlers: list[tuple[str, Handler]] = []
        self._stop_event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._did_shutdown = False

    @property
    def process(self) -> ProcessUtility:
        """ProcessUtility bound to the running loop."""
        return self.process_utility(asyncio.get_running_loop())

    def process_utility(self, loop: asyncio.AbstractEventLoop) -> ProcessUtility:
        return ProcessUtility(
            pool=self.thread_pool,
            loop=loop,
            executable=self.config.executable,
            read_size=self.config.read_size,
        )

    @property
    def handlers(self) -> list[str]:
        return [name for name, _ in self._handlers]

    def on_startup(self, handler: Handler, *, name: str | None = None) -> Handler:
        """Register a handler; usable as a decorator."""
        self._handlers.append((name or getattr(handler, "__name__", "handler"), handler))
        return handler

    def make_context(self, name: str, loop: asyncio.AbstractEventLoop) -> Context:
        return Context(
            application=self,
            loop=loop,
            logger=logging.getLogger(f"procloop.app.{name}"),
        )

    def run(self) -> int:
        """Run every handler to completion on a fresh event loop.

        SIGINT/SIGTERM (or ``stop()``) cancel the handlers still running.

        Returns:
            Largest status returned by a handler, 130 if stopped early
        """
        if self._did_shutdown:
            raise RuntimeError("Application has been shut down")
        return asyncio.run(self._serve())

    def stop(self) -> None:
        """Ask a running ``run()`` to cancel its handlers. Thread-safe."""
        loop, event = self._loop, self._stop_event
        if loop is None or event is None:
            return
        loop.call_soon_threadsafe(event.set)

    def shutdown(self) -> None:
        if self._did_shutdown:
            return
        self._did_shutdown = True
        self.logger.debug("Application shutting down")
        self.thread_pool.shutdown()

    async def _serve(self) -> int:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._stop_event = asyncio.Event()
        installed = self._install_signal_handlers(loop)

        tasks = [
            asyncio.create_task(handler(self.make_context(name, loop)), name=name)
            for name, handler in self._handlers
        ]
        stop_waiter = asyncio.create_task(self._stop_event.wait(), name="stop-watcher")
        self.logger.info(f"Application started ({self.environment.value}, handlers={self.handlers})")

        try:
            pending = set(tasks)
            while pending and not self._stop_event.is_set():
                _, pending = await asyncio.wait(
                    pending | {stop_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(stop_waiter)

            if pending:
                self.logger.info(f"Stop requested, cancelling {len(pending)} handler(s)")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                return 130

            statuses = [task.result() or 0 for task in tasks]
            return max(statuses, default=0)
        finally:
            if not stop_waiter.done():
                stop_waiter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await stop_waiter
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._loop = None
            self._stop_event = None

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        if sys.platform == "win32":
            return []
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
            except (RuntimeError, ValueError):
                # not the main thread
                continue
            installed.append(sig)
        return installed

    def __repr__(self) -> str:
        return f"Application({self.environment.value}, pool={self.thread_pool!r})"


class ApplicationRoot:
    """Bootstrap hooks for an application.

    Subclasses implement ``configure`` and may override ``routes``;
    ``main`` wires them together. Per-run settings live on the instance:

        class Tools(ApplicationRoot):
            def configure(self, app):
                ...

        sys.exit(Tools().main())
    """

    def configure(self, app: Application) -> None:
        raise NotImplementedError

    def routes(self, app: Application) -> None:
        pass

    def load_config(self) -> Config:
        return load_config()

    def main(self) -> int:
        config = self.load_config()
        bootstrap_logging(config)

        app = Application(config)
        try:
            self.configure(app)
            self.routes(app)
            return app.run()
        finally:
            app.shutdown()
