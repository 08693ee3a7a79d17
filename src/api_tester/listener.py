"""Local listener lifecycle management (start/stop/cleanup)."""

from __future__ import annotations

import atexit
import enum
import logging
import signal
import socket
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any

import uvicorn

from api_tester.config import ListenerConfig

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT = 5.0
DEFAULT_SHUTDOWN_TIMEOUT = 5.0
CLEANUP_TIMEOUT = 3.0
_POLL_INTERVAL = 0.05
# Share of the shutdown timeout spent waiting for a graceful exit.
_GRACEFUL_SHARE = 0.75


class ListenerSignal(str, enum.Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    STOPPED = "stopped"
    NOT_RUNNING = "not_running"


class ListenerBindError(RuntimeError):
    """The listener could not acquire its port or failed to come up."""


@dataclass
class ListenerHandle:
    server: uvicorn.Server
    thread: threading.Thread
    sock: socket.socket
    host: str
    port: int


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            # Lets a restart reuse the port while old connections sit in TIME_WAIT.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(128)
    except OSError as e:
        sock.close()
        raise ListenerBindError(f"Cannot bind {host}:{port}: {e}") from e
    sock.set_inheritable(True)
    return sock


class ListenerController:
    """Owns at most one running uvicorn listener.

    start, stop and cleanup take the same lock for their whole
    check-and-transition, so a termination hook racing a user stop sees
    either Running or Stopped, never a half-closed handle.
    """

    def __init__(
        self,
        app: Any = None,
        config: ListenerConfig | None = None,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ) -> None:
        self.app = app
        self.config = config or ListenerConfig()
        self.startup_timeout = startup_timeout
        self.shutdown_timeout = shutdown_timeout
        self._lock = threading.Lock()
        self._handle: ListenerHandle | None = None

    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def port(self) -> int | None:
        handle = self._handle
        return handle.port if handle is not None else None

    def start(self) -> ListenerSignal:
        """Start the listener; returns once it is accepting connections."""
        with self._lock:
            if self._handle is not None:
                logger.info("Listener is already running on port %d", self._handle.port)
                return ListenerSignal.ALREADY_RUNNING
            self._handle = self._launch()
            logger.info(
                "Listener started on http://%s:%d",
                self._handle.host,
                self._handle.port,
            )
            return ListenerSignal.STARTED

    def stop(self) -> ListenerSignal:
        """Stop the listener gracefully and wait until its socket is closed."""
        with self._lock:
            if self._handle is None:
                logger.info("Listener is not running")
                return ListenerSignal.NOT_RUNNING
            handle = self._handle
            try:
                self._shutdown(handle, self.shutdown_timeout)
            finally:
                self._handle = None
            logger.info("Listener stopped")
            return ListenerSignal.STOPPED

    def cleanup(self, timeout: float | None = None) -> None:
        """Best-effort stop for exit paths. Never raises, never blocks past timeout."""
        timeout = CLEANUP_TIMEOUT if timeout is None else timeout
        deadline = time.monotonic() + timeout
        if not self._lock.acquire(timeout=timeout):
            logger.warning("Listener cleanup abandoned: state lock busy")
            return
        try:
            handle = self._handle
            if handle is None:
                return
            self._handle = None
            try:
                self._shutdown(handle, max(deadline - time.monotonic(), 0.0))
            except Exception:
                logger.warning("Listener cleanup failed", exc_info=True)
            else:
                logger.info("Listener stopped")
        finally:
            self._lock.release()

    # -- internals ------------------------------------------------------------

    def _resolve_app(self) -> Any:
        if self.app is not None:
            return self.app
        from api_tester.server import create_app

        return create_app()

    def _launch(self) -> ListenerHandle:
        sock = bind_socket(self.config.host, self.config.port)
        port = sock.getsockname()[1]

        try:
            uv_config = uvicorn.Config(
                self._resolve_app(),
                log_level="info",
                log_config=None,
                timeout_graceful_shutdown=int(max(self.shutdown_timeout, 1)),
            )
            server = uvicorn.Server(uv_config)
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                daemon=True,
                name=f"api-tester-listener-{port}",
            )
            thread.start()
        except Exception:
            sock.close()
            raise

        deadline = time.monotonic() + self.startup_timeout
        while not server.started:
            if not thread.is_alive():
                sock.close()
                raise ListenerBindError(
                    f"Listener on port {port} exited during startup"
                )
            if time.monotonic() >= deadline:
                server.should_exit = True
                thread.join(self.shutdown_timeout)
                sock.close()
                raise ListenerBindError(
                    f"Listener on port {port} did not start within "
                    f"{self.startup_timeout:.1f}s"
                )
            time.sleep(_POLL_INTERVAL)

        return ListenerHandle(
            server=server,
            thread=thread,
            sock=sock,
            host=self.config.host,
            port=port,
        )

    def _shutdown(self, handle: ListenerHandle, timeout: float) -> None:
        """Ask uvicorn to exit, then force it; returns within timeout."""
        deadline = time.monotonic() + timeout
        handle.server.should_exit = True
        handle.thread.join(timeout * _GRACEFUL_SHARE)
        if handle.thread.is_alive():
            # Skip waiting on open connections.
            handle.server.force_exit = True
            handle.thread.join(max(deadline - time.monotonic(), 0.0))
        if handle.thread.is_alive():
            logger.warning(
                "Listener thread did not exit within %.1fs; abandoning it",
                timeout,
            )
        handle.sock.close()


# -- Process exit -------------------------------------------------------------


def handle_sigterm(
    _signum: int,
    _frame: object,
) -> None:
    """Turn SIGTERM into SystemExit so finally blocks and atexit hooks run."""
    raise SystemExit(0)


def install_shutdown_hooks(controller: ListenerController) -> None:
    """Run controller.cleanup on interpreter exit, including SIGTERM."""
    atexit.register(controller.cleanup)
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, handle_sigterm)
