"""
Node Supervisor - Lifecycle of the external node daemon.

At most one daemon process is supervised at a time. It is launched either
directly or through cosmovisor when upgrade supervision has been provisioned
(cosmovisor-config.json exists).

Threads per process:
- two readers draining stdout and stderr into the LogRingBuffer; each ends
  only when its stream closes
- one exit-watcher that clears the handle once the process is gone, so a
  crash converges on the same "no process" state as stop()

The handle lock guards start, stop, is_running and the exit-watcher. It is
never held while writing to the log buffer.
"""

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import IO, Optional

from errors import AlreadyRunningError, ExternalToolError, NotRunningError
from networks import NetworkConfig, TICKFY_NETWORK
from utils import NodePaths

from .logging import LogRingBuffer

logger = logging.getLogger(__name__)

# Supervisor states
STATE_STOPPED = "stopped"
STATE_STARTING = "starting"
STATE_RUNNING = "running"
STATE_STOPPING = "stopping"

# Supervision modes
MODE_DIRECT = "direct"
MODE_WRAPPED = "wrapped"

COSMOVISOR_POLL_INTERVAL = "300ms"
READER_FLUSH_TIMEOUT = 2.0  # seconds


@dataclass
class ProcessHandle:
    """The one live daemon process and the threads attached to it."""
    process: subprocess.Popen
    mode: str
    threads: list[threading.Thread] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid


class NodeSupervisor:
    """
    Starts, stops and watches the node daemon.

    Args:
        paths: Data directory layout (binary, cosmovisor, node home, marker)
        logs: Buffer receiving daemon output and lifecycle messages
        network: Chain configuration (daemon name)
    """

    def __init__(self, paths: NodePaths, logs: LogRingBuffer,
                 network: NetworkConfig = TICKFY_NETWORK):
        self.paths = paths
        self.logs = logs
        self.network = network
        self._handle: Optional[ProcessHandle] = None
        self._state = STATE_STOPPED
        self._lock = threading.Lock()

    # ============================================
    # Read-only views
    # ============================================

    def is_running(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def mode(self) -> Optional[str]:
        with self._lock:
            return self._handle.mode if self._handle else None

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._handle.pid if self._handle else None

    def is_cosmovisor_enabled(self) -> bool:
        """Upgrade supervision is provisioned once its marker file exists."""
        return self.paths.cosmovisor_config.exists()

    # ============================================
    # Launch commands
    # ============================================

    def _direct_command(self) -> tuple[list[str], Optional[dict]]:
        home = str(self.paths.node_home)
        return [str(self.paths.binary), "start", "--home", home], None

    def _wrapped_command(self) -> tuple[list[str], dict]:
        home = str(self.paths.node_home)
        env = os.environ.copy()
        env.update({
            "DAEMON_NAME": self.network.daemon_name,
            "DAEMON_HOME": home,
            "DAEMON_ALLOW_DOWNLOAD_BINARIES": "true",
            "DAEMON_RESTART_AFTER_UPGRADE": "true",
            "DAEMON_POLL_INTERVAL": COSMOVISOR_POLL_INTERVAL,
            "UNSAFE_SKIP_BACKUP": "true",
        })
        return [str(self.paths.cosmovisor), "run", "start", "--home", home], env

    # ============================================
    # Lifecycle
    # ============================================

    def start(self) -> str:
        """
        Launch the daemon.

        Returns: the supervision mode used (direct or wrapped).
        Raises:
            AlreadyRunningError: a daemon is already supervised
            ExternalToolError: the executable could not be launched
        """
        with self._lock:
            if self._handle is not None:
                raise AlreadyRunningError()

            self._state = STATE_STARTING
            mode = MODE_WRAPPED if self.is_cosmovisor_enabled() else MODE_DIRECT
            command, env = self._wrapped_command() if mode == MODE_WRAPPED else self._direct_command()

            try:
                process = subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    env=env,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except OSError as e:
                self._state = STATE_STOPPED
                raise ExternalToolError(f"Failed to start node: {e}", command=command) from e

            handle = ProcessHandle(process=process, mode=mode)
            self._handle = handle
            self._state = STATE_RUNNING

        if mode == MODE_WRAPPED:
            self.logs.append("Node started via Cosmovisor (auto-upgrade enabled)")
        else:
            self.logs.append("Node started (direct)")
        logger.info(f"Node process {process.pid} started ({mode})")

        readers = [
            threading.Thread(target=self._drain, args=(process.stdout,),
                             name=f"node-stdout-{process.pid}", daemon=True),
            threading.Thread(target=self._drain, args=(process.stderr,),
                             name=f"node-stderr-{process.pid}", daemon=True),
        ]
        watcher = threading.Thread(target=self._watch_exit, args=(handle, readers),
                                   name=f"node-exit-{process.pid}", daemon=True)
        handle.threads = readers + [watcher]
        for thread in handle.threads:
            thread.start()
        return mode

    def stop(self) -> None:
        """
        Kill the daemon immediately (no grace period).

        Raises: NotRunningError if nothing is supervised.
        """
        with self._lock:
            handle = self._handle
            if handle is None:
                raise NotRunningError()

            self._state = STATE_STOPPING
            try:
                handle.process.kill()
            except ProcessLookupError:
                # Already exited; the watcher has not cleared the handle yet
                pass
            self._handle = None
            self._state = STATE_STOPPED

        self.logs.append("Node stopped")
        logger.info(f"Node process {handle.pid} killed")

    def shutdown(self) -> None:
        """Stop the daemon if one is running. Used at application exit."""
        try:
            self.stop()
        except NotRunningError:
            pass

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Block until the current daemon exits and its handle has been cleared.

        Returns the exit code, or None if nothing is running.
        Raises: subprocess.TimeoutExpired if the timeout elapses first.
        """
        with self._lock:
            handle = self._handle
        if handle is None:
            return None
        returncode = handle.process.wait(timeout=timeout)
        if handle.threads:
            handle.threads[-1].join(timeout)
        return returncode

    # ============================================
    # Worker threads
    # ============================================

    def _drain(self, stream: IO[str]) -> None:
        """Copy every output line into the log buffer until the stream closes."""
        with stream:
            for line in stream:
                line = line.rstrip("\r\n")
                if line:
                    self.logs.append(line)

    def _watch_exit(self, handle: ProcessHandle, readers: list[threading.Thread]) -> None:
        """Wait for the process and clear its handle if stop() has not already."""
        returncode = handle.process.wait()
        # Let the readers flush so the terminal line comes last. A grandchild
        # still holding the pipes must not keep the handle alive, so both
        # readers share one deadline.
        deadline = time.monotonic() + READER_FLUSH_TIMEOUT
        for thread in readers:
            thread.join(max(deadline - time.monotonic(), 0))

        with self._lock:
            cleared = self._handle is handle
            if cleared:
                self._handle = None
                self._state = STATE_STOPPED

        if cleared:
            suffix = " (cosmovisor)" if handle.mode == MODE_WRAPPED else ""
            self.logs.append(f"Node stopped{suffix} (exit code {returncode})")
            logger.warning(f"Node process {handle.pid} exited with code {returncode}")
