"""
Upstream Lifecycle

Starts the two upstream build servers, waits until both answer HTTP,
and tears everything down again on shutdown.

DESIGN:
=======
1. The runtime packager needs an entry module; a stub is written into a
   throwaway workspace directory
2. Upstream commands are optional: without one the upstream is assumed
   to be managed elsewhere and is only waited for
3. Readiness means "answers any HTTP response" on its base URL
4. Shutdown terminates, then kills, the spawned processes and removes
   what the workspace created
"""

from __future__ import annotations
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import os
import shlex
import subprocess
import tempfile
import time

import httpx

from .contracts import ServerConfig, UpstreamOrigin
from .errors import UpstreamNetworkError


logger = logging.getLogger(__name__)

ENTRY_JS = 'global.React = require("react-native");'
HOT_ENV_VAR = "BUNDLE_AGGREGATOR_HOT"

_POLL_INTERVAL = 0.25
_TERMINATE_GRACE = 5.0


# =============================================================================
# ENTRY WORKSPACE
# =============================================================================

class EntryWorkspace:
    """Directory holding the stub entry module for the runtime packager."""

    def __init__(self, entry: str, directory: Optional[str] = None):
        self._entry = entry
        self._requested = Path(directory) if directory else None
        self._path: Optional[Path] = None
        self._owns_directory = False

    def create(self) -> Path:
        if self._path is not None:
            return self._path

        if self._requested is not None:
            path = self._requested
            self._owns_directory = not path.exists()
            path.mkdir(parents=True, exist_ok=True)
        else:
            path = Path(tempfile.mkdtemp(prefix="bundle-aggregator-entry-"))
            self._owns_directory = True

        (path / f"{self._entry}.js").write_text(ENTRY_JS, encoding="utf-8")
        self._path = path
        logger.debug("Wrote entry stub to %s", path)
        return path

    def cleanup(self):
        """
        Remove the entry stub.

        The directory is removed only when this workspace created it; an
        existing directory keeps everything except the stub.
        """
        path = self._path
        if path is None:
            return

        entry_file = path / f"{self._entry}.js"
        if entry_file.is_file():
            entry_file.unlink()

        if self._owns_directory and path.exists():
            try:
                path.rmdir()
            except OSError as e:
                logger.warning("Could not remove entry workspace %s: %s", path, e)

        self._path = None
        self._owns_directory = False

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def entry_file(self) -> Optional[Path]:
        if self._path is None:
            return None
        return self._path / f"{self._entry}.js"

    def __enter__(self) -> Path:
        return self.create()

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()


# =============================================================================
# SUPERVISOR
# =============================================================================

class UpstreamSupervisor:
    """
    Owns the upstream processes for the lifetime of the aggregator.

    Commands are ``str.format`` templates; available fields are
    ``hostname``, ``port``, ``entry`` and ``entry_dir``.
    """

    def __init__(
        self,
        config: ServerConfig,
        workspace: Optional[EntryWorkspace] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._config = config
        self._workspace = workspace or EntryWorkspace(config.entry, config.entry_dir)
        self._popen = popen
        self._transport = transport
        self._processes: List[Tuple[UpstreamOrigin, subprocess.Popen]] = []

    async def start(self):
        """Launch configured upstreams and wait until both respond."""
        try:
            self.launch()
            await self.wait_until_ready()
        except BaseException:
            await self.stop()
            raise

    async def stop(self):
        """``shutdown`` off the event loop; waiting on processes blocks."""
        await asyncio.to_thread(self.shutdown)

    def launch(self):
        entry_dir = self._workspace.create()

        plans = [
            (self._config.runtime_origin(), self._config.packager_command,
             self._config.packager_port, {}),
            (self._config.application_origin(), self._config.webpack_command,
             self._config.webpack_port, {HOT_ENV_VAR: "1" if self._config.hot else "0"}),
        ]

        for origin, template, port, extra_env in plans:
            if not template:
                continue
            argv = self.build_argv(template, port, entry_dir)
            env = dict(os.environ, **extra_env)
            logger.info("Starting %s upstream: %s", origin.name, " ".join(argv))
            self._processes.append((origin, self._popen(argv, env=env)))

    def build_argv(self, template: str, port: int, entry_dir: Path) -> List[str]:
        command = template.format(
            hostname=self._config.hostname,
            port=port,
            entry=self._config.entry,
            entry_dir=str(entry_dir),
        )
        return shlex.split(command)

    async def wait_until_ready(self):
        """
        Poll both upstream base URLs until each answers.

        Raises:
            UpstreamNetworkError: an upstream did not answer within
            ``startup_timeout`` or its process exited
        """
        origins = [self._config.runtime_origin(), self._config.application_origin()]
        await asyncio.gather(*(self._wait_for(origin) for origin in origins))

    async def _wait_for(self, origin: UpstreamOrigin):
        deadline = time.monotonic() + self._config.startup_timeout

        async with httpx.AsyncClient(timeout=_POLL_INTERVAL * 4, transport=self._transport) as client:
            while True:
                self._check_alive(origin)
                try:
                    await client.get(origin.base_url + "/")
                    logger.info("%s upstream ready at %s", origin.name, origin.base_url)
                    return
                except httpx.TransportError as e:
                    if time.monotonic() >= deadline:
                        raise UpstreamNetworkError(
                            origin.base_url,
                            f"not reachable after {self._config.startup_timeout}s ({e})"
                        ) from e
                await asyncio.sleep(_POLL_INTERVAL)

    def _check_alive(self, origin: UpstreamOrigin):
        for owner, process in self._processes:
            if owner == origin and process.poll() is not None:
                raise UpstreamNetworkError(
                    origin.base_url,
                    f"{origin.name} process exited with code {process.returncode}"
                )

    def shutdown(self):
        """Stop spawned processes and remove the entry workspace."""
        for origin, process in self._processes:
            if process.poll() is not None:
                continue
            logger.info("Stopping %s upstream (pid %s)", origin.name, process.pid)
            process.terminate()
            try:
                process.wait(timeout=_TERMINATE_GRACE)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()

        self._processes = []
        self._workspace.cleanup()

    @property
    def processes(self) -> Dict[str, subprocess.Popen]:
        return {origin.name: process for origin, process in self._processes}

    @property
    def workspace(self) -> EntryWorkspace:
        return self._workspace
