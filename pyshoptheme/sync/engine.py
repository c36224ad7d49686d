"""Core sync engine for pulling and pushing a theme."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from ..api import ShopifyClient
from ..exceptions import ShopifyInvalidResponseError, SyncError
from ..output import OutputFormatter
from ..utils import DEFAULT_THROTTLE_CEILING, content_hash
from .comparator import FileComparator, SyncAction
from .operations import SyncOperations
from .scanner import DirectoryScanner, RemoteAsset
from .state import ThemeCache

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Stages of a sync pass."""

    ENUMERATING = "enumerating"
    DIFFING = "diffing"
    TRANSFERRING = "transferring"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class SyncEngine:
    """Synchronizes one theme between Shopify and a project directory.

    The theme cache is loaded when the engine is created and is only written
    back after a pass in which every transfer succeeded. A failed pass leaves
    the cache file untouched, so running it again retries exactly the assets
    that were not confirmed.
    """

    def __init__(
        self,
        client: ShopifyClient,
        theme_id: int,
        root: Optional[Path] = None,
        output: Optional[OutputFormatter] = None,
        max_workers: int = DEFAULT_THROTTLE_CEILING,
    ):
        """Initialize sync engine.

        Args:
            client: Shopify API client
            theme_id: Theme to sync
            root: Project directory (defaults to the current directory)
            output: Output formatter for displaying progress/status
            max_workers: Number of transfers run concurrently (default: 40)

        Raises:
            CacheCorruptError: If the theme cache file is malformed
        """
        self.client = client
        self.theme_id = int(theme_id)
        self.root = Path(root) if root is not None else Path.cwd()
        self.output = output or OutputFormatter()
        self.max_workers = max_workers

        self.cache = ThemeCache.for_theme(self.root, self.theme_id)
        self.scanner = DirectoryScanner()
        self.comparator = FileComparator(self.cache)
        self.operations = SyncOperations(client, self.theme_id, self.root, self.cache)
        self.phase: Optional[SyncPhase] = None

    def _set_phase(self, phase: SyncPhase) -> None:
        logger.debug(f"Theme {self.theme_id}: {phase.value}")
        self.phase = phase

    # =========================
    # Enumeration
    # =========================

    def list_remote_assets(self) -> list[RemoteAsset]:
        """List the theme's assets on Shopify."""
        assets = self.client.get_assets(self.theme_id)
        try:
            return self.scanner.scan_remote(assets)
        except ValueError as e:
            raise ShopifyInvalidResponseError(str(e)) from e

    def list_local_files(self) -> list[str]:
        """List asset keys of the files in the theme directories."""
        return [f.relative_path for f in self.scanner.scan_local(self.root)]

    # =========================
    # Sync passes
    # =========================

    def pull(self) -> list[str]:
        """Download every asset that changed since the last sync.

        Returns:
            Sorted keys of assets whose content changed

        Raises:
            SyncError: If any download failed; the cache is not saved
        """
        self._set_phase(SyncPhase.ENUMERATING)
        assets = self.list_remote_assets()

        self._set_phase(SyncPhase.DIFFING)
        downloads = [
            asset
            for asset in assets
            if self.comparator.compare_remote(asset).action == SyncAction.DOWNLOAD
        ]
        logger.debug(
            f"{len(downloads)} of {len(assets)} remote asset(s) need downloading"
        )

        self._set_phase(SyncPhase.TRANSFERRING)
        lock = threading.Lock()
        counter = {"done": 0}

        def download(asset: RemoteAsset) -> bool:
            changed = self.operations.download_asset(asset)
            with lock:
                counter["done"] += 1
                done = counter["done"]
            if changed:
                self.output.info(f"({done} of {len(downloads)}) {asset.key}")
            return changed

        tasks = {asset.key: partial(download, asset) for asset in downloads}
        results, errors = self._execute_parallel(tasks, "Downloading")
        self._finish(errors)

        return sorted(key for key, changed in results.items() if changed)

    def push(self) -> list[str]:
        """Upload every local file whose content changed since the last sync.

        Returns:
            Sorted keys of uploaded files

        Raises:
            SyncError: If any file could not be read or uploaded; the cache
                is not saved
        """
        self._set_phase(SyncPhase.ENUMERATING)
        local_files = self.scanner.scan_local(self.root)

        self._set_phase(SyncPhase.DIFFING)
        errors: dict[str, Exception] = {}
        tasks: dict[str, Callable[[], Any]] = {}
        for local_file in local_files:
            try:
                local_hash = content_hash(local_file.read_bytes())
            except OSError as e:
                errors[local_file.relative_path] = e
                continue
            decision = self.comparator.compare_local(local_file, local_hash)
            if decision.action == SyncAction.UPLOAD:
                tasks[local_file.relative_path] = partial(
                    self.operations.upload_file, local_file, local_hash
                )
        logger.debug(f"{len(tasks)} of {len(local_files)} local file(s) changed")

        self._set_phase(SyncPhase.TRANSFERRING)
        results, upload_errors = self._execute_parallel(tasks, "Uploading")
        errors.update(upload_errors)
        self._finish(errors)

        return sorted(results)

    # =========================
    # Fan-out / fan-in
    # =========================

    def _execute_parallel(
        self,
        tasks: dict[str, Callable[[], Any]],
        description: str,
    ) -> tuple[dict[str, Any], dict[str, Exception]]:
        """Run every task concurrently and wait for all of them.

        Every task reports exactly once. Failures do not stop the other
        tasks; all of them are collected.

        Args:
            tasks: Transfer callables by asset key
            description: Progress bar label

        Returns:
            Tuple of (results by key for successful tasks, errors by key)
        """
        results: dict[str, Any] = {}
        errors: dict[str, Exception] = {}

        if not tasks:
            return results, errors

        logger.debug(
            f"Executing {len(tasks)} transfer(s) with {self.max_workers} workers"
        )

        def execute_with_timing(action: Callable[[], Any]) -> tuple[Any, float]:
            start = time.time()
            result = action()
            return result, time.time() - start

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.output.console,
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task(description, total=len(tasks))

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(execute_with_timing, action): path
                    for path, action in tasks.items()
                }

                for future in as_completed(futures):
                    path = futures[future]
                    error = future.exception()
                    if error is None:
                        result, elapsed = future.result()
                        results[path] = result
                        logger.debug(f"Completed {path} in {elapsed:.2f}s")
                    else:
                        errors[path] = error
                        logger.debug(f"Failed {path}: {error}")
                    progress.advance(task)

        return results, errors

    def _finish(self, errors: dict[str, Exception]) -> None:
        """Persist the cache if the pass succeeded, else raise."""
        if errors:
            self._set_phase(SyncPhase.FAILED)
            raise SyncError(errors)

        self._set_phase(SyncPhase.PERSISTING)
        self.cache.save()
        self._set_phase(SyncPhase.DONE)
