"""
Data Refresh Module - Rebuild the knowledge base from the dataset file.
=======================================================================

A refresh:
1. Loads the JSON dataset and chunks it
2. Embeds every chunk
3. Upserts the new chunks, then removes this source's stale ones
4. Writes a manifest (the new knowledge version)
5. Clears the response cache and resyncs the search indexes

Auto refresh polls the dataset's modification time on a daemon thread.
"""

import threading
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional

from dorsu_connect.indexing.embedding_service import EmbeddingService, get_embedding_service
from dorsu_connect.indexing.knowledge_store import KnowledgeStore, get_knowledge_store
from dorsu_connect.indexing.manifest import ManifestManager
from dorsu_connect.ingestion.chunker import parse_dataset
from dorsu_connect.rag.cache import ResponseCache, get_response_cache
from dorsu_connect.rag.context import RAGService, get_rag_service
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import DataFileError, DorsuConnectError, StoreError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import (
    IndexManifest,
    RefreshResult,
    RefreshStatus,
    utc_now,
)
from dorsu_connect.shared.utils import compute_file_hash, load_json

logger = get_logger(__name__)

IN_PROGRESS_MESSAGE = "Refresh already in progress"


class DataRefreshService:
    """
    Refreshes the knowledge store from the dataset file.

    Example:
        >>> service = DataRefreshService()
        >>> result = service.refresh_from_data_file()
        >>> result.success, result.total_chunks_generated
        (True, 412)
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        store: Optional[KnowledgeStore] = None,
        embedding_service: Optional[EmbeddingService] = None,
        manifest_manager: Optional[ManifestManager] = None,
        cache: Optional[ResponseCache] = None,
        rag_service: Optional[RAGService] = None,
    ):
        settings = get_settings()
        self.data_file = data_file or settings.get_effective_data_file()
        self.source_name = settings.refresh.source_name
        self.poll_interval = settings.refresh.poll_interval_seconds

        self._store = store
        self._embedding_service = embedding_service
        self._manifest_manager = manifest_manager
        self._cache = cache
        self._rag_service = rag_service

        self._refresh_lock = threading.Lock()
        self._is_refreshing = False
        self.last_refresh: Optional[datetime] = None
        self.last_modified: Optional[float] = None

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # Lazy dependencies, so constructing the service never loads a model

    @property
    def store(self) -> KnowledgeStore:
        if self._store is None:
            self._store = get_knowledge_store()
        return self._store

    @property
    def embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    @property
    def manifest_manager(self) -> ManifestManager:
        if self._manifest_manager is None:
            self._manifest_manager = ManifestManager()
        return self._manifest_manager

    @property
    def cache(self) -> ResponseCache:
        if self._cache is None:
            self._cache = get_response_cache()
        return self._cache

    @property
    def rag_service(self) -> RAGService:
        if self._rag_service is None:
            self._rag_service = get_rag_service()
        return self._rag_service

    # ─────────────────────────────────────────────────────────────────────────
    # Change Detection
    # ─────────────────────────────────────────────────────────────────────────

    def has_data_changed(self) -> bool:
        """
        True if the dataset file is newer than when last checked.

        The first call only records the modification time.
        """
        try:
            current = self.data_file.stat().st_mtime
        except OSError as e:
            logger.error(f"Error checking data file {self.data_file}: {e}")
            return False

        if self.last_modified is None:
            self.last_modified = current
            return False
        if current > self.last_modified:
            self.last_modified = current
            return True
        return False

    # ─────────────────────────────────────────────────────────────────────────
    # Refresh
    # ─────────────────────────────────────────────────────────────────────────

    def _load_dataset(self) -> dict:
        if not self.data_file.exists():
            raise DataFileError(f"Data file not found: {self.data_file}", str(self.data_file))
        try:
            data = load_json(self.data_file)
        except ValueError as e:
            raise DataFileError(f"Invalid JSON in {self.data_file.name}: {e}", str(self.data_file)) from e
        if not isinstance(data, dict):
            raise DataFileError(
                f"Dataset root must be an object, got {type(data).__name__}", str(self.data_file)
            )
        return data

    def refresh_from_data_file(self) -> RefreshResult:
        """
        Rebuild this source's chunks from the dataset file.

        Returns:
            RefreshResult; on failure ``success`` is False and ``message``
            carries the error. A call made while another refresh runs returns
            immediately with "Refresh already in progress".
        """
        if not self._refresh_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping...")
            return RefreshResult(success=False, message=IN_PROGRESS_MESSAGE)

        self._is_refreshing = True
        try:
            return self._refresh()
        except (DorsuConnectError, OSError, ValueError) as e:
            logger.error(f"Knowledge base refresh failed: {e}")
            return RefreshResult(success=False, message=str(e), error=repr(e))
        finally:
            self._is_refreshing = False
            self._refresh_lock.release()

    def _refresh(self) -> RefreshResult:
        logger.info("Starting knowledge base refresh...")

        data = self._load_dataset()
        dataset_hash = compute_file_hash(self.data_file)
        logger.info(f"Loaded {self.data_file.name} ({dataset_hash[:12]})")

        chunks = parse_dataset(data, source=self.source_name)
        logger.info(f"Generated {len(chunks)} chunks")

        logger.info("Generating embeddings...")
        embedded = self.embedding_service.embed_chunks(chunks, log_every=50)
        logger.info(f"Generated {len(embedded)} embeddings")

        # Upsert before pruning so a failed write never empties the source
        new_ids = {c.id for c in embedded}
        try:
            counts = self.store.upsert_chunks(embedded)
            removed = self.store.delete_by_source(self.source_name, keep_ids=new_ids)
        except StoreError:
            self._resync_after_failure()
            raise
        logger.info(f"Removed {removed} stale chunks from {self.source_name}")

        total = self.store.count()
        processed = counts["inserted"] + counts["updated"]
        if processed < len(chunks):
            logger.warning(f"Not all chunks were processed. Expected {len(chunks)}, got {processed}")

        info = self.embedding_service.get_info()
        manifest = IndexManifest(
            dataset_hash=dataset_hash,
            data_file=str(self.data_file),
            chunk_count=len(chunks),
            embedded_count=sum(1 for c in embedded if c.embedding),
            provider=str(info.get("provider", "")),
            model_name=str(info.get("model", "")),
            dimensions=int(info.get("dimensions", 0)),
            sections=dict(sorted(Counter(c.section for c in chunks).items())),
        )
        previous = self.manifest_manager.get_latest()
        self.manifest_manager.save(manifest)
        changes = ManifestManager.diff(previous, manifest)
        logger.info(
            f"Knowledge version {dataset_hash[:12]}: chunk delta {changes['chunk_delta']:+d}, "
            f"dataset changed={changes['dataset_changed']}"
        )

        self.last_refresh = utc_now()
        cleared = self.cache.invalidate_all()
        self.rag_service.force_sync()

        logger.info(
            f"Refreshed knowledge base: {len(chunks)} generated, {counts['inserted']} inserted, "
            f"{counts['updated']} updated, {total} total"
        )
        return RefreshResult(
            success=True,
            message="Knowledge base refreshed successfully",
            old_chunks_removed=removed,
            new_chunks_added=counts["inserted"],
            updated_chunks=counts["updated"],
            total_chunks_generated=len(chunks),
            total_chunks=total,
            cache_entries_cleared=cleared,
            dataset_hash=dataset_hash,
            timestamp=self.last_refresh,
        )

    def _resync_after_failure(self) -> None:
        """Reload the search indexes from whatever the store now holds."""
        try:
            self.rag_service.force_sync()
        except StoreError as e:
            logger.error(f"Search index resync after failed refresh also failed: {e}")

    # ─────────────────────────────────────────────────────────────────────────
    # Auto Refresh
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def auto_refresh_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start_auto_refresh(self, interval: Optional[float] = None) -> None:
        """Poll the dataset file on a daemon thread and refresh when it changes."""
        if self.auto_refresh_running:
            logger.debug("Auto refresh already running")
            return

        interval = interval or self.poll_interval
        self._stop_event.clear()
        self.has_data_changed()  # record the baseline mtime

        def _watch() -> None:
            while not self._stop_event.wait(interval):
                if self.has_data_changed():
                    logger.info("Data file changed, triggering refresh...")
                    self.refresh_from_data_file()

        self._thread = threading.Thread(target=_watch, name="dorsu-auto-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Watching {self.data_file.name} for changes (every {interval}s)")

    def stop_auto_refresh(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Auto refresh stopped")

    def get_status(self) -> RefreshStatus:
        return RefreshStatus(
            is_refreshing=self._is_refreshing,
            last_refresh=self.last_refresh,
            last_modified=(
                datetime.fromtimestamp(self.last_modified).astimezone()
                if self.last_modified is not None
                else None
            ),
            auto_refresh=self.auto_refresh_running,
        )


_data_refresh_service: Optional[DataRefreshService] = None


def get_data_refresh_service() -> DataRefreshService:
    global _data_refresh_service
    if _data_refresh_service is None:
        _data_refresh_service = DataRefreshService()
    return _data_refresh_service
