"""
Manifest Module - Records of what each refresh indexed.
=======================================================

Every successful refresh writes an ``IndexManifest`` named after the hash of
the dataset file it was built from. The newest manifest's hash is the
"knowledge version" that the response cache checks answers against.
"""

from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import IndexManifest
from dorsu_connect.shared.utils import ensure_directory, load_json, save_json

logger = get_logger(__name__)


class ManifestManager:
    """
    Saves and loads refresh manifests.

    Example:
        >>> manager = ManifestManager()
        >>> manager.save(manifest)
        >>> manager.current_version()
        '3f2a9c...'
    """

    def __init__(self, manifests_dir: Optional[Path] = None):
        settings = get_settings()
        self.manifests_dir = manifests_dir or settings.resolved_paths.manifests_dir
        ensure_directory(self.manifests_dir)

        logger.debug(f"Manifest manager initialized: {self.manifests_dir}")

    def _get_manifest_path(self, dataset_hash: str) -> Path:
        return self.manifests_dir / f"{dataset_hash[:16]}.json"

    def save(self, manifest: IndexManifest) -> Path:
        """Write a manifest, replacing any earlier one for the same dataset hash."""
        path = self._get_manifest_path(manifest.dataset_hash)
        save_json(path, manifest.model_dump(mode="json"))
        logger.info(
            f"Saved manifest {manifest.dataset_hash[:12]} "
            f"({manifest.chunk_count} chunks, {manifest.provider}/{manifest.model_name})"
        )
        return path

    def load(self, dataset_hash: str) -> Optional[IndexManifest]:
        """Load the manifest for a dataset hash, or None if there is none."""
        path = self._get_manifest_path(dataset_hash)
        if not path.exists():
            return None
        return self._read(path)

    def _read(self, path: Path) -> Optional[IndexManifest]:
        try:
            return IndexManifest.model_validate(load_json(path))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to load manifest {path.name}: {e}")
            return None

    def list_manifests(self) -> list[IndexManifest]:
        """All readable manifests, newest first."""
        manifests = [m for m in (self._read(p) for p in self.manifests_dir.glob("*.json")) if m]
        manifests.sort(key=lambda m: m.created_at, reverse=True)
        return manifests

    def get_latest(self) -> Optional[IndexManifest]:
        manifests = self.list_manifests()
        return manifests[0] if manifests else None

    def current_version(self) -> Optional[str]:
        """Dataset hash of the newest manifest."""
        latest = self.get_latest()
        return latest.dataset_hash if latest else None

    def delete(self, dataset_hash: str) -> bool:
        path = self._get_manifest_path(dataset_hash)
        if path.exists():
            path.unlink()
            logger.info(f"Deleted manifest: {dataset_hash[:12]}")
            return True
        return False

    @staticmethod
    def diff(previous: Optional[IndexManifest], current: IndexManifest) -> dict:
        """
        Summarise what changed between two refreshes.

        Returns:
            Dict with ``dataset_changed``, ``model_changed``, ``chunk_delta``
            and per-section count deltas (only sections that changed)
        """
        if previous is None:
            return {
                "dataset_changed": True,
                "model_changed": True,
                "chunk_delta": current.chunk_count,
                "sections": dict(current.sections),
            }

        sections = {}
        for name in set(previous.sections) | set(current.sections):
            delta = current.sections.get(name, 0) - previous.sections.get(name, 0)
            if delta:
                sections[name] = delta

        return {
            "dataset_changed": previous.dataset_hash != current.dataset_hash,
            "model_changed": (previous.provider, previous.model_name)
            != (current.provider, current.model_name),
            "chunk_delta": current.chunk_count - previous.chunk_count,
            "sections": dict(sorted(sections.items())),
        }
