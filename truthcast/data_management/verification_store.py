"""Verdict and ParentWork storage with work-scoped persistence.

Reference implementation of the persistence collaborator:
- Work-based organization (parent_work_id as primary key)
- Verdicts keyed by their natural key (parent_work_id, claim_hash), so
  saving the same claim twice never creates a duplicate
- Per-row atomic writes guarded by an asyncio lock
- Optional JSON persistence; write failures raise PersistenceFailure

Usage:
    from truthcast.data_management.verification_store import VerificationStore

    store = VerificationStore()
    await store.save_parent_work(work)
    await store.save_verdict(verdict)
    verdicts = await store.list_verdicts(work.id)
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from truthcast.data_management.schemas import (
    ParentWorkBase,
    Verdict,
    VerdictLabel,
    WorkStats,
    WorkStatus,
    parent_work_adapter,
)
from truthcast.verification.errors import PersistenceFailure, WorkNotFound


class VerificationStore:
    """Storage for ParentWork records and their verdicts.

    Data structure:
    {
        parent_work_id: {
            claim_hash: Verdict,
            ...
        },
        ...
    }
    """

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """Initialize VerificationStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only. An existing
                            file is loaded on construction.
        """
        self._verdicts: dict[str, dict[str, Verdict]] = {}
        self._works: dict[str, ParentWorkBase] = {}
        self._lock = asyncio.Lock()
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = structlog.get_logger().bind(component="VerificationStore")

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    # ── Verdicts ─────────────────────────────────────────────────────────

    async def save_verdict(self, verdict: Verdict) -> bool:
        """Save a verdict, idempotent on (parent_work_id, claim_hash).

        Args:
            verdict: Verdict to store.

        Returns:
            True if stored, False if a verdict for the same claim already
            existed (the existing record is kept).
        """
        async with self._lock:
            work_verdicts = self._verdicts.setdefault(verdict.parent_work_id, {})
            if verdict.claim_hash in work_verdicts:
                self._logger.debug(
                    "verdict_exists",
                    parent_work_id=verdict.parent_work_id,
                    claim_id=verdict.claim_id,
                )
                return False

            work_verdicts[verdict.claim_hash] = verdict
            if self._persistence_path:
                try:
                    self._save_to_file()
                except PersistenceFailure:
                    # Not durable: a retry must see the verdict as new
                    del work_verdicts[verdict.claim_hash]
                    raise

            self._logger.debug(
                "verdict_saved",
                parent_work_id=verdict.parent_work_id,
                claim_id=verdict.claim_id,
                label=verdict.label.value,
                confidence=verdict.confidence,
            )
            return True

    async def has_verdict(self, parent_work_id: str, claim_hash: str) -> bool:
        async with self._lock:
            return claim_hash in self._verdicts.get(parent_work_id, {})

    async def get_verdict(
        self,
        parent_work_id: str,
        claim_hash: str,
    ) -> Optional[Verdict]:
        """Get a verdict by its natural key.

        Returns:
            Verdict if found, None otherwise.
        """
        async with self._lock:
            return self._verdicts.get(parent_work_id, {}).get(claim_hash)

    async def list_verdicts(self, parent_work_id: str) -> list[Verdict]:
        """All verdicts for a ParentWork in insertion order."""
        async with self._lock:
            return list(self._verdicts.get(parent_work_id, {}).values())

    async def get_by_label(
        self,
        parent_work_id: str,
        label: VerdictLabel,
    ) -> list[Verdict]:
        """Verdicts of a ParentWork filtered by label."""
        async with self._lock:
            work_verdicts = self._verdicts.get(parent_work_id, {})
            return [v for v in work_verdicts.values() if v.label == label]

    async def get_flagged(self, parent_work_id: str) -> list[Verdict]:
        """Verdicts the dashboard should highlight."""
        async with self._lock:
            work_verdicts = self._verdicts.get(parent_work_id, {})
            return [v for v in work_verdicts.values() if v.is_flagged]

    # ── Parent works ─────────────────────────────────────────────────────

    async def save_parent_work(self, work: ParentWorkBase) -> None:
        """Insert or replace a ParentWork record."""
        async with self._lock:
            self._works[work.id] = work.model_copy(deep=True)
            self._logger.debug(
                "work_saved",
                parent_work_id=work.id,
                kind=work.kind,
                status=work.status.value,
            )
            if self._persistence_path:
                self._save_to_file()

    async def save_parent_work_status(
        self,
        parent_work_id: str,
        status: WorkStatus,
        progress_pct: float,
        stats: Optional[WorkStats] = None,
        error_message: Optional[str] = None,
        **fields: Any,
    ) -> None:
        """Update status, progress and optionally stats of a ParentWork.

        Writing the same values twice is harmless.

        Args:
            parent_work_id: Work to update.
            status: New status.
            progress_pct: Progress 0-100.
            stats: Aggregate stats snapshot, if changed.
            error_message: Diagnostic for failed works.
            **fields: Kind-specific fields (e.g. ended_at for live sessions).

        Raises:
            WorkNotFound: If the work was never saved.
        """
        async with self._lock:
            work = self._works.get(parent_work_id)
            if work is None:
                raise WorkNotFound(parent_work_id)

            work.status = status
            work.progress_pct = max(0.0, min(100.0, progress_pct))
            if stats is not None:
                work.stats = stats.model_copy(deep=True)
            if error_message is not None:
                work.error_message = error_message
            for name, value in fields.items():
                setattr(work, name, value)
            work.updated_at = datetime.now(timezone.utc)

            if self._persistence_path:
                self._save_to_file()

    async def load_parent_work(self, parent_work_id: str) -> Optional[ParentWorkBase]:
        """Get a copy of a ParentWork, or None."""
        async with self._lock:
            work = self._works.get(parent_work_id)
            return work.model_copy(deep=True) if work else None

    async def list_parent_works(
        self,
        owner_id: Optional[str] = None,
    ) -> list[ParentWorkBase]:
        """All works, optionally restricted to one owner."""
        async with self._lock:
            return [
                w.model_copy(deep=True)
                for w in self._works.values()
                if owner_id is None or w.owner_id == owner_id
            ]

    async def get_stats(self, parent_work_id: str) -> dict[str, Any]:
        """Get verdict statistics for a ParentWork.

        Returns:
            Stats dict with totals and counts by label.
        """
        async with self._lock:
            work_verdicts = list(self._verdicts.get(parent_work_id, {}).values())

        stats = WorkStats.from_verdicts(work_verdicts)
        return {
            "parent_work_id": parent_work_id,
            "total": stats.total_claims,
            "flagged": stats.flagged_claims,
            "mean_confidence": round(stats.mean_confidence, 1),
            "label_counts": stats.label_counts,
        }

    # ── File persistence ─────────────────────────────────────────────────

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        data: dict[str, Any] = {
            "works": {
                wid: work.model_dump(mode="json") for wid, work in self._works.items()
            },
            "verdicts": {
                wid: {h: v.model_dump(mode="json") for h, v in verdicts.items()}
                for wid, verdicts in self._verdicts.items()
            },
        }
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            self._logger.error("persistence_failed", error=str(e))
            raise PersistenceFailure(f"Could not write {self._persistence_path}: {e}") from e

    def _load_from_file(self) -> None:
        """Load works and verdicts from the JSON file (synchronous)."""
        with open(self._persistence_path) as f:
            data = json.load(f)

        for wid, raw in data.get("works", {}).items():
            self._works[wid] = parent_work_adapter.validate_python(raw)
        for wid, raw_verdicts in data.get("verdicts", {}).items():
            self._verdicts[wid] = {
                h: Verdict.model_validate(raw) for h, raw in raw_verdicts.items()
            }

        self._logger.info(
            "store_loaded",
            path=str(self._persistence_path),
            works=len(self._works),
        )
