"""
Save reconciliation for committed annotations

Decides which committed annotations still need a create call and sends them
one at a time, in commit order. Saving sequentially means a failure partway
leaves a well-defined prefix persisted; every entry is attempted and the
result is reported as one aggregate.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Set, Tuple
import logging

from .models import Annotation, AnnotationId

if TYPE_CHECKING:
    from app.services.storage.base import WriteResult
    from app.services.storage.optimistic import OptimisticAnnotationRepository

logger = logging.getLogger(__name__)


class SaveOutcome(str, Enum):
    """Aggregate result of a save"""
    NOTHING_TO_SAVE = "nothing_to_save"
    SAVED = "saved"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class SaveReport:
    """
    Aggregate of one save

    Attributes:
        outcome: Overall result
        succeeded: Entries the backend persisted
        failed: Entries that were not persisted (kept locally or lost)
        local_only: Subset of failed that the shadow store kept
        persisted: (local id, stored annotation) pairs in save order
        results: Per-entry write results in save order
    """
    outcome: SaveOutcome
    succeeded: int = 0
    failed: int = 0
    local_only: int = 0
    persisted: List[Tuple[AnnotationId, Annotation]] = field(default_factory=list)
    results: List["WriteResult"] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


def persisted_ids(persisted: Iterable) -> Set[str]:
    """Identifier values of annotations known to be stored"""
    ids = set()
    for item in persisted:
        if isinstance(item, Annotation):
            if item.id.is_persisted:
                ids.add(item.id.value)
        elif isinstance(item, AnnotationId):
            if item.is_persisted:
                ids.add(item.value)
        else:
            ids.add(str(item))
    return ids


class AnnotationReconciler:
    """
    Computes and saves the delta between committed and persisted annotations

    Args:
        repository: Annotation repository whose create() returns a WriteResult
            (see OptimisticGateway.annotations)
    """

    def __init__(self, repository: "OptimisticAnnotationRepository"):
        self.repository = repository

    @staticmethod
    def pending(committed: Iterable[Annotation], persisted: Iterable) -> List[Annotation]:
        """
        Committed annotations that still need a create call

        An entry is new unless its id is a persisted id present in the
        persisted set (compared by string equality).

        Args:
            committed: Annotations in commit order
            persisted: Persisted annotations, AnnotationIds or raw id strings
        """
        known = persisted_ids(persisted)
        return [
            a for a in committed
            if not (a.id.is_persisted and a.id.value in known)
        ]

    def save(
        self,
        committed: Iterable[Annotation],
        persisted: Iterable,
        on_persisted: Optional[Callable[[AnnotationId, Annotation], None]] = None,
    ) -> SaveReport:
        """
        Persist every new committed annotation, one at a time

        Args:
            committed: Annotations in commit order
            persisted: Annotations already known to be stored
            on_persisted: Called with (local id, stored annotation) after each
                success, before the next entry is attempted

        Returns:
            SaveReport; NOTHING_TO_SAVE when no create call was needed
        """
        new_entries = self.pending(committed, persisted)
        if not new_entries:
            return SaveReport(outcome=SaveOutcome.NOTHING_TO_SAVE)

        report = SaveReport(outcome=SaveOutcome.SAVED)
        for annotation in new_entries:
            result = self.repository.create(annotation.to_fields(), shadow_id=annotation.id.value)
            report.results.append(result)

            if result.persisted:
                report.succeeded += 1
                report.persisted.append((annotation.id, result.entity))
                if on_persisted is not None:
                    on_persisted(annotation.id, result.entity)
            else:
                report.failed += 1
                if result.entity is not None:
                    report.local_only += 1

        if report.failed and report.succeeded:
            report.outcome = SaveOutcome.PARTIAL
        elif report.failed:
            report.outcome = SaveOutcome.FAILED

        logger.info(
            "Saved annotations: %d succeeded, %d failed (%d kept locally)",
            report.succeeded, report.failed, report.local_only,
        )
        return report
