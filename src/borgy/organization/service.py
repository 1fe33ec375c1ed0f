"""Public operation surface tying listing, classification, planning and history together."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from borgy.classification import ClassificationEngine, ClassifierGateway, FallbackClassifier
from borgy.config.models import BorgyConfig
from borgy.state import HistoryBatch, HistoryRepository
from borgy.store import ObjectStore
from borgy.store.minio_store import MinioObjectStore

from .executor import OperationExecutor
from .lister import UnorganizedLister
from .models import ApplyResult, ObjectRecord, OperationPlan, OrganizationSuggestion, RevertResult
from .planner import OrganizerPlanner
from .suggestions import SuggestionBuilder

LOGGER = logging.getLogger(__name__)


class OrganizerService:
    """List, suggest, apply, revert and move objects in one bucket.

    Components are passed in explicitly; ``from_config`` is the usual way to
    wire them from a ``BorgyConfig``. The service assumes at most one
    apply/revert/move is in flight against a bucket at a time.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        lister: UnorganizedLister,
        engine: ClassificationEngine,
        builder: SuggestionBuilder,
        planner: OrganizerPlanner,
        executor: OperationExecutor,
        history: HistoryRepository,
        organized_prefix: str = "_organized",
    ) -> None:
        self.store = store
        self.lister = lister
        self.engine = engine
        self.builder = builder
        self.planner = planner
        self.executor = executor
        self.history_repository = history
        self._organized_prefix = organized_prefix

    @classmethod
    def from_config(
        cls,
        config: BorgyConfig,
        *,
        store: Optional[ObjectStore] = None,
        gateway: Optional[ClassifierGateway] = None,
    ) -> "OrganizerService":
        """Wire a service from configuration.

        Args:
            config: Effective configuration.
            store: Store to use instead of a MinIO client built from ``config.store``.
            gateway: Gateway to use instead of one built from ``config.llm``.

        Returns:
            OrganizerService: Ready-to-use service.
        """
        if store is None:
            store = MinioObjectStore.from_settings(config.store)
        if gateway is None:
            gateway = ClassifierGateway.from_settings(config.llm)

        options = config.organization
        fallback = FallbackClassifier.with_user_rules(
            config.rules, default_folder=options.default_folder
        )
        history = HistoryRepository(
            store,
            config.history_key,
            verify_version=config.history.verify_version,
            max_retries=config.history.max_retries,
        )
        return cls(
            store=store,
            lister=UnorganizedLister(
                store,
                organized_prefix=config.store.organized_prefix,
                metadata_prefix=config.store.metadata_prefix,
                recursive=config.store.recursive,
            ),
            engine=ClassificationEngine(gateway, fallback, retries=config.llm.retries),
            builder=SuggestionBuilder(options),
            planner=OrganizerPlanner(
                organized_prefix=config.store.organized_prefix,
                metadata_prefix=config.store.metadata_prefix,
                conflict_resolution=options.conflict_resolution,
            ),
            executor=OperationExecutor(store, history, apply_mode=options.apply_mode),
            history=history,
            organized_prefix=config.store.organized_prefix,
        )

    def list_unorganized(self) -> list[ObjectRecord]:
        """Return every object outside the organized namespace.

        Raises:
            EnumerationError: If listing the bucket fails.
        """
        return self.lister.list()

    def suggest_organization(self, records: Sequence[ObjectRecord]) -> OrganizationSuggestion:
        """Propose one folder per record; never fails because of the classifier."""
        if not records:
            LOGGER.info("No files to organize")
            return OrganizationSuggestion()

        LOGGER.info("Suggesting folders for %d files", len(records))
        outcome = self.engine.classify([record.display_name for record in records])
        if outcome.source == "fallback":
            LOGGER.info("Suggestion built entirely from fallback rules")
        return self.builder.build(records, outcome)

    def plan_organization(self, suggestion: OrganizationSuggestion) -> OperationPlan:
        """Reconcile ``suggestion`` and compute its moves without touching the store."""
        reconciled = self.builder.reconcile(suggestion)
        return self.planner.build_plan(reconciled, self._organized_keys())

    def apply_organization(self, suggestion: OrganizationSuggestion) -> ApplyResult:
        """Move every entry into its folder and record the batch in history."""
        plan = self.plan_organization(suggestion)
        if not plan.moves:
            LOGGER.info("Nothing to move")
            return ApplyResult(notes=plan.notes, failures=dict(plan.rejected))
        result = self.executor.apply(plan)
        LOGGER.info(
            "Applied %d of %d moves (batch %s)",
            len(result.actions),
            len(plan.moves),
            result.batch_id,
        )
        return result

    def revert_last_organization(self) -> RevertResult:
        """Move the objects of the newest history batch back to their original keys."""
        return self.executor.revert()

    def move_file(self, object_key: str, target_folder: str) -> ApplyResult:
        """Move one object into ``target_folder`` as its own `manual-move` batch.

        Keys under the metadata prefix are refused and reported in ``failures``.
        """
        plan = self.planner.build_single(object_key, target_folder, self._organized_keys())
        if not plan.moves:
            return ApplyResult(notes=plan.notes, failures=dict(plan.rejected))
        return self.executor.apply(plan)

    def history(self, limit: Optional[int] = None) -> list[HistoryBatch]:
        """Return recorded batches, newest first."""
        return self.history_repository.read_batches(limit)

    def _organized_keys(self) -> set[str]:
        prefix = f"{self._organized_prefix}/"
        return {stored.key for stored in self.store.list_objects(prefix, recursive=True)}


__all__ = ["OrganizerService"]
