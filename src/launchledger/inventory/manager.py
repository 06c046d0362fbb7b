"""The refresh pipeline: read, reconcile, score, commit.

Refresh Algorithm (per category):
    1. Bump the category generation and read the source in a worker thread,
       bounded by ``fetch_timeout``.
    2. Discard the result if it timed out or its generation is stale. The
       generation is checked again after every snapshot load or save.
    3. Reconcile against the persisted snapshot (snapshot-backed
       categories) or the store's previous records (live categories).
    4. Annotate every record with its overall impact.
    5. Persist the new snapshot, then swap the category into the store.

Concurrency:
    One ``asyncio.Lock`` per category. A refresh requested while another is
    in flight for the same category awaits and shares that result.
    Mutations take the same lock, so they never overlap a reconciliation of
    their category, and are followed by a refresh of it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from launchledger.config import Settings
from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import Category, LaunchRecord
from launchledger.core.reconcile import IdentityReconciler
from launchledger.core.scoring import AggregateImpact, ImpactScorer
from launchledger.core.validation import LabelPolicy, RecordValidator
from launchledger.discovery import (
    AgentDaemonSource,
    BackgroundItemSource,
    CommandRunner,
    LoadStateCache,
    LoginItemSource,
    SourceReader,
)
from launchledger.exceptions import MutationError, SnapshotError
from launchledger.inventory.snapshot import SnapshotStore
from launchledger.inventory.store import CategoryState, InventoryStore
from launchledger.mutators import (
    MutationAction,
    MutationResult,
    Mutator,
    PriorityDirection,
    SystemMutator,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT: float = 20.0

_LAUNCHD_CATEGORIES = frozenset({Category.AGENTS, Category.DAEMONS})


# ---------------------------------------------------------------------------
# Reports and requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryReport:
    """Outcome of refreshing one category.

    Attributes:
        category: The category refreshed.
        status: Source status of the read (UNAVAILABLE on timeout).
        record_count: Records in the store after the refresh.
        retained_count: Records kept from prior state but absent live.
        diagnostics: Contained failures.
        method: Source method that answered.
        committed: False when the result was discarded.
    """

    category: Category
    status: SourceStatus
    record_count: int
    retained_count: int = 0
    diagnostics: tuple[Diagnostic, ...] = ()
    method: str = ""
    committed: bool = True


@dataclass
class RefreshReport:
    """Outcome of one ``InventoryManager.refresh`` call."""

    categories: dict[Category, CategoryReport] = field(default_factory=dict)
    aggregate: AggregateImpact = field(default_factory=AggregateImpact)

    @property
    def access_denied(self) -> list[Category]:
        return [c for c, r in self.categories.items() if r.status is SourceStatus.ACCESS_DENIED]

    @property
    def total_records(self) -> int:
        return sum(r.record_count for r in self.categories.values())


@dataclass(frozen=True)
class Mutation:
    """A requested change to one inventory item.

    Attributes:
        category: Category of the target record.
        identity_key: Identity of the target record.
        action: What to do.
        direction: Required for ``MutationAction.PRIORITY``.
        nice: Required for ``MutationAction.PROCESS_PRIORITY``.
    """

    category: Category
    identity_key: str
    action: MutationAction
    direction: PriorityDirection | None = None
    nice: int | None = None


# ---------------------------------------------------------------------------
# InventoryManager
# ---------------------------------------------------------------------------


class InventoryManager:
    """Owns the sources, reconciler, scorer and store.

    Args:
        sources: One reader per category.
        reconciler: Merges reads with prior state.
        scorer: Annotates records with their impact.
        store: Receives committed category states.
        snapshot_store: Persists snapshot-backed categories (optional).
        fetch_timeout: Seconds before a category read is abandoned.
        mutator: Applies OS mutations (optional).
        load_state: Invalidated after agent and daemon mutations.
    """

    def __init__(
        self,
        sources: Mapping[Category, SourceReader],
        reconciler: IdentityReconciler,
        scorer: ImpactScorer,
        store: InventoryStore,
        snapshot_store: SnapshotStore | None = None,
        *,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        mutator: Mutator | None = None,
        load_state: LoadStateCache | None = None,
    ) -> None:
        self._sources = dict(sources)
        self._reconciler = reconciler
        self._scorer = scorer
        self._store = store
        self._snapshot_store = snapshot_store
        self._fetch_timeout = fetch_timeout
        self._mutator = mutator
        self._load_state = load_state
        self._generations: dict[Category, int] = {c: 0 for c in Category}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._locks: dict[Category, asyncio.Lock] = {}
        self._inflight: dict[Category, asyncio.Task[CategoryReport]] = {}

    @property
    def store(self) -> InventoryStore:
        return self._store

    @property
    def scorer(self) -> ImpactScorer:
        return self._scorer

    @property
    def snapshot_store(self) -> SnapshotStore | None:
        return self._snapshot_store

    @property
    def categories(self) -> list[Category]:
        return [c for c in Category if c in self._sources]

    def generation(self, category: Category) -> int:
        return self._generations[category]

    def cancel_pending(self, category: Category) -> None:
        """Make any in-flight read of ``category`` stale so it is discarded."""
        self._generations[category] += 1

    def _bind_loop(self) -> None:
        # asyncio primitives belong to one event loop; each asyncio.run gets fresh ones.
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._loop = loop
            self._locks = {c: asyncio.Lock() for c in Category}
            self._inflight = {}

    # -- Refresh --

    async def refresh(self, categories: Iterable[Category] | None = None) -> RefreshReport:
        """Refresh the given categories (default: all) concurrently."""
        self._bind_loop()
        wanted = [c for c in (categories or self.categories) if c in self._sources]
        reports = await asyncio.gather(*(self._refresh_category(c) for c in wanted))
        return RefreshReport(
            categories={r.category: r for r in reports},
            aggregate=self._scorer.aggregate(self._store.all_records()),
        )

    async def _refresh_category(self, category: Category) -> CategoryReport:
        task = self._inflight.get(category)
        if task is None:
            task = asyncio.ensure_future(self._locked_refresh(category))
            self._inflight[category] = task
            task.add_done_callback(lambda t, c=category: self._forget(c, t))
        else:
            logger.debug("Joining in-flight refresh of %s", category.value)
        return await asyncio.shield(task)

    def _forget(self, category: Category, task: asyncio.Task[CategoryReport]) -> None:
        if self._inflight.get(category) is task:
            del self._inflight[category]

    async def _locked_refresh(self, category: Category) -> CategoryReport:
        async with self._locks[category]:
            return await self._refresh_unlocked(category)

    async def _refresh_unlocked(self, category: Category) -> CategoryReport:
        self._generations[category] += 1
        generation = self._generations[category]
        source = self._sources[category]

        try:
            result = await asyncio.wait_for(asyncio.to_thread(source.read), self._fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s read timed out after %gs", category.value, self._fetch_timeout)
            return self._mark_unavailable(category, Diagnostic(
                DiagnosticKind.EXTERNAL_TOOL_FAILURE,
                f"Read timed out after {self._fetch_timeout:g}s; keeping previous state",
            ))

        if self._is_stale(category, generation):
            return self._discard(category, generation, result)
        return await self._commit(category, generation, result)

    def _is_stale(self, category: Category, generation: int) -> bool:
        return generation != self._generations[category]

    def _discard(self, category: Category, generation: int, result: SourceReadResult) -> CategoryReport:
        logger.info("Discarding stale %s read (generation %d)", category.value, generation)
        previous = self._store.state(category)
        return CategoryReport(
            category=category,
            status=result.status,
            record_count=len(previous.records),
            diagnostics=tuple(result.diagnostics),
            method=result.method,
            committed=False,
        )

    async def _commit(
        self, category: Category, generation: int, result: SourceReadResult,
    ) -> CategoryReport:
        diagnostics = list(result.diagnostics)
        snapshot = None
        uses_snapshot = self._reconciler.uses_snapshot(category) and self._snapshot_store is not None
        if uses_snapshot:
            snapshot = await asyncio.to_thread(self._snapshot_store.load)
            if self._is_stale(category, generation):
                return self._discard(category, generation, result)

        outcome = self._reconciler.reconcile(
            snapshot,
            result,
            category=category,
            previous_records=self._store.records(category),
        )
        records = tuple(self._scorer.annotate(r) for r in outcome.records)

        if uses_snapshot and outcome.snapshot is not None:
            try:
                await asyncio.to_thread(self._snapshot_store.save, outcome.snapshot)
            except SnapshotError as exc:
                logger.warning("%s", exc)
                diagnostics.append(Diagnostic(
                    DiagnosticKind.EXTERNAL_TOOL_FAILURE, str(exc), str(self._snapshot_store.path),
                ))
            if self._is_stale(category, generation):
                return self._discard(category, generation, result)

        self._store.replace(category, CategoryState(
            records=records,
            status=result.status,
            diagnostics=tuple(diagnostics),
            method=result.method,
            updated_at=datetime.now(timezone.utc),
        ))
        logger.debug(
            "Committed %d %s (%s, %d retained)",
            len(records), category.value, result.status.value, len(outcome.retained_keys),
        )
        return CategoryReport(
            category=category,
            status=result.status,
            record_count=len(records),
            retained_count=len(outcome.retained_keys),
            diagnostics=tuple(diagnostics),
            method=result.method,
        )

    def _mark_unavailable(self, category: Category, diagnostic: Diagnostic) -> CategoryReport:
        """Flag the category without touching its records or snapshot."""
        previous = self._store.state(category)
        self._store.replace(category, replace(
            previous,
            status=SourceStatus.UNAVAILABLE,
            diagnostics=(diagnostic,),
        ))
        return CategoryReport(
            category=category,
            status=SourceStatus.UNAVAILABLE,
            record_count=len(previous.records),
            diagnostics=(diagnostic,),
            committed=False,
        )

    # -- Mutations --

    async def apply(self, mutation: Mutation) -> MutationResult:
        """Apply one mutation, then refresh the affected category.

        Raises:
            MutationError: If no mutator is configured, the record is
                unknown, or the OS rejected the change.
        """
        if self._mutator is None:
            raise MutationError("No mutator configured")
        self._bind_loop()
        category = mutation.category
        if category not in self._store.categories():
            await self._refresh_category(category)

        async with self._locks[category]:
            record = self._store.find(category, mutation.identity_key)
            if record is None:
                raise MutationError(
                    f"No {category.heading.lower()} entry with identity {mutation.identity_key!r}",
                )
            result = await asyncio.to_thread(self._dispatch, record, mutation)

        if category in _LAUNCHD_CATEGORIES and self._load_state is not None:
            self._load_state.invalidate()
        await self._refresh_category(category)
        return result

    def _dispatch(self, record: LaunchRecord, mutation: Mutation) -> MutationResult:
        mutator = self._mutator
        action = mutation.action
        if action is MutationAction.ENABLE:
            return mutator.set_enabled(record, True)
        if action is MutationAction.DISABLE:
            return mutator.set_enabled(record, False)
        if action is MutationAction.REMOVE:
            return mutator.remove(record)
        if action is MutationAction.PRIORITY:
            if mutation.direction is None:
                raise MutationError("A priority change needs a direction")
            return mutator.set_priority(record, mutation.direction)
        if mutation.nice is None:
            raise MutationError("A process priority change needs a Nice value")
        return mutator.set_process_priority(record, mutation.nice)


def build_manager(settings: Settings | None = None) -> InventoryManager:
    """Wire the production object graph from ``settings``."""
    settings = settings or Settings()
    runner = CommandRunner(timeout=settings.command_timeout)
    load_state = LoadStateCache(runner, staleness=settings.load_state_staleness)
    validator = RecordValidator(LabelPolicy(settings.label_policy))
    snapshot_store = SnapshotStore(settings.snapshot_file, settings.snapshot_namespace)
    sources: dict[Category, SourceReader] = {
        Category.LOGIN_ITEMS: LoginItemSource(runner, settings.btm_database),
        Category.AGENTS: AgentDaemonSource(
            Category.AGENTS, settings.agent_paths, load_state, validator,
        ),
        Category.DAEMONS: AgentDaemonSource(
            Category.DAEMONS, settings.daemon_paths, load_state, validator,
        ),
        Category.BACKGROUND_ITEMS: BackgroundItemSource(runner, settings.btm_database),
    }
    return InventoryManager(
        sources,
        IdentityReconciler(),
        ImpactScorer(),
        InventoryStore(),
        snapshot_store,
        fetch_timeout=settings.fetch_timeout,
        mutator=SystemMutator(runner, settings.protected_prefixes, snapshot_store),
        load_state=load_state,
    )
