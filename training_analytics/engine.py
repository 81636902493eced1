"""
Analytics engine: assembles requested views into an AnalyticsSnapshot.

Each view is computed independently. A view that fails is logged and left
empty; the rest of the snapshot is still returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

from training_analytics import efficiency, fitness_fatigue, load, recovery
from training_analytics.adapters import LocalSessionAdapter, RemoteSessionAdapter, SessionAdapter
from training_analytics.config import DEFAULT_CONFIG, AnalyticsContext, EngineConfig
from training_analytics.insights import generate_insights
from training_analytics.model_cache import get_or_build_model
from training_analytics.reconciler import reconcile
from training_analytics.schemas import (
    AnalyticsSnapshot,
    AnalyticsView,
    ExerciseRate,
    HierarchicalFatigueModel,
    PersonalStats,
    WorkoutSession,
    utc_now,
)
from training_analytics.taxonomy import display_name

logger = logging.getLogger(__name__)

ALL_VIEWS = list(AnalyticsView)

RecordFetcher = Callable[[], Iterable[Dict[str, Any]]]


def personal_stats(
    model: HierarchicalFatigueModel, sessions: List[WorkoutSession]
) -> PersonalStats:
    return PersonalStats(
        fatigue_resistance=model.user_fatigue_resistance,
        recovery_rate=model.user_recovery_rate,
        total_workouts=len(sessions),
        total_sets=model.total_samples,
    )


def exercise_rates(
    model: HierarchicalFatigueModel, sessions: List[WorkoutSession]
) -> List[ExerciseRate]:
    """Per-exercise fitted rates with display names, highest rate first."""
    names: Dict[str, Optional[str]] = {}
    for session in sessions:
        for set_record in session.sets:
            if set_record.exercise_name and not names.get(set_record.exercise_id):
                names[set_record.exercise_id] = set_record.exercise_name

    rates = [
        ExerciseRate(
            exercise_id=exercise_id,
            exercise_name=display_name(exercise_id, names.get(exercise_id)),
            fatigue_rate=factor.baseline_fatigue_rate,
            variance=factor.variance,
            sample_size=factor.sample_size,
        )
        for exercise_id, factor in model.exercise_specific_factors.items()
    ]
    rates.sort(key=lambda r: (-r.fatigue_rate, r.exercise_id))
    return rates


class AnalyticsEngine:
    """
    Compute analytics snapshots for one request context.

    Usage:
        engine = AnalyticsEngine(AnalyticsContext(user_id="u1", model_cache=cache))
        snapshot = engine.snapshot(sessions, views=[AnalyticsView.ACWR])
    """

    def __init__(self, context: Optional[AnalyticsContext] = None):
        self.context = context or AnalyticsContext()

    @property
    def config(self) -> EngineConfig:
        return self.context.config

    def _run_view(self, view: AnalyticsView, compute: Callable[[], Any]) -> Any:
        try:
            return compute()
        except Exception as e:
            logger.error("Analytics view %s failed: %s", view.value, e, exc_info=True)
            return None

    def fatigue_model(self, sessions: List[WorkoutSession]) -> Optional[HierarchicalFatigueModel]:
        """Hierarchical model for reconciled sessions, served through the cache."""
        return get_or_build_model(
            self.context.model_cache, self.context.user_id, sessions, self.config
        )

    def snapshot(
        self,
        sessions: List[WorkoutSession],
        views: Optional[Iterable[AnalyticsView]] = None,
    ) -> AnalyticsSnapshot:
        """
        Build an AnalyticsSnapshot containing the requested views.

        Args:
            sessions: Session history (reconciled again, which is a no-op for
                already reconciled input)
            views: Views to compute; all views when None

        Returns:
            Snapshot whose fields are populated only for requested views with
            sufficient data
        """
        requested = set(ALL_VIEWS if views is None else views)
        config = self.config
        sessions = reconcile([], sessions, config)
        snapshot = AnalyticsSnapshot(session_count=len(sessions), generated_at=utc_now())
        enough_data = len(sessions) >= config.min_sessions

        if AnalyticsView.ACWR in requested and enough_data:
            snapshot.acwr = self._run_view(
                AnalyticsView.ACWR,
                lambda: load.aggregate(load.build_load_samples(sessions, config), config),
            )

        if AnalyticsView.FITNESS_FATIGUE in requested:
            snapshot.fitness_fatigue = self._run_view(
                AnalyticsView.FITNESS_FATIGUE,
                lambda: fitness_fatigue.simulate(sessions, config),
            )

        model = None
        if AnalyticsView.HIERARCHICAL in requested:
            model = self._run_view(AnalyticsView.HIERARCHICAL, lambda: self.fatigue_model(sessions))
            if model is not None:
                snapshot.hierarchical_model = model
                snapshot.personal_stats = personal_stats(model, sessions)
                snapshot.exercise_rates = exercise_rates(model, sessions)

        if AnalyticsView.RECOVERY in requested:
            snapshot.recovery_profiles = self._run_view(
                AnalyticsView.RECOVERY,
                lambda: recovery.estimate(sessions, model, self.context.as_of, config),
            )

        if AnalyticsView.EFFICIENCY in requested:
            snapshot.sfr_insights = self._run_view(
                AnalyticsView.EFFICIENCY,
                lambda: efficiency.rank(sessions, model, config=config),
            )

        snapshot.insights = generate_insights(snapshot)
        logger.debug(
            "Snapshot for user %s: %d sessions, views=%s",
            self.context.user_id, len(sessions), sorted(v.value for v in requested),
        )
        return snapshot


def _fetch_and_adapt(name: str, fetch: RecordFetcher, adapter: SessionAdapter) -> List[WorkoutSession]:
    try:
        return adapter.adapt_records(list(fetch()))
    except Exception as e:
        logger.warning("Failed to load %s sessions: %s", name, e)
        return []


def load_sessions(
    local_fetch: Optional[RecordFetcher],
    remote_fetch: Optional[RecordFetcher],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[WorkoutSession]:
    """
    Fetch both sources concurrently, adapt their records and reconcile.

    A source that is missing or fails to fetch contributes no sessions; the
    other source is still used.

    Args:
        local_fetch: Callable returning raw offline-cache records
        remote_fetch: Callable returning raw remote store rows
        config: Canonical weight unit and reconciliation bounds

    Returns:
        Reconciled session history
    """
    local_adapter = LocalSessionAdapter(target_unit=config.weight_unit)
    remote_adapter = RemoteSessionAdapter(target_unit=config.weight_unit)

    with ThreadPoolExecutor(max_workers=2) as executor:
        local_future = executor.submit(
            _fetch_and_adapt, "local", local_fetch or (lambda: []), local_adapter
        )
        remote_future = executor.submit(
            _fetch_and_adapt, "remote", remote_fetch or (lambda: []), remote_adapter
        )
        local_sessions = local_future.result()
        remote_sessions = remote_future.result()

    return reconcile(local_sessions, remote_sessions, config)
