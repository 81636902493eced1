"""
Acute:Chronic Workload Ratio (ACWR) and Foster monotony/strain.

Research foundations:
- Hulin et al. (2016): ACWR 0.8-1.3 is the low-risk "sweet spot"; > 2.0 is
  associated with a sharp rise in injury risk
- Foster (1998): monotony = mean / SD of daily load; strain = load x monotony

Windows are anchored at the latest sample's calendar date, so the metrics
describe the athlete's most recent training block rather than wall-clock time.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.reconciler import (
    fallback_volume_load,
    session_timestamp,
    valid_sets,
)
from training_analytics.schemas import LoadMetrics, LoadStatus, TrainingLoadSample, WorkoutSession
from training_analytics.stats import clamp, foster_monotony


LOAD_RECOMMENDATIONS: Dict[LoadStatus, str] = {
    LoadStatus.LOW: (
        "Training volume too low. Increase training frequency or intensity "
        "to maintain adaptations."
    ),
    LoadStatus.MAINTENANCE: (
        "Maintenance phase. Sufficient to preserve adaptations but not to "
        "drive further progress."
    ),
    LoadStatus.OPTIMAL: (
        "Optimal training load. Well positioned for continued adaptation "
        "with minimal injury risk."
    ),
    LoadStatus.BUILDING: (
        "Progressive overload zone. Monitor fatigue accumulation and protect recovery."
    ),
    LoadStatus.OVERREACHING: (
        "Functional overreaching. Plan a deload within 1-2 weeks to avoid maladaptation."
    ),
    LoadStatus.DANGER: (
        "Excessive acute load spike. Very high injury risk. Reduce volume by "
        "about 50% immediately."
    ),
}

HIGH_MONOTONY_WARNING = " High training monotony detected: add variation to prevent maladaptation."


def session_volume_load(session: WorkoutSession, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Volume load of a session: sum(weight x reps) over valid sets.

    Falls back to the pre-computed total volume when no set is valid.
    """
    calculated = sum(s.actual_weight * s.actual_reps for s in valid_sets(session, config))
    if calculated > 0:
        return calculated
    return fallback_volume_load(session)


def build_load_samples(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> List[TrainingLoadSample]:
    """One TrainingLoadSample per timestamped session."""
    samples = []
    for session in sessions:
        timestamp = session_timestamp(session)
        if timestamp is None:
            continue
        samples.append(TrainingLoadSample(date=timestamp, load=session_volume_load(session, config)))
    return samples


def classify_ratio(ratio: float) -> LoadStatus:
    """Map an ACWR value onto its status band."""
    if ratio < 0.5:
        return LoadStatus.LOW
    if ratio < 0.8:
        return LoadStatus.MAINTENANCE
    if ratio <= 1.3:
        return LoadStatus.OPTIMAL
    if ratio <= 1.5:
        return LoadStatus.BUILDING
    if ratio <= 2.0:
        return LoadStatus.OVERREACHING
    return LoadStatus.DANGER


def _daily_totals(samples: List[TrainingLoadSample]) -> Dict[date, float]:
    totals: Dict[date, float] = {}
    for sample in samples:
        day = sample.date.date()
        totals[day] = totals.get(day, 0.0) + sample.load
    return totals


def aggregate(
    samples: List[TrainingLoadSample], config: EngineConfig = DEFAULT_CONFIG
) -> Optional[LoadMetrics]:
    """
    Compute ACWR, monotony and strain from per-session load samples.

    Args:
        samples: Session loads in any order
        config: Window lengths, neutral ratio and clamp bounds

    Returns:
        LoadMetrics with every value clamped, or None for no samples
    """
    if not samples:
        return None

    daily = _daily_totals(samples)
    anchor = max(daily)
    acute_start = anchor - timedelta(days=config.acute_window_days - 1)
    chronic_start = anchor - timedelta(days=config.chronic_window_days - 1)

    acute_load = sum(load for day, load in daily.items() if day >= acute_start)
    chronic_total = sum(load for day, load in daily.items() if day >= chronic_start)
    weekly_chronic = chronic_total / (config.chronic_window_days / 7)

    # Chronic load is only meaningful when some of it predates the acute window
    has_baseline = weekly_chronic > 0 and any(
        chronic_start <= day < acute_start and load > 0 for day, load in daily.items()
    )
    ratio = acute_load / weekly_chronic if has_baseline else config.neutral_ratio

    acute_days = [
        daily.get(acute_start + timedelta(days=offset), 0.0)
        for offset in range(config.acute_window_days)
    ]
    monotony = clamp(foster_monotony(acute_days), 0.0, config.max_monotony)

    acute_load = clamp(acute_load, 0.0, config.max_load)
    ratio = clamp(ratio, 0.0, config.max_ratio)
    strain = clamp(acute_load * monotony, 0.0, config.max_strain)
    status = classify_ratio(ratio)

    recommendation = LOAD_RECOMMENDATIONS[status]
    if monotony > config.high_monotony_threshold:
        recommendation += HIGH_MONOTONY_WARNING

    return LoadMetrics(
        ratio=ratio,
        status=status,
        acute_load=acute_load,
        chronic_load=clamp(weekly_chronic, 0.0, config.max_load),
        monotony=monotony,
        strain=strain,
        has_chronic_baseline=has_baseline,
        recommendation=recommendation,
    )
