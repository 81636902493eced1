"""
Source adapters: map external session records onto WorkoutSession.

Two record schemas are supported:
- Local offline cache: camelCase keys, ids prefixed with "session_", sets
  under "sets", per-set weightUnit
- Remote store rows: snake_case keys, sets under "set_logs", soft-deleted
  rows marked by a non-null "deleted_at"

Weights are converted into the canonical unit. Numeric fields that cannot be
parsed become None so the reconciler filters the affected sets.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from training_analytics.schemas import SetRecord, SetType, WorkoutSession

logger = logging.getLogger(__name__)

LBS_PER_KG = 2.20462
SET_TYPES = {t.value for t in SetType}


class RecordAdapterError(ValueError):
    """Raised when a raw record cannot be mapped to a WorkoutSession."""


def convert_weight(value: Optional[float], from_unit: str, to_unit: str) -> Optional[float]:
    """Convert between kg and lbs; None passes through."""
    if value is None or from_unit == to_unit:
        return value
    if from_unit == "lbs" and to_unit == "kg":
        return value / LBS_PER_KG
    if from_unit == "kg" and to_unit == "lbs":
        return value * LBS_PER_KG
    raise RecordAdapterError(f"Unsupported weight unit conversion: {from_unit} -> {to_unit}")


def _number(value: Any) -> Optional[float]:
    """Parse a numeric field; unparseable values become None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _calendar_date(value: Any) -> Any:
    """Keep only the date part of ISO strings ("2024-03-01T09:00:00Z" -> "2024-03-01")."""
    if isinstance(value, str):
        return value[:10] or None
    return value or None


def _set_type(value: Any) -> SetType:
    normalized = str(value or "").strip().lower()
    return SetType(normalized) if normalized in SET_TYPES else SetType.STRAIGHT


def _unit(value: Any, default: str) -> str:
    normalized = str(value or "").strip().lower()
    if normalized in ("kg", "kgs"):
        return "kg"
    if normalized in ("lb", "lbs"):
        return "lbs"
    return default


class SessionAdapter:
    """
    Base adapter. Subclasses map one raw record dict to a WorkoutSession.

    Args:
        target_unit: Canonical weight unit of the engine
        default_unit: Unit assumed when a set does not declare one
    """

    def __init__(self, target_unit: str = "kg", default_unit: str = "lbs"):
        self.target_unit = target_unit
        self.default_unit = default_unit

    def include(self, record: Dict[str, Any]) -> bool:
        """Whether the record should be adapted at all."""
        return True

    def adapt(self, record: Dict[str, Any]) -> WorkoutSession:
        raise NotImplementedError

    def adapt_records(self, records: Iterable[Dict[str, Any]]) -> List[WorkoutSession]:
        """
        Adapt a batch, logging and skipping records that cannot be mapped.

        Args:
            records: Raw records from the source

        Returns:
            Successfully adapted sessions, in input order
        """
        sessions = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning("Skipping record %d: expected an object, got %s", index, type(record).__name__)
                continue
            if not self.include(record):
                continue
            try:
                sessions.append(self.adapt(record))
            except RecordAdapterError as e:
                logger.warning("Skipping record %d: %s", index, e)
        return sessions

    def _weight(self, value: Any, unit: Any) -> Optional[float]:
        return convert_weight(_number(value), _unit(unit, self.default_unit), self.target_unit)

    def _raw_sets(self, record: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
        """Nested set dicts under key; anything other than a list rejects the record."""
        value = record.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise RecordAdapterError(f"Expected a list under {key!r}, got {type(value).__name__}")
        return [s for s in value if isinstance(s, dict)]

    def _build_set(self, **fields: Any) -> SetRecord:
        try:
            return SetRecord(**fields)
        except ValidationError as e:
            raise RecordAdapterError(f"Invalid set for {fields.get('exercise_id')}: {e.error_count()} field error(s)") from e

    def _build_session(self, fields: Dict[str, Any]) -> WorkoutSession:
        if not fields.get("id"):
            raise RecordAdapterError("Record has no id")
        try:
            return WorkoutSession(**fields)
        except ValidationError as e:
            raise RecordAdapterError(f"Invalid record {fields.get('id')}: {e.error_count()} field error(s)") from e


class LocalSessionAdapter(SessionAdapter):
    """Offline cache records (camelCase)."""

    def _adapt_set(self, raw: Dict[str, Any]) -> SetRecord:
        exercise_id = raw.get("exerciseId") or raw.get("exerciseSlug")
        if not exercise_id:
            raise RecordAdapterError("Set has no exercise id")
        return self._build_set(
            exercise_id=str(exercise_id),
            exercise_name=raw.get("exerciseName"),
            actual_weight=self._weight(raw.get("actualWeight"), raw.get("weightUnit")),
            actual_reps=_number(raw.get("actualReps")),
            actual_rpe=_number(raw.get("actualRPE")),
            prescribed_rpe=_number(raw.get("prescribedRPE", raw.get("targetRPE"))),
            completed=raw.get("completed") is not False,
            set_type=_set_type(raw.get("setType")),
            reached_failure=bool(raw.get("reachedFailure", False)),
        )

    def adapt(self, record: Dict[str, Any]) -> WorkoutSession:
        sets = [self._adapt_set(s) for s in self._raw_sets(record, "sets")]
        return self._build_session(
            {
                "id": str(record.get("id") or ""),
                "date": _calendar_date(record.get("date")),
                "start_time": record.get("startTime") or None,
                "end_time": record.get("endTime") or None,
                "total_volume_load": _number(record.get("totalVolumeLoad")),
                "average_rpe": _number(record.get("averageRPE")),
                "session_rpe": _number(record.get("sessionRPE")),
                "sets": sets,
            }
        )


class RemoteSessionAdapter(SessionAdapter):
    """Remote store rows (snake_case, nested set_logs)."""

    def include(self, record: Dict[str, Any]) -> bool:
        if record.get("deleted_at"):
            logger.debug("Skipping soft-deleted session %s", record.get("id"))
            return False
        return True

    def _adapt_set(self, raw: Dict[str, Any]) -> SetRecord:
        exercise_id = raw.get("exercise_id") or raw.get("exercise_slug")
        if not exercise_id:
            raise RecordAdapterError("Set log has no exercise id")
        return self._build_set(
            exercise_id=str(exercise_id),
            exercise_name=raw.get("exercise_name") or raw.get("exercise_slug"),
            actual_weight=self._weight(raw.get("actual_weight"), raw.get("weight_unit")),
            actual_reps=_number(raw.get("actual_reps")),
            actual_rpe=_number(raw.get("actual_rpe")),
            prescribed_rpe=_number(raw.get("prescribed_rpe")),
            completed=raw.get("completed") is not False,
            set_type=_set_type(raw.get("set_type")),
            reached_failure=bool(raw.get("reached_failure", False)),
        )

    def adapt(self, record: Dict[str, Any]) -> WorkoutSession:
        sets = [self._adapt_set(s) for s in self._raw_sets(record, "set_logs")]
        return self._build_session(
            {
                "id": str(record.get("id") or ""),
                "date": _calendar_date(record.get("date")),
                "start_time": record.get("start_time") or None,
                "end_time": record.get("end_time") or None,
                "total_volume_load": _number(record.get("total_volume_load")),
                "average_rpe": _number(record.get("average_rpe")),
                "session_rpe": _number(record.get("session_rpe")),
                "sets": sets,
            }
        )
