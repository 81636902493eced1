"""
Analytics API Routes

Endpoints for analytics snapshots, recovery, efficiency and fatigue prediction.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from training_analytics.adapters import LocalSessionAdapter, RemoteSessionAdapter
from training_analytics.api.models.requests import (
    AnalyticsRequest,
    EfficiencyRequest,
    FatiguePredictionRequest,
    SessionHistoryRequest,
)
from training_analytics.api.models.responses import (
    AnalyticsResponse,
    EfficiencyResponse,
    FatiguePredictionResponse,
    RecoveryResponse,
)
from training_analytics.config import AnalyticsContext
from training_analytics.engine import AnalyticsEngine
from training_analytics.hierarchical import predict_fatigue_next_set
from training_analytics.reconciler import reconcile
from training_analytics.recovery import overall_readiness
from training_analytics.schemas import AnalyticsView, WorkoutSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _engine_for(payload: SessionHistoryRequest, request: Request) -> AnalyticsEngine:
    """Engine bound to this request's user, reference time and the app-wide cache."""
    context = AnalyticsContext(
        user_id=payload.user_id,
        model_cache=getattr(request.app.state, "model_cache", None),
        **({"as_of": payload.as_of} if payload.as_of is not None else {}),
    )
    return AnalyticsEngine(context)


def _sessions_for(payload: SessionHistoryRequest, engine: AnalyticsEngine) -> List[WorkoutSession]:
    """Adapt raw records from both sources and reconcile them."""
    config = engine.config
    local = LocalSessionAdapter(target_unit=config.weight_unit).adapt_records(payload.local_records)
    remote = RemoteSessionAdapter(target_unit=config.weight_unit).adapt_records(payload.remote_records)
    return reconcile(local, remote + list(payload.sessions), config)


@router.post("/analytics", response_model=AnalyticsResponse)
async def analytics_snapshot(payload: AnalyticsRequest, request: Request) -> AnalyticsResponse:
    """
    Compute an analytics snapshot.

    Views are independent: a view lacking data (fewer than 3 valid sessions)
    is returned empty alongside a warning rather than failing the request.

    Args:
        payload: AnalyticsRequest with session history and requested views

    Returns:
        AnalyticsResponse with the snapshot and data sufficiency warnings

    Raises:
        HTTPException: If the snapshot cannot be computed
    """
    try:
        engine = _engine_for(payload, request)
        sessions = _sessions_for(payload, engine)
        snapshot = engine.snapshot(sessions, payload.views)

        warnings = []
        if len(sessions) < engine.config.min_sessions:
            warnings.append(
                f"Only {len(sessions)} valid session(s); log at least "
                f"{engine.config.min_sessions} workouts with working sets to unlock load analytics"
            )
        return AnalyticsResponse(snapshot=snapshot, warnings=warnings)

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Analytics snapshot failed: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analytics failed: {str(e)}",
        )


@router.post("/analytics/recovery", response_model=RecoveryResponse)
async def analytics_recovery(payload: SessionHistoryRequest, request: Request) -> RecoveryResponse:
    """
    Per-muscle-group recovery profiles, least recovered first.

    Uses the personal recovery rate when enough history exists to fit it.
    """
    try:
        engine = _engine_for(payload, request)
        sessions = _sessions_for(payload, engine)
        snapshot = engine.snapshot(sessions, [AnalyticsView.HIERARCHICAL, AnalyticsView.RECOVERY])
        if snapshot.recovery_profiles is None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Recovery profiles could not be computed",
            )
        return RecoveryResponse(
            profiles=snapshot.recovery_profiles,
            overall_readiness=overall_readiness(snapshot.recovery_profiles),
        )

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Recovery estimation failed: {str(e)}",
        )


@router.post("/analytics/efficiency", response_model=EfficiencyResponse)
async def analytics_efficiency(payload: EfficiencyRequest, request: Request) -> EfficiencyResponse:
    """Stimulus-to-fatigue leaderboard."""
    try:
        engine = _engine_for(payload, request)
        engine.context.config = engine.config.model_copy(update={"sfr_leaderboard_size": payload.limit})
        sessions = _sessions_for(payload, engine)
        snapshot = engine.snapshot(sessions, [AnalyticsView.HIERARCHICAL, AnalyticsView.EFFICIENCY])
        insights = snapshot.sfr_insights or []
        return EfficiencyResponse(insights=insights, count=len(insights))

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Efficiency ranking failed: {str(e)}",
        )


@router.post("/analytics/predict", response_model=FatiguePredictionResponse)
async def analytics_predict(
    payload: FatiguePredictionRequest, request: Request
) -> FatiguePredictionResponse:
    """
    Predict fatigue after the next set of an exercise.

    Raises:
        HTTPException: 422 if the history is too short to fit a fatigue model
    """
    try:
        engine = _engine_for(payload, request)
        sessions = _sessions_for(payload, engine)
        model = engine.fatigue_model(sessions)
        if model is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"At least {engine.config.min_sessions} valid sessions are required to fit a fatigue model",
            )
        prediction = predict_fatigue_next_set(
            model, payload.exercise_id, payload.sets_completed_today, engine.config
        )
        return FatiguePredictionResponse(prediction=prediction, fitted_sessions=model.session_count)

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Fatigue prediction failed: {str(e)}",
        )
