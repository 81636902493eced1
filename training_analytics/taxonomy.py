"""
Exercise taxonomy: which muscle group an exercise primarily trains.

Resolution order:
1. Explicit table keyed by normalized exercise id
2. Keyword inference from the exercise name (or the id when no name is known)
3. None (exercise does not count toward any tracked muscle group)
"""

import re
from typing import Dict, List, Optional, Tuple


MUSCLE_GROUPS: List[str] = [
    "chest",
    "back",
    "shoulders",
    "triceps",
    "biceps",
    "quads",
    "hamstrings",
    "glutes",
    "calves",
    "core",
]

# (primary, secondary)
EXERCISE_MUSCLES: Dict[str, Tuple[str, Optional[str]]] = {
    "bench_press": ("chest", "triceps"),
    "incline_bench": ("chest", "triceps"),
    "decline_bench": ("chest", "triceps"),
    "db_bench_press": ("chest", "triceps"),
    "dips": ("chest", "triceps"),
    "overhead_press": ("shoulders", "triceps"),
    "lateral_raise": ("shoulders", None),
    "pull_up": ("back", "biceps"),
    "chin_up": ("back", "biceps"),
    "barbell_row": ("back", "biceps"),
    "dumbbell_row": ("back", "biceps"),
    "lat_pulldown": ("back", "biceps"),
    "face_pull": ("back", "biceps"),
    "squat": ("quads", "glutes"),
    "back_squat": ("quads", "glutes"),
    "split_squat": ("quads", "glutes"),
    "lunges": ("quads", "glutes"),
    "leg_press": ("quads", "glutes"),
    "leg_extension": ("quads", "glutes"),
    "deadlift": ("hamstrings", "glutes"),
    "leg_curl": ("hamstrings", "glutes"),
    "hip_thrust": ("glutes", "hamstrings"),
    "tricep_extension": ("triceps", None),
    "bicep_curl": ("biceps", None),
    "calf_raise": ("calves", None),
    "plank": ("core", None),
    "ab_wheel": ("core", None),
}

# Checked in order; the first matching pattern wins
_NAME_KEYWORDS: List[Tuple[str, Tuple[str, Optional[str]]]] = [
    (r"leg press", ("quads", "glutes")),
    (r"leg curl|hamstring", ("hamstrings", None)),
    (r"tricep|skull ?crusher|pushdown", ("triceps", None)),
    (r"bench|chest|dip", ("chest", "triceps")),
    (r"overhead|shoulder press|press", ("shoulders", "triceps")),
    (r"squat|lunge", ("quads", "glutes")),
    (r"deadlift|rdl", ("hamstrings", "glutes")),
    (r"row|pull|\blats?\b|chin", ("back", "biceps")),
    (r"bicep|curl", ("biceps", None)),
    (r"calf", ("calves", None)),
    (r"plank|\babs?\b|core|hanging leg|crunch", ("core", None)),
    (r"hip thrust|glute", ("glutes", None)),
    (r"raise", ("shoulders", None)),
]


def normalize_exercise_id(exercise_id: str) -> str:
    """Lowercase, with dashes and spaces folded to underscores."""
    return re.sub(r"[\s\-]+", "_", exercise_id.strip().lower())


def display_name(exercise_id: str, exercise_name: Optional[str] = None) -> str:
    """Human-readable exercise name, derived from the id when none is cached."""
    if exercise_name and exercise_name.strip():
        return exercise_name.strip()
    words = normalize_exercise_id(exercise_id).split("_")
    return " ".join(w.capitalize() for w in words if w)


def muscle_profile(
    exercise_id: str, exercise_name: Optional[str] = None
) -> Optional[Tuple[str, Optional[str]]]:
    """
    Resolve (primary, secondary) muscle groups for an exercise.

    Args:
        exercise_id: Catalog id or slug
        exercise_name: Optional display name used for keyword inference

    Returns:
        (primary, secondary) tuple, or None when the exercise is unknown
    """
    normalized = normalize_exercise_id(exercise_id)
    if normalized in EXERCISE_MUSCLES:
        return EXERCISE_MUSCLES[normalized]

    text = (exercise_name or normalized.replace("_", " ")).lower()
    for pattern, profile in _NAME_KEYWORDS:
        if re.search(pattern, text):
            return profile
    return None


def primary_muscle(exercise_id: str, exercise_name: Optional[str] = None) -> Optional[str]:
    profile = muscle_profile(exercise_id, exercise_name)
    return profile[0] if profile else None
