"""
Tests for exercise-to-muscle-group resolution.
"""

import pytest

from training_analytics.taxonomy import display_name, muscle_profile, normalize_exercise_id, primary_muscle


# Test Cases


def test_normalize_exercise_id():
    """Test case and separator folding."""
    assert normalize_exercise_id(" Bench-Press ") == "bench_press"
    assert normalize_exercise_id("Leg  Press") == "leg_press"


def test_table_lookup():
    """Test that known ids resolve through the table."""
    assert muscle_profile("bench_press") == ("chest", "triceps")
    assert muscle_profile("Deadlift") == ("hamstrings", "glutes")


@pytest.mark.parametrize(
    "exercise_id,name,expected",
    [
        ("ex_1", "Cable Lateral Raise", "shoulders"),
        ("ex_2", "Seated Leg Curl", "hamstrings"),
        ("ex_3", "Rope Tricep Pushdown", "triceps"),
        ("ex_4", "Arnold Shoulder Press", "shoulders"),
        ("ex_5", "Machine Chest Fly", "chest"),
        ("ex_6", "Bulgarian Split Squat", "quads"),
        ("ex_7", "Romanian Deadlift", "hamstrings"),
        ("ex_8", "Seated Cable Row", "back"),
        ("ex_9", "Hammer Curl", "biceps"),
        ("ex_10", "Standing Calf Raise", "calves"),
        ("ex_11", "Single Leg Press", "quads"),
    ],
)
def test_keyword_inference(exercise_id, name, expected):
    """Test keyword inference from display names."""
    assert primary_muscle(exercise_id, name) == expected


def test_inference_from_slug():
    """Test that the id is used when no name is known."""
    assert primary_muscle("cable-lat-pulldown") == "back"


def test_unknown_exercise():
    """Test that unmatched exercises resolve to None."""
    assert muscle_profile("mystery_movement") is None
    assert primary_muscle("mystery_movement") is None


def test_display_name():
    """Test cached names win and ids are title-cased otherwise."""
    assert display_name("bench_press", "Bench Press (Barbell)") == "Bench Press (Barbell)"
    assert display_name("romanian-deadlift") == "Romanian Deadlift"
    assert display_name("squat", "   ") == "Squat"
