import pytest

from minesight.ai.filename_parser import NO_HINT, normalize_label, parse_filename


def test_minutes_dot_seconds_with_min_marker():
    hint = parse_filename("Collision_between_two_LH_machines_at_01.11_min.mp4")
    assert hint.violation_label == "Collision between two LH machines"
    assert hint.timestamp_seconds == 71
    assert hint.found


def test_minutes_dot_seconds_with_numeric_prefix():
    hint = parse_filename("1760000000000_Broken_cylinder_at_2.05 min.mp4")
    assert hint.violation_label == "Broken cylinder"
    assert hint.timestamp_seconds == 125


def test_underscore_hours_minutes_seconds():
    hint = parse_filename("No_Helmet_at_00_00_05.mp4")
    assert hint.violation_label == "No Helmet"
    assert hint.timestamp_seconds == 5


def test_underscore_hms_full_arithmetic():
    hint = parse_filename("42_Human_handling_a_drill_at_01_02_03.avi")
    assert hint.violation_label == "Human handling a drill"
    assert hint.timestamp_seconds == 3600 + 120 + 3


def test_spaced_at_variant():
    hint = parse_filename("Human using beam on drill at 00_01_30.mov")
    assert hint.violation_label == "Human using beam on drill"
    assert hint.timestamp_seconds == 90


def test_case_insensitive_markers():
    hint = parse_filename("Oil_spray_AT_00.30_MIN.mp4")
    assert hint.violation_label == "Oil spray"
    assert hint.timestamp_seconds == 30


@pytest.mark.parametrize("filename", [
    "random_footage.mp4",
    "shift_2_camera_4.mp4",
    "at_00_00_05.mp4",
    "",
    None,
])
def test_no_pattern_yields_no_hint(filename):
    hint = parse_filename(filename)
    assert hint == NO_HINT
    assert hint.violation_label is None
    assert hint.timestamp_seconds is None
    assert not hint.found


def test_first_pattern_wins_on_ambiguous_names():
    # Both a MM.SS and an HH_MM_SS timestamp are present; pattern 1 is tried first
    hint = parse_filename("Fall_at_00_00_09_then_at_01.10_min.mp4")
    assert hint.timestamp_seconds == 70
    assert hint.violation_label == "Fall at 00 00 09 then"


def test_label_does_not_swallow_timestamp_digits():
    hint = parse_filename("Zone_7_entry_at_00_10_00.mp4")
    assert hint.violation_label == "Zone 7 entry"
    assert hint.timestamp_seconds == 600


def test_normalize_label():
    assert normalize_label("  No_Safety_Vest_ ") == "No Safety Vest"
