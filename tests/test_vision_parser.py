import pytest

from caltrack.vision_parser import parse_vision_response


def test_parses_food_list_and_calories():
    parsed = parse_vision_response("chicken, rice, broccoli\nEstimated total calories: 450")
    assert parsed["food_items"] == ["chicken", "rice", "broccoli"]
    assert parsed["estimated_calories"] == 450


def test_blank_lines_and_empty_tokens_are_dropped():
    parsed = parse_vision_response("\n  salmon ,, , potatoes,  \n\n  Estimated total calories: 620  \n")
    assert parsed["food_items"] == ["salmon", "potatoes"]
    assert parsed["estimated_calories"] == 620


def test_calorie_label_is_case_insensitive():
    parsed = parse_vision_response("pizza\nESTIMATED TOTAL CALORIES: 800")
    assert parsed["estimated_calories"] == 800


def test_falls_back_to_loose_calories_label():
    parsed = parse_vision_response("pasta\nRoughly this many calories: 700 in total")
    assert parsed["estimated_calories"] == 700


def test_calories_only_read_after_first_line():
    parsed = parse_vision_response("Estimated total calories: 300")
    assert parsed["food_items"] == ["Estimated total calories: 300"]
    assert parsed["estimated_calories"] is None


@pytest.mark.parametrize("calories", [1, 450, 9999])
def test_calories_inside_bounds_are_kept(calories):
    parsed = parse_vision_response(f"soup\nEstimated total calories: {calories}")
    assert parsed["estimated_calories"] == calories


@pytest.mark.parametrize("value", ["0", "10000", "25000", "-50", "about five hundred", "N"])
def test_calories_outside_bounds_or_non_numeric_are_null(value):
    parsed = parse_vision_response(f"soup\nEstimated total calories: {value}")
    assert parsed["estimated_calories"] is None


def test_empty_reply():
    parsed = parse_vision_response("")
    assert parsed["food_items"] == []
    assert parsed["estimated_calories"] is None


def test_only_newlines_split_lines():
    parsed = parse_vision_response("eggs toast, jam\x0cbutter\r\nEstimated total calories: 300")
    assert parsed["food_items"] == ["eggs toast", "jam\x0cbutter"]
    assert parsed["estimated_calories"] == 300


def test_non_ascii_digits_are_not_calories():
    parsed = parse_vision_response("rice\nEstimated total calories: ٤٥٠")
    assert parsed["estimated_calories"] is None
