# caltrack/vision_parser.py
import re

MIN_CALORIES = 0
MAX_CALORIES = 10000

_TOTAL_CALORIES = re.compile(r"estimated\s+total\s+calories:\s*(\d+)", re.IGNORECASE | re.ASCII)
_ANY_CALORIES = re.compile(r"calories:\s*(\d+)", re.IGNORECASE | re.ASCII)
# Only \n and \r\n end a line
_LINE_BREAK = re.compile(r"\r?\n")


def parse_vision_response(text: str):
    """
    Split the model reply into the food list (first line) and a calorie estimate
    from the following lines. Calories outside (0, 10000) count as no estimate.
    """
    lines = [line.strip() for line in _LINE_BREAK.split(text)]
    lines = [line for line in lines if line]

    food_list = lines[0] if lines else ""
    food_items = [food.strip() for food in food_list.split(",") if food.strip()]

    rest = " ".join(lines[1:])
    match = _TOTAL_CALORIES.search(rest) or _ANY_CALORIES.search(rest)

    estimated_calories = None
    if match:
        calories = int(match.group(1))
        if MIN_CALORIES < calories < MAX_CALORIES:
            estimated_calories = calories

    return {
        "food_list": food_list,
        "food_items": food_items,
        "estimated_calories": estimated_calories,
    }
