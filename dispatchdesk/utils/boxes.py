"""
Box number parsing for dispatch order line items.

Operators type box numbers as free text ("1, 2, 5"). Tokens that are not
integers are dropped silently.
"""
from typing import List, Optional


def parse_box_numbers(box_str: Optional[str]) -> List[dict]:
    """
    "1, 2, x, 7" -> [{"box_number": 1}, {"box_number": 2}, {"box_number": 7}]
    """
    if not box_str:
        return []
    boxes = []
    for token in box_str.split(","):
        token = token.strip()
        try:
            boxes.append({"box_number": int(token)})
        except ValueError:
            continue
    return boxes


def format_box_numbers(boxes) -> str:
    """Inverse of parse_box_numbers for display: [{"box_number": 1}, ...] -> "1, 2"."""
    numbers = []
    for box in boxes or []:
        number = box.get("box_number") if isinstance(box, dict) else getattr(box, "box_number", None)
        if number is not None:
            numbers.append(str(number))
    return ", ".join(numbers)
