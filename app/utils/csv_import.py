"""Question rows from CSV text.

Two layouts are accepted:

* standard: ``question_text,type,correct_answer,marks`` plus any of
  ``difficulty,topic,explanation,options,left_side,right_side``; ``options``
  and the match sides are JSON.
* four-option: ``question,option1,option2,option3,option4,answer``, always MCQ.
  The answer must repeat one of the options.
"""

import csv
import io
import json
from typing import Any, Dict, List, Tuple
from app.errors import ValidationError

REQUIRED_HEADERS = ("question_text", "type", "correct_answer", "marks")
FOUR_OPTION_HEADERS = ("question", "option1", "option2", "option3", "option4", "answer")
JSON_COLUMNS = ("options", "left_side", "right_side")
TEXT_COLUMNS = ("difficulty", "topic", "explanation")
OPTION_KEYS = ("A", "B", "C", "D")


def _cell(row: Dict[str, Any], name: str) -> str:
    return (row.get(name) or "").strip()


def _four_option_row(row: Dict[str, Any]) -> Dict[str, Any]:
    text = _cell(row, "question")
    values = [_cell(row, f"option{i}") for i in range(1, 5)]
    answer = _cell(row, "answer")
    if not text:
        raise ValueError("Question text is required")
    if not all(values):
        raise ValueError("All four options (option1, option2, option3, option4) are required")
    if not answer:
        raise ValueError("Answer is required")
    matched = [value for value in values if value == answer] or \
        [value for value in values if value.lower() == answer.lower()]
    if not matched:
        raise ValueError(f'Answer "{answer}" does not match any of the options')
    return {
        "question_text": text,
        "type": "MCQ",
        "options": dict(zip(OPTION_KEYS, values)),
        "correct_answer": matched[0],
    }


def _standard_row(row: Dict[str, Any]) -> Dict[str, Any]:
    parsed = {
        "question_text": _cell(row, "question_text"),
        "type": (_cell(row, "type") or "MCQ").upper(),
        "correct_answer": _cell(row, "correct_answer"),
    }
    marks = _cell(row, "marks")
    if marks:
        try:
            parsed["marks"] = float(marks)
        except ValueError:
            raise ValueError(f"Invalid marks: {marks}")
    for name in TEXT_COLUMNS:
        if _cell(row, name):
            parsed[name] = _cell(row, name)
    if "difficulty" in parsed:
        parsed["difficulty"] = parsed["difficulty"].upper()
    for name in JSON_COLUMNS:
        raw = _cell(row, name)
        if not raw:
            continue
        try:
            parsed[name] = json.loads(raw)
        except json.JSONDecodeError:
            raise ValueError(f"Column '{name}' is not valid JSON")
    return parsed


def parse_question_csv(text: str) -> Tuple[List[Tuple[int, Dict[str, Any]]], List[Dict[str, Any]]]:
    """Parse CSV text into ``(row number, question dict)`` pairs plus per-row errors"""
    reader = csv.DictReader(io.StringIO(text.strip()))
    if not reader.fieldnames:
        raise ValidationError("CSV must have a header row and at least one data row")
    reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    headers = set(reader.fieldnames)

    four_option = all(name in headers for name in FOUR_OPTION_HEADERS)
    if not four_option:
        missing = [name for name in REQUIRED_HEADERS if name not in headers]
        if missing:
            raise ValidationError(f"Missing required headers: {', '.join(missing)}")

    rows = []
    errors = []
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        try:
            rows.append((reader.line_num, _four_option_row(row) if four_option else _standard_row(row)))
        except ValueError as e:
            errors.append({"row": reader.line_num, "error": str(e)})
    if not rows and not errors:
        raise ValidationError("CSV must have a header row and at least one data row")
    return rows, errors
