"""Answer checking, attempt totals, leaderboard ranks and attempt timing."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Collection, Dict, Iterable, List, Optional, Sequence

from app.models.questions import OPTION_KEYED_TYPES, QuestionType


def normalize_answer(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def is_blank(value: Any) -> bool:
    return normalize_answer(value) == ""


def is_answer_correct(
    question_type: QuestionType, options: Optional[Dict[str, Any]], correct_answer: str, submitted: Any
) -> bool:
    """Case-insensitive match; option-keyed types also accept the key of the right option."""
    given = normalize_answer(submitted)
    if not given:
        return False
    expected = normalize_answer(correct_answer)
    if given == expected:
        return True
    if question_type in OPTION_KEYED_TYPES and isinstance(options, dict):
        for key, value in options.items():
            if normalize_answer(key) == given and normalize_answer(value) == expected:
                return True
    return False


def marks_for_answer(
    is_correct: bool, submitted: Any, marks: float, has_negative_marking: bool, negative_marks: float
) -> float:
    if is_correct:
        return marks
    if has_negative_marking and not is_blank(submitted):
        return -(negative_marks or 0)
    return 0


def per_question_marks(total_marks: float, question_count: int) -> float:
    """Marks a single question is worth when a test splits its total evenly."""
    if total_marks and question_count:
        return float(int(total_marks // question_count))
    return 1.0


@dataclass
class AttemptTotals:
    total_questions: int
    answered: int
    correct: int
    wrong: int
    unattempted: int
    score: float
    accuracy: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_questions": self.total_questions,
            "answered": self.answered,
            "correct_answers": self.correct,
            "wrong_answers": self.wrong,
            "unattempted": self.unattempted,
            "score": self.score,
            "accuracy": self.accuracy,
        }


def summarize_answers(answers: Iterable[Any], total_questions: int,
                      question_ids: Optional[Collection[int]] = None) -> AttemptTotals:
    """Totals for an attempt computed only from its stored answer rows.

    When `question_ids` is given, rows for questions no longer on the test are ignored.
    """
    answered = correct = 0
    score = 0.0
    for answer in answers:
        if question_ids is not None and answer.question_id not in question_ids:
            continue
        if is_blank(answer.answer):
            continue
        answered += 1
        if answer.is_correct:
            correct += 1
        score += answer.marks_obtained or 0
    accuracy = round(correct / total_questions * 100, 2) if total_questions else 0.0
    return AttemptTotals(
        total_questions=total_questions,
        answered=answered,
        correct=correct,
        wrong=max(answered - correct, 0),
        unattempted=max(total_questions - answered, 0),
        score=round(score, 2),
        accuracy=accuracy,
    )


def elapsed_seconds(start: Optional[datetime], end: datetime) -> int:
    if start is None:
        return 0
    return max(int((end - start).total_seconds()), 0)


def leaderboard_order(attempts: Sequence[Any]) -> List[Any]:
    """Highest score first, then fastest, then earliest attempt."""
    return sorted(
        attempts,
        key=lambda a: (
            -(a.score or 0),
            a.time_taken_seconds if a.time_taken_seconds is not None else float("inf"),
            a.created_at or datetime.max,
        ),
    )


def competition_ranks(scores: Sequence[float]) -> List[int]:
    """Rank for each score in an already sorted list.

    Equal scores share a rank and the rank of a score is one more than the
    number of strictly better scores, e.g. 90, 90, 80 -> 1, 1, 3.
    """
    ranks = []
    for index, score in enumerate(scores):
        if index and score == scores[index - 1]:
            ranks.append(ranks[-1])
        else:
            ranks.append(index + 1)
    return ranks


def rank_of(score: float, all_scores: Iterable[float]) -> int:
    return 1 + sum(1 for other in all_scores if other > score)


def attempt_deadline(
    start_time: datetime, time_limit_minutes: Optional[int], end_time_scheduled: Optional[datetime]
) -> Optional[datetime]:
    """Earlier of the test's scheduled end and the attempt's own time limit."""
    candidates = []
    if time_limit_minutes:
        candidates.append(start_time + timedelta(minutes=time_limit_minutes))
    if end_time_scheduled is not None:
        candidates.append(end_time_scheduled)
    return min(candidates) if candidates else None


def _clock(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def time_status(deadline: Optional[datetime], grace_minutes: int, now: datetime) -> Dict[str, Any]:
    """Remaining time and warning level for an attempt."""
    if deadline is None:
        return {
            "remaining_time": None,
            "remaining_minutes": None,
            "remaining_seconds": None,
            "grace_remaining_time": None,
            "warning_level": "none",
            "warning_message": None,
            "is_in_grace_period": False,
            "test_ended": False,
        }

    grace_end = deadline + timedelta(minutes=grace_minutes or 0)
    remaining = max(0, int((deadline - now).total_seconds()))
    grace_remaining = max(0, int((grace_end - now).total_seconds()))
    minutes = remaining // 60

    if remaining <= 0:
        level, message = "ended", "Test has ended. Submitting your answers..."
    elif minutes <= 2:
        level, message = "critical", f"Test ends in {_clock(remaining)} - Submit now!"
    elif minutes <= 5:
        level, message = "warning", f"Test ends in {_clock(remaining)}"
    elif minutes <= 10:
        level, message = "notice", f"Test ends in {_clock(remaining)}"
    else:
        level, message = "none", None

    return {
        "remaining_time": remaining,
        "remaining_minutes": minutes,
        "remaining_seconds": remaining % 60,
        "grace_remaining_time": grace_remaining,
        "warning_level": level,
        "warning_message": message,
        "is_in_grace_period": remaining <= 0 and grace_remaining > 0,
        "test_ended": remaining <= 0 and grace_remaining <= 0,
    }
