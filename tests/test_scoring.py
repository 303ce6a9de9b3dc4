from datetime import timedelta
from types import SimpleNamespace

from app.models.questions import QuestionType
from app.services import scoring
from app.utils.timeutils import utcnow

OPTIONS = {"A": "Paris", "B": "Rome", "C": "Madrid"}


def answer(text, is_correct, marks, question_id=None):
    return SimpleNamespace(answer=text, is_correct=is_correct, marks_obtained=marks, question_id=question_id)


class TestAnswerChecking:

    def test_match_ignores_case_and_surrounding_space(self):
        assert scoring.is_answer_correct(QuestionType.FILL_IN_THE_BLANK, None, "Photosynthesis", "  photosynthesis ")

    def test_mcq_option_key_maps_to_option_value(self):
        assert scoring.is_answer_correct(QuestionType.MCQ, OPTIONS, "Paris", "a")

    def test_mcq_wrong_option_key(self):
        assert not scoring.is_answer_correct(QuestionType.MCQ, OPTIONS, "Paris", "B")

    def test_key_mapping_only_for_option_types(self):
        assert not scoring.is_answer_correct(QuestionType.FILL_IN_THE_BLANK, OPTIONS, "Paris", "A")

    def test_blank_answer_is_never_correct(self):
        assert not scoring.is_answer_correct(QuestionType.TRUE_FALSE, None, "", "   ")


class TestMarks:

    def test_correct_answer_gets_question_marks(self):
        assert scoring.marks_for_answer(True, "4", 2, False, 0) == 2

    def test_wrong_answer_with_negative_marking(self):
        assert scoring.marks_for_answer(False, "5", 1, True, 0.5) == -0.5

    def test_wrong_answer_without_negative_marking(self):
        assert scoring.marks_for_answer(False, "5", 1, False, 0.5) == 0

    def test_unattempted_question_scores_zero_with_negative_marking(self):
        assert scoring.marks_for_answer(False, "", 1, True, 0.5) == 0
        assert scoring.marks_for_answer(False, None, 1, True, 0.5) == 0

    def test_per_question_marks_splits_total(self):
        assert scoring.per_question_marks(10, 4) == 2
        assert scoring.per_question_marks(0, 4) == 1
        assert scoring.per_question_marks(10, 0) == 1


def test_summarize_answers_counts_from_rows():
    rows = [answer("4", True, 2), answer("7", False, -0.5), answer("", False, 0)]
    totals = scoring.summarize_answers(rows, total_questions=4)
    assert totals.correct == 1
    assert totals.wrong == 1
    assert totals.unattempted == 2
    assert totals.score == 1.5
    assert totals.accuracy == 25.0


def test_summarize_answers_skips_questions_no_longer_linked():
    rows = [answer("4", True, 2, question_id=1), answer("9", True, 2, question_id=7)]
    totals = scoring.summarize_answers(rows, total_questions=1, question_ids={1})
    assert totals.answered == 1
    assert totals.correct == 1
    assert totals.unattempted == 0
    assert totals.score == 2


class TestRanking:

    def test_ties_share_rank_and_next_skips(self):
        assert scoring.competition_ranks([90, 90, 80, 70, 70, 60]) == [1, 1, 3, 4, 4, 6]

    def test_rank_of_counts_strictly_better(self):
        assert scoring.rank_of(80, [90, 90, 80, 70]) == 3

    def test_order_breaks_ties_on_time_then_creation(self):
        now = utcnow()
        slow = SimpleNamespace(score=8, time_taken_seconds=900, created_at=now)
        fast = SimpleNamespace(score=8, time_taken_seconds=300, created_at=now)
        early = SimpleNamespace(score=8, time_taken_seconds=300, created_at=now - timedelta(minutes=1))
        best = SimpleNamespace(score=9, time_taken_seconds=1200, created_at=now)
        assert scoring.leaderboard_order([slow, fast, early, best]) == [best, early, fast, slow]


class TestTiming:

    def test_deadline_is_earlier_of_limit_and_scheduled_end(self):
        start = utcnow()
        end = start + timedelta(minutes=20)
        assert scoring.attempt_deadline(start, 30, end) == end
        assert scoring.attempt_deadline(start, 10, end) == start + timedelta(minutes=10)
        assert scoring.attempt_deadline(start, None, None) is None

    def test_warning_levels(self):
        now = utcnow()
        levels = {
            minutes: scoring.time_status(now + timedelta(minutes=minutes, seconds=30), 5, now)["warning_level"]
            for minutes in (30, 9, 4, 1)
        }
        assert levels == {30: "none", 9: "notice", 4: "warning", 1: "critical"}

    def test_grace_period_after_deadline(self):
        now = utcnow()
        status = scoring.time_status(now - timedelta(minutes=1), 5, now)
        assert status["warning_level"] == "ended"
        assert status["is_in_grace_period"]
        assert not status["test_ended"]

    def test_ended_after_grace(self):
        now = utcnow()
        status = scoring.time_status(now - timedelta(minutes=10), 5, now)
        assert status["test_ended"]
        assert status["remaining_time"] == 0

    def test_no_deadline(self):
        status = scoring.time_status(None, 5, utcnow())
        assert status["remaining_time"] is None
        assert status["warning_level"] == "none"
