from app.models.assessments import QuizAttempt, TestStatus
from app.models.user import StudentProfile
from conftest import make_question, make_test


def submit(client, headers, quiz, answers):
    return client.post(
        "/api/quizzes/submit",
        json={"quiz_id": quiz.id, "answers": [{"question_id": q, "answer": a} for q, a in answers]},
        headers=headers
    )


class TestSubmit:

    def test_grades_and_adds_to_total_score(self, client, db, student, student_headers):
        q1, q2 = make_question(db, text="Q1"), make_question(db, text="Q2", correct_answer="9")
        quiz = make_test(db, [q1, q2], marks_per_question=2)
        response = submit(client, student_headers, quiz, [(q1.id, "B"), (q2.id, "8")])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["score"] == 2
        assert data["max_score"] == 4
        assert data["percentage"] == 50
        assert "results" not in data

        db.expire_all()
        profile = db.query(StudentProfile).filter(StudentProfile.user_id == student.id).one()
        assert profile.total_score == 2

    def test_negative_total_is_floored(self, client, db, student_headers):
        q1, q2 = make_question(db, text="Q1"), make_question(db, text="Q2")
        quiz = make_test(db, [q1, q2], has_negative_marking=True, negative_marks=1)
        data = submit(client, student_headers, quiz, [(q1.id, "3"), (q2.id, "5")]).json()["data"]
        assert data["score"] == 0
        assert data["passed"] is False

    def test_immediate_results(self, client, db, student_headers):
        question = make_question(db)
        quiz = make_test(db, [question], show_immediate_result=True)
        data = submit(client, student_headers, quiz, [(question.id, "4")]).json()["data"]
        assert data["results"] == [{"question_id": question.id, "is_correct": True, "marks_obtained": 1}]

    def test_second_submission_rejected(self, client, db, student_headers):
        question = make_question(db)
        quiz = make_test(db, [question])
        submit(client, student_headers, quiz, [(question.id, "4")])
        again = submit(client, student_headers, quiz, [(question.id, "4")])
        assert again.status_code == 400
        assert again.json()["message"] == "You have already completed this quiz"

    def test_rejected_while_test_attempt_open(self, client, db, student_headers):
        question = make_question(db)
        quiz = make_test(db, [question])
        assert client.post(f"/api/tests/{quiz.id}/start", headers=student_headers).status_code == 200
        response = submit(client, student_headers, quiz, [(question.id, "4")])
        assert response.status_code == 400
        assert response.json()["message"] == "You have a test attempt in progress; complete it instead"
        assert db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz.id).count() == 1

    def test_quiz_must_be_live(self, client, db, student_headers):
        question = make_question(db)
        quiz = make_test(db, [question], status=TestStatus.DRAFT)
        response = submit(client, student_headers, quiz, [(question.id, "4")])
        assert response.status_code == 400
        assert response.json()["message"] == "Quiz is not available"


def test_quiz_view_hides_answers(client, db, student_headers):
    quiz = make_test(db, [make_question(db)])
    data = client.get(f"/api/quizzes/{quiz.id}", headers=student_headers).json()["data"]
    assert "correct_answer" not in data["questions"][0]


def test_attempt_history(client, db, student_headers):
    question = make_question(db)
    quiz = make_test(db, [question], title="Pop quiz")
    submit(client, student_headers, quiz, [(question.id, "4")])
    rows = client.get("/api/quizzes/attempts", headers=student_headers).json()["data"]
    assert [(row["quiz_title"], row["score"]) for row in rows] == [("Pop quiz", 1)]
