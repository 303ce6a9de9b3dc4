from datetime import timedelta, timezone

from app.models.assessments import Quiz, QuizAttempt, TestStatus, UserAnswer
from app.models.notifications import Notification
from app.utils.timeutils import utcnow
from conftest import auth_headers, make_completed_attempt, make_question, make_test, make_user


def create_payload(**overrides):
    payload = {
        "title": "Weekly Algebra",
        "type": "Mock Test",
        "duration": 30,
        "total_marks": 10,
        "is_common": True,
    }
    payload.update(overrides)
    return payload


class TestCreateTest:

    def test_start_time_in_the_past_goes_live(self, client, admin_headers):
        start = (utcnow() - timedelta(hours=1)).replace(tzinfo=timezone.utc).isoformat()
        response = client.post("/api/tests", json=create_payload(start_time=start, auto_start=True), headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["data"]["test"]["status"] == "IN_PROGRESS"

    def test_without_schedule_is_draft(self, client, admin_headers):
        response = client.post("/api/tests", json=create_payload(), headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["data"]["test"]["status"] == "DRAFT"

    def test_links_bank_questions_and_splits_marks(self, client, db, admin_headers):
        questions = [make_question(db, text=f"Q{i}") for i in range(4)]
        response = client.post(
            "/api/tests",
            json=create_payload(question_source="questionBank", selected_questions=[q.id for q in questions]),
            headers=admin_headers
        )
        body = response.json()["data"]
        assert body["questions"] == {"linked": 4}
        assert body["test"]["marks_per_question"] == 2

    def test_manual_questions_reuse_exact_duplicates(self, client, db, admin_headers):
        make_question(db, text="Capital of France?", correct_answer="Paris")
        manual = [
            {"question_text": "Capital of France?", "correct_answer": "Paris", "options": {"A": "Paris"}},
            {"question_text": "Capital of Italy?", "correct_answer": "Rome", "options": {"A": "Rome"}},
        ]
        response = client.post(
            "/api/tests", json=create_payload(question_source="manual", manual_questions=manual), headers=admin_headers
        )
        assert response.json()["data"]["questions"] == {"created": 1, "reused": 1, "linked": 2}

    def test_end_before_start_is_rejected(self, client, admin_headers):
        start = utcnow() + timedelta(days=1)
        response = client.post(
            "/api/tests",
            json=create_payload(start_time=start.isoformat(), end_time=(start - timedelta(hours=1)).isoformat()),
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "End time must be after start time"}

    def test_students_cannot_create_tests(self, client, student_headers):
        response = client.post("/api/tests", json=create_payload(), headers=student_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Insufficient permissions"


class TestLifecycle:

    def test_publish_requires_a_question(self, client, db, admin_headers):
        quiz = make_test(db, status=TestStatus.DRAFT)
        response = client.patch(f"/api/tests/{quiz.id}/publish", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot publish test: Test must have at least one question"

    def test_publish_draft_with_questions(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)], status=TestStatus.DRAFT)
        response = client.patch(f"/api/tests/{quiz.id}/publish", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["test"]["status"] == "IN_PROGRESS"

    def test_archive_twice_is_rejected(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)])
        assert client.patch(f"/api/tests/{quiz.id}/archive", headers=admin_headers).status_code == 200
        response = client.patch(f"/api/tests/{quiz.id}/archive", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Test is already archived"

    def test_start_on_completed_test_leaves_status(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED)
        response = client.patch(f"/api/tests/{quiz.id}/start", headers=admin_headers)
        assert response.status_code == 400
        db.expire_all()
        assert db.get(Quiz, quiz.id).status == TestStatus.COMPLETED

    def test_legacy_status_toggle(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)], status=TestStatus.DRAFT)
        response = client.patch(f"/api/tests/{quiz.id}/status", json={"status": "Active"}, headers=admin_headers)
        assert response.json()["data"]["test"]["status"] == "IN_PROGRESS"
        response = client.patch(f"/api/tests/{quiz.id}/status", json={"status": "Inactive"}, headers=admin_headers)
        assert response.json()["data"]["test"]["status"] == "DRAFT"

    def test_complete_sweeps_open_attempts(self, client, db, admin_headers, batch, course):
        q1 = make_question(db, text="Q1", correct_answer="4")
        q2 = make_question(db, text="Q2", correct_answer="6")
        quiz = make_test(db, [q1, q2], marks_per_question=2)
        students = [make_user(db, f"s{i}@example.com", batch=batch, course=course) for i in range(3)]
        answers = [("4", "6"), ("4", "1"), (None, None)]
        for student, (a1, a2) in zip(students, answers):
            attempt = QuizAttempt(user_id=student.id, quiz_id=quiz.id, start_time=utcnow() - timedelta(minutes=5))
            db.add(attempt)
            db.flush()
            if a1 is not None:
                db.add(UserAnswer(attempt_id=attempt.id, question_id=q1.id, answer=a1, is_correct=True, marks_obtained=2))
                db.add(UserAnswer(attempt_id=attempt.id, question_id=q2.id, answer=a2,
                                  is_correct=a2 == "6", marks_obtained=2 if a2 == "6" else 0))
        db.commit()

        response = client.patch(f"/api/tests/{quiz.id}/complete", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["auto_submitted_attempts"] == 3

        db.expire_all()
        attempts = db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz.id).order_by(QuizAttempt.user_id).all()
        assert all(a.is_completed and a.submit_time is not None for a in attempts)
        assert [a.score for a in attempts] == [4, 2, 0]
        assert [a.unattempted for a in attempts] == [0, 0, 2]

    def test_publish_results_notifies_participants(self, client, db, admin_headers, student):
        quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED)
        make_completed_attempt(db, student, quiz, score=1)
        response = client.patch(f"/api/tests/{quiz.id}/publish-results", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["notifications_sent"] == 1
        assert db.query(Notification).filter(Notification.user_id == student.id).count() == 1

        again = client.patch(f"/api/tests/{quiz.id}/publish-results", headers=admin_headers)
        assert again.status_code == 400
        assert again.json()["message"] == "Results for this test have already been published"

    def test_update_keeps_published_results_and_unsent_fields(self, client, db, admin_headers, student):
        quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED, leaderboard_enabled=True,
                         total_marks=20, has_negative_marking=True, negative_marks=0.5)
        make_completed_attempt(db, student, quiz, score=1)
        assert client.patch(f"/api/tests/{quiz.id}/publish-results", headers=admin_headers).status_code == 200

        response = client.put(f"/api/tests/{quiz.id}", json={"title": "Renamed"}, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Renamed"
        assert data["show_correct_answers"] is True
        assert data["leaderboard_enabled"] is True
        assert data["total_marks"] == 20
        assert data["negative_marks"] == 0.5

        again = client.patch(f"/api/tests/{quiz.id}/publish-results", headers=admin_headers)
        assert again.status_code == 400
        assert db.query(Notification).filter(Notification.user_id == student.id).count() == 1

    def test_update_applies_only_sent_settings(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)], shuffle_questions=False)
        response = client.put(
            f"/api/tests/{quiz.id}",
            json={"title": quiz.title, "settings": {"leaderboard_enabled": True, "show_correct_answers": True}},
            headers=admin_headers
        )
        data = response.json()["data"]
        assert data["leaderboard_enabled"] is True
        assert data["shuffle_questions"] is False
        assert data["show_correct_answers"] is False

    def test_complete_drops_open_attempt_beside_completed_one(self, client, db, admin_headers, student):
        quiz = make_test(db, [make_question(db)])
        make_completed_attempt(db, student, quiz, score=1)
        db.add(QuizAttempt(user_id=student.id, quiz_id=quiz.id, start_time=utcnow() - timedelta(minutes=5)))
        db.commit()

        response = client.patch(f"/api/tests/{quiz.id}/complete", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["auto_submitted_attempts"] == 0

        db.expire_all()
        attempts = db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz.id).all()
        assert [(a.is_completed, a.score) for a in attempts] == [(True, 1)]
        assert db.get(Quiz, quiz.id).status == TestStatus.COMPLETED

    def test_delete_removes_attempts(self, client, db, admin_headers, student):
        quiz = make_test(db, [make_question(db)])
        quiz_id = quiz.id
        make_completed_attempt(db, student, quiz, score=1)
        assert client.delete(f"/api/tests/{quiz_id}", headers=admin_headers).status_code == 200
        db.expunge_all()
        assert db.query(QuizAttempt).count() == 0
        assert db.query(Quiz).filter(Quiz.id == quiz_id).first() is None


class TestQuestionsOnTest:

    def test_add_and_remove_question(self, client, db, admin_headers):
        quiz = make_test(db, status=TestStatus.DRAFT)
        question = make_question(db)
        response = client.post(f"/api/tests/{quiz.id}/questions", json={"question_id": question.id}, headers=admin_headers)
        assert response.status_code == 201
        duplicate = client.post(f"/api/tests/{quiz.id}/questions", json={"question_id": question.id}, headers=admin_headers)
        assert duplicate.status_code == 400
        removed = client.delete(f"/api/tests/{quiz.id}/questions/{question.id}", headers=admin_headers)
        assert removed.status_code == 200

    def test_bulk_add_skips_linked_questions(self, client, db, admin_headers):
        first, second = make_question(db, text="Q1"), make_question(db, text="Q2")
        quiz = make_test(db, [first], status=TestStatus.DRAFT)
        response = client.post(
            f"/api/tests/{quiz.id}/questions/bulk", json={"question_ids": [first.id, second.id]}, headers=admin_headers
        )
        assert response.json()["data"] == {"added": 1, "skipped": 1}


class TestLeaderboard:

    def test_ties_share_rank(self, client, db, admin_headers, batch, course):
        quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED, leaderboard_enabled=True)
        for name, score, seconds in (("ana", 9, 300), ("ben", 9, 400), ("cy", 7, 200)):
            make_completed_attempt(db, make_user(db, f"{name}@example.com", batch=batch, course=course), quiz, score, seconds)
        response = client.get(f"/api/tests/{quiz.id}/leaderboard", headers=admin_headers)
        rows = response.json()["data"]["leaderboard"]
        assert [(row["student_name"], row["rank"]) for row in rows] == [("Ana", 1), ("Ben", 1), ("Cy", 3)]

    def test_disabled_leaderboard_hidden_from_students(self, client, db, admin_headers, student_headers):
        quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED)
        assert client.get(f"/api/tests/{quiz.id}/leaderboard", headers=student_headers).status_code == 403
        assert client.get(f"/api/tests/{quiz.id}/leaderboard", headers=admin_headers).status_code == 200

    def test_enhanced_leaderboard_lists_everyone(self, client, db, admin_headers, student, batch, course):
        quiz = make_test(db, [make_question(db)], batches=[batch])
        other = make_user(db, "other@example.com", batch=batch, course=course)
        make_completed_attempt(db, other, quiz, score=1)
        response = client.get(f"/api/tests/{quiz.id}/leaderboard/enhanced", headers=admin_headers)
        summary = response.json()["data"]["summary"]
        assert summary == {"total_students": 2, "completed": 1, "in_progress": 0, "not_started": 1}

    def test_toggle_leaderboard(self, client, db, admin_headers):
        quiz = make_test(db, [make_question(db)])
        response = client.patch(f"/api/tests/{quiz.id}/leaderboard/toggle", headers=admin_headers)
        assert response.json()["data"] == {"leaderboard_enabled": True}


def test_list_filters_by_status_label(client, db, admin_headers):
    make_test(db, [make_question(db)], title="Live one")
    make_test(db, status=TestStatus.DRAFT, title="Draft one")
    response = client.get("/api/tests", params={"status": "Active"}, headers=admin_headers)
    body = response.json()
    assert [row["title"] for row in body["data"]] == ["Live one"]
    assert body["meta"]["total"] == 1


def test_report_counts_attempts(client, db, admin_headers, student):
    quiz = make_test(db, [make_question(db)], status=TestStatus.COMPLETED)
    make_completed_attempt(db, student, quiz, score=1)
    report = client.get(f"/api/tests/{quiz.id}/report", headers=admin_headers).json()["data"]
    assert report["statistics"]["completed_attempts"] == 1
    assert report["statistics"]["passed"] == 1
    student_report = client.get(f"/api/tests/{quiz.id}/students/{student.id}/report", headers=admin_headers).json()
    assert student_report["data"]["rank"] == 1
