from app.models.questions import QPCode, Question
from conftest import make_question, make_test


def question_payload(**overrides):
    payload = {
        "question_text": "Which keyword defines a function in Python?",
        "type": "MCQ",
        "options": {"A": "func", "B": "def", "C": "lambda", "D": "fn"},
        "correct_answer": "B",
        "topic": "Basics",
    }
    payload.update(overrides)
    return payload


class TestQuestions:

    def test_create_and_fetch(self, client, admin_headers):
        created = client.post("/api/question-bank", json=question_payload(), headers=admin_headers)
        assert created.status_code == 201
        question = created.json()["data"]
        assert question["difficulty"] == "MEDIUM"
        assert question["usage_count"] == 0

        fetched = client.get(f"/api/question-bank/{question['id']}", headers=admin_headers).json()["data"]
        assert fetched["correct_answer"] == "B"

    def test_unknown_qp_code(self, client, admin_headers):
        response = client.post("/api/question-bank", json=question_payload(qp_code_id=999), headers=admin_headers)
        assert response.status_code == 404

    def test_create_with_unknown_subject(self, client, admin_headers):
        response = client.post("/api/question-bank", json=question_payload(subject_id=999), headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Subject not found"

    def test_search_and_count(self, client, db, admin_headers):
        make_question(db, text="Define polymorphism")
        make_question(db, text="What is a closure?")
        listed = client.get("/api/question-bank", params={"search": "closure"}, headers=admin_headers).json()
        assert [q["question_text"] for q in listed["data"]] == ["What is a closure?"]
        count = client.get("/api/question-bank/count", headers=admin_headers).json()["data"]
        assert count == {"count": 2}

    def test_partial_update_keeps_required_fields(self, client, db, admin_headers):
        question = make_question(db)
        response = client.put(
            f"/api/question-bank/{question.id}",
            json={"topic": "Arithmetic", "correct_answer": None},
            headers=admin_headers
        )
        data = response.json()["data"]
        assert data["topic"] == "Arithmetic"
        assert data["correct_answer"] == "4"

    def test_question_used_by_a_test_cannot_be_deleted(self, client, db, admin_headers):
        question = make_question(db)
        make_test(db, [question])
        response = client.delete(f"/api/question-bank/{question.id}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete question as it is used in tests"

    def test_students_have_no_access(self, client, student_headers):
        assert client.get("/api/question-bank", headers=student_headers).status_code == 403


class TestBulkImport:

    def test_invalid_rows_are_reported(self, client, db, admin_headers):
        rows = [
            question_payload(question_text="Q1"),
            {"question_text": "missing answer"},
            question_payload(question_text="Q3", type="TRUE_FALSE", options=None, correct_answer="True"),
        ]
        response = client.post("/api/question-bank/bulk-import", json={"questions": rows}, headers=admin_headers)
        assert response.status_code == 201
        result = response.json()["data"]
        assert result["imported"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["index"] == 1
        assert db.query(Question).count() == 2

    def test_rows_with_unknown_references_are_reported(self, client, db, admin_headers):
        code = QPCode(code="QP-1")
        db.add(code)
        db.commit()
        rows = [
            question_payload(question_text="Q1", qp_code_id=code.id),
            question_payload(question_text="Q2", qp_code_id=999),
            question_payload(question_text="Q3", subject_id=999),
        ]
        response = client.post("/api/question-bank/bulk-import", json={"questions": rows}, headers=admin_headers)
        assert response.status_code == 201
        result = response.json()["data"]
        assert result["imported"] == 1
        assert result["errors"] == [
            {"index": 1, "error": "QP code not found"},
            {"index": 2, "error": "Subject not found"},
        ]
        assert [q.question_text for q in db.query(Question).all()] == ["Q1"]

    def test_empty_import(self, client, admin_headers):
        response = client.post("/api/question-bank/bulk-import", json={"questions": []}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Questions array is required"


class TestQPCodes:

    def test_codes_are_unique_and_trimmed(self, client, admin_headers):
        created = client.post("/api/qp-codes", json={"code": "  QP-101 "}, headers=admin_headers)
        assert created.json()["data"]["code"] == "QP-101"
        duplicate = client.post("/api/qp-codes", json={"code": "QP-101"}, headers=admin_headers)
        assert duplicate.status_code == 400
        assert duplicate.json()["message"] == "QP code already exists"

    def test_list_includes_question_count(self, client, db, admin_headers):
        code = QPCode(code="QP-7")
        db.add(code)
        db.commit()
        db.add(Question(question_text="Q", correct_answer="A", qp_code_id=code.id))
        db.commit()
        rows = client.get("/api/qp-codes", headers=admin_headers).json()["data"]
        assert rows[0]["question_count"] == 1

    def test_code_with_questions_cannot_be_deleted(self, client, db, admin_headers):
        code = QPCode(code="QP-8")
        db.add(code)
        db.commit()
        db.add(Question(question_text="Q", correct_answer="A", qp_code_id=code.id))
        db.commit()
        response = client.delete(f"/api/qp-codes/{code.id}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete QP code. It has 1 associated questions."
