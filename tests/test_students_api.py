from conftest import make_question, make_test


def test_dashboard_stats(client, db, student, student_headers):
    make_test(db, [make_question(db)])
    data = client.get("/api/student/dashboard", headers=student_headers).json()["data"]
    assert data["stats"]["active_tests"] == 1
    assert data["stats"]["tests_completed"] == 0
    assert data["profile"]["total_score"] == 0


def test_profile_update(client, student_headers):
    response = client.put(
        "/api/student/profile", json={"phone_number": "555-0199", "bio": "Learning SQL"}, headers=student_headers
    )
    data = response.json()["data"]
    assert data["phone_number"] == "555-0199"
    assert data["student_profile"]["bio"] == "Learning SQL"


def test_staff_have_no_student_portal(client, admin_headers):
    assert client.get("/api/student/profile", headers=admin_headers).status_code == 403
