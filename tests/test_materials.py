from app.models.materials import MaterialBatch, MaterialType, StudyMaterial
from app.models.organization import Batch, Course
from app.services.material_service import infer_material_type


def make_material(db, title="Week 1 slides", course=None, batches=(), is_published=True,
                  file_url="https://cdn.example.com/week1.pdf"):
    material = StudyMaterial(
        title=title,
        file_url=file_url,
        file_type=infer_material_type(file_url),
        course_id=course.id if course else None,
        is_published=is_published,
    )
    material.batches = [MaterialBatch(batch_id=batch.id) for batch in batches]
    db.add(material)
    db.commit()
    db.refresh(material)
    return material


def test_infer_material_type():
    assert infer_material_type("https://youtu.be/abc123") == MaterialType.VIDEO
    assert infer_material_type("https://cdn.example.com/deck.PPTX?sig=1") == MaterialType.PPT
    assert infer_material_type("https://cdn.example.com/raw", "notes.docx") == MaterialType.DOC
    assert infer_material_type("https://cdn.example.com/archive.zip") == MaterialType.OTHER


class TestManage:

    def test_create_infers_type_and_assigns_batches(self, client, db, admin_headers, course, batch):
        response = client.post("/api/materials", json={
            "title": "Intro lecture",
            "file_url": "https://www.youtube.com/watch?v=abc",
            "course_id": course.id,
            "batch_ids": [batch.id, batch.id],
        }, headers=admin_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["file_type"] == "VIDEO"
        assert data["batch_ids"] == [batch.id]
        assert data["is_published"] is False

    def test_create_without_file(self, client, admin_headers):
        response = client.post("/api/materials", json={"title": "Empty", "file_url": "  "}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Either a file or YouTube URL is required"

    def test_create_with_unknown_course(self, client, admin_headers):
        response = client.post(
            "/api/materials", json={"title": "Notes", "file_url": "https://x.test/a.pdf", "course_id": 99},
            headers=admin_headers
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Course not found"

    def test_reassigning_same_batches_keeps_links(self, client, db, admin_headers, course, batch):
        other = Batch(name="FS-2024-B", course_id=course.id)
        db.add(other)
        db.commit()
        material = make_material(db, batches=[batch])
        response = client.post(
            f"/api/materials/{material.id}/assign-batches", json={"batch_ids": [batch.id, other.id]}, headers=admin_headers
        )
        assert response.json()["data"]["batch_ids"] == sorted([batch.id, other.id])
        rows = client.get(f"/api/materials/{material.id}/batch-assignments", headers=admin_headers).json()["data"]
        assert sorted(r["name"] for r in rows) == ["FS-2024-A", "FS-2024-B"]
        cleared = client.post(f"/api/materials/{material.id}/assign-batches", json={"batch_ids": []}, headers=admin_headers)
        assert cleared.json()["data"]["batch_ids"] == []

    def test_unknown_batch(self, client, db, admin_headers):
        material = make_material(db)
        response = client.post(f"/api/materials/{material.id}/assign-batches", json={"batch_ids": [404]}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Batches not found: [404]"

    def test_update_and_delete(self, client, db, admin_headers):
        material = make_material(db)
        response = client.put(f"/api/materials/{material.id}", json={"title": "Week 1 notes", "file_url": None},
                              headers=admin_headers)
        data = response.json()["data"]
        assert data["title"] == "Week 1 notes"
        assert data["file_url"] == "https://cdn.example.com/week1.pdf"
        assert client.delete(f"/api/materials/{material.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/materials/{material.id}", headers=admin_headers).status_code == 404

    def test_batches_for_assignment_lists_active_ones(self, client, db, admin_headers, course, batch):
        db.add(Batch(name="Old cohort", course_id=course.id, is_active=False))
        db.commit()
        rows = client.get(f"/api/materials/batches/for-assignment?course_id={course.id}", headers=admin_headers).json()["data"]
        assert [r["name"] for r in rows] == ["FS-2024-A"]

    def test_students_cannot_create(self, client, student_headers):
        response = client.post("/api/materials", json={"title": "X", "file_url": "https://x.test/a.pdf"},
                               headers=student_headers)
        assert response.status_code == 403


class TestVisibility:

    def test_students_see_published_course_material(self, client, db, student_headers, course):
        other_course = Course(name="Data Science")
        db.add(other_course)
        db.commit()
        make_material(db, title="Ours", course=course)
        make_material(db, title="Everyone")
        make_material(db, title="Draft", course=course, is_published=False)
        make_material(db, title="Theirs", course=other_course)
        titles = {m["title"] for m in client.get("/api/materials", headers=student_headers).json()["data"]}
        assert titles == {"Ours", "Everyone"}

    def test_batch_assignment_narrows_access(self, client, db, student_headers, course, batch):
        other = Batch(name="FS-2024-B", course_id=course.id)
        db.add(other)
        db.commit()
        mine = make_material(db, title="Mine", course=course, batches=[batch])
        theirs = make_material(db, title="Theirs", course=course, batches=[other])
        assert client.get(f"/api/materials/{mine.id}", headers=student_headers).status_code == 200
        assert client.get(f"/api/materials/{theirs.id}", headers=student_headers).status_code == 404

    def test_publish_toggle(self, client, db, admin_headers, student_headers, course):
        material = make_material(db, course=course, is_published=False)
        assert client.get(f"/api/materials/{material.id}", headers=student_headers).status_code == 404
        response = client.patch(f"/api/materials/{material.id}/publish", json={"is_published": True}, headers=admin_headers)
        assert response.json()["message"] == "Material published successfully"
        assert client.get(f"/api/materials/{material.id}", headers=student_headers).status_code == 200

    def test_staff_filter_by_batch(self, client, db, admin_headers, batch):
        make_material(db, title="Assigned", batches=[batch])
        make_material(db, title="Open")
        rows = client.get(f"/api/materials?batch_id={batch.id}", headers=admin_headers).json()["data"]
        assert [r["title"] for r in rows] == ["Assigned"]
