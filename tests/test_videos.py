from datetime import timedelta

from app.models.videos import Video, VideoDownload
from app.services.video_service import video_service
from app.utils.timeutils import utcnow


def make_video(db, title="Intro to SQL", is_published=True, course=None, subject_id=None):
    video = Video(
        title=title,
        url="https://cdn.example.com/v/intro.mp4",
        is_published=is_published,
        course_id=course.id if course else None,
        subject_id=subject_id,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


class TestVisibility:

    def test_students_see_published_videos_only(self, client, db, student_headers, admin_headers):
        make_video(db, "Live")
        make_video(db, "Hidden", is_published=False)
        student_titles = [v["title"] for v in client.get("/api/videos", headers=student_headers).json()["data"]]
        staff_titles = [v["title"] for v in client.get("/api/videos", headers=admin_headers).json()["data"]]
        assert student_titles == ["Live"]
        assert sorted(staff_titles) == ["Hidden", "Live"]

    def test_other_course_is_hidden(self, client, db, student_headers):
        from app.models.organization import Course
        other = Course(name="Design")
        db.add(other)
        db.commit()
        video = make_video(db, course=other)
        assert client.get(f"/api/videos/{video.id}", headers=student_headers).status_code == 404

    def test_viewing_counts(self, client, db, student_headers):
        video = make_video(db)
        client.get(f"/api/videos/{video.id}", headers=student_headers)
        data = client.get(f"/api/videos/{video.id}", headers=student_headers).json()["data"]
        assert data["views"] == 2

    def test_toggle_publish(self, client, db, admin_headers, student_headers):
        video = make_video(db, is_published=False)
        response = client.patch(f"/api/videos/{video.id}/publish", headers=admin_headers)
        assert response.json()["message"] == "Video published successfully"
        assert client.get(f"/api/videos/{video.id}", headers=student_headers).status_code == 200


class TestDownloads:

    def test_active_grant_is_reused(self, client, db, student_headers):
        video = make_video(db)
        first = client.post(f"/api/videos/{video.id}/download", headers=student_headers).json()
        second = client.post(f"/api/videos/{video.id}/download", headers=student_headers).json()
        assert first["message"] == "Download link generated"
        assert second["message"] == "Download link already active"
        assert first["data"]["download_url"] == second["data"]["download_url"]
        assert "?token=" in first["data"]["download_url"]

    def test_expired_grant_is_renewed(self, db, student):
        video = make_video(db)
        first = video_service.authorize_download(db, student, video.id)
        later = utcnow() + timedelta(days=30)
        renewed = video_service.authorize_download(db, student, video.id, now=later)
        assert renewed["reused"] is False
        assert renewed["download_url"] != first["download_url"]
        assert db.query(VideoDownload).count() == 1


def test_delete_video_drops_grants(client, db, admin_headers, student):
    video = make_video(db)
    video_service.authorize_download(db, student, video.id)
    assert client.delete(f"/api/videos/{video.id}", headers=admin_headers).status_code == 200
    db.expunge_all()
    assert db.query(VideoDownload).count() == 0
