"""
Route-level tests through FastAPI's TestClient.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

from extractor import ExtractedContent, FetchError
from lifecycle import archive_question
from models import QuestionStatus
from utils import utcnow


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


class TestIngestRoute:
    def test_requires_urls_or_articles(self, client):
        assert client.post("/api/ingest", json={}).status_code == 400

    def test_empty_urls(self, client):
        assert client.post("/api/ingest", json={"urls": []}).status_code == 400

    @patch("ingestion.extract_article_content")
    def test_per_url_results(self, mock_extract, client):
        mock_extract.side_effect = [
            ExtractedContent("Sleep and Health", "Adults need seven or more hours. " * 30, "nih.gov", datetime(2024, 3, 1)),
            FetchError("Failed to fetch page: HTTP 500"),
        ]

        resp = client.post("/api/ingest", json={"urls": ["https://www.nih.gov/sleep", "https://bad.example.com"]})

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Processed 2 URLs"
        assert [r["status"] for r in body["results"]] == ["success", "failed"]
        assert body["results"][0]["article_id"] is not None

    def test_structured_articles(self, client):
        record = {
            "title": "Heat safety",
            "articleURL": "https://www.weather.gov/heat",
            "date": "2024-07-01",
            "takeaway": "Drink water.",
            "summary": "Heat waves are dangerous.",
            "organizations": [],
            "publisher": "NWS",
            "locations": [],
            "matching_terms": ["heat"],
        }
        body = client.post("/api/ingest", json={"articles": [record]}).json()
        assert body["results"][0]["status"] == "success"

        listing = client.get("/api/articles").json()
        assert listing["count"] == 1
        assert listing["articles"][0]["source"] == "NWS"


class TestTestExtractRoute:
    @patch("main.extract_article_content")
    def test_reports_fetch_error(self, mock_extract, client):
        mock_extract.side_effect = FetchError("Timed out after 30s")
        body = client.post("/api/test-extract", json={"url": "https://slow.example.com/"}).json()
        assert body == {
            "ok": False, "title": None, "source": None, "published_at": None,
            "text_len": 0, "preview": None, "valid": False, "error": "Timed out after 30s",
        }


class TestGenerateRoute:
    def test_missing_article(self, client):
        assert client.post("/api/generate", json={"article_id": 77}).status_code == 404

    @patch("generation.verify_mcq", return_value="approved")
    @patch("generation.generate_mcqs")
    def test_generates(self, mock_generate, mock_verify, client, make_article):
        article = make_article()
        mock_generate.return_value = {"questions": [{
            "prompt": "What does BMI stand for?",
            "choices": ["Body Mass Index", "Blood Marker Index", "Bone Mineral Intake", "Basal Metabolic Input"],
            "answer_index": 0,
            "explanation": "BMI is body mass index.",
            "source_quote": "Body mass index (BMI)",
        }]}

        body = client.post("/api/generate", json={"article_id": article.id}).json()

        assert body["question_count"] == 1
        assert body["results"][0]["status"] == "approved"


class TestQuizRoutes:
    def test_no_questions(self, client):
        assert client.get("/api/quiz").status_code == 404

    def test_full_flow(self, client, make_question):
        make_question()
        session_id = client.post("/api/session").json()["session_id"]
        quiz = client.get("/api/quiz").json()
        question = quiz["questions"][0]
        right = next(c for c in question["choices"] if c["is_correct"])

        answer = client.post("/api/respond", json={
            "session_id": session_id, "question_id": question["id"], "choice_id": right["id"],
        }).json()
        assert answer["correct"] is True
        assert answer["running_score"]["correct"] == 1

        finished = client.post("/api/finish", json={"session_id": session_id}).json()
        assert finished["correct_answers"] == 1
        assert finished["percentage"] == 10
        assert len(finished["responses"]) == 1

    def test_invalid_choice(self, client, make_question):
        q = make_question()
        session_id = client.post("/api/session").json()["session_id"]
        resp = client.post("/api/respond", json={"session_id": session_id, "question_id": q.id, "choice_id": 999})
        assert resp.status_code == 400


class TestAdminQuestionRoutes:
    def test_archive_and_restore(self, client, db, make_question):
        q = make_question()

        resp = client.post(f"/api/admin/questions/{q.id}/archive", json={"reason": "Outdated", "archived_by": "ops"})
        assert resp.status_code == 200
        assert resp.json()["scheduled_deletion_at"] is not None

        assert client.post(f"/api/admin/questions/{q.id}/archive", json={}).status_code == 404
        assert client.post(f"/api/admin/questions/{q.id}/restore").status_code == 200
        assert client.post(f"/api/admin/questions/{q.id}/restore").status_code == 404

    def test_archive_without_body(self, client, make_question):
        q = make_question()
        assert client.post(f"/api/admin/questions/{q.id}/archive").status_code == 200

    def test_list_with_filter_and_counts(self, client, db, make_question, make_response):
        active, archived = make_question(), make_question()
        make_response(archived, days_ago=5)
        make_response(archived, days_ago=200)
        archive_question(db, archived.id, "Outdated", "ops")

        body = client.get("/api/admin/questions", params={"status": "archived"}).json()

        assert body["pagination"]["total"] == 1
        row = body["questions"][0]
        assert row["id"] == archived.id
        assert row["status"] == "archived"
        assert row["archived_by"] == "ops"
        assert row["recent_response_count"] == 1
        assert row["total_response_count"] == 2

        everything = client.get("/api/admin/questions").json()
        assert everything["pagination"]["total"] == 2

    def test_list_rejects_unknown_status(self, client):
        assert client.get("/api/admin/questions", params={"status": "gone"}).status_code == 400

    def test_bulk(self, client, make_question):
        q1, q2 = make_question(), make_question()

        body = client.post("/api/admin/questions/bulk", json={
            "action": "archive", "question_ids": [q1.id, 424242, q2.id],
        }).json()

        assert body["summary"] == {"total": 3, "success": 2, "errors": 1}
        assert [r["outcome"] for r in body["results"]] == ["success", "not_found_or_ineligible", "success"]

    def test_bulk_unknown_action(self, client, make_question):
        q = make_question()
        resp = client.post("/api/admin/questions/bulk", json={"action": "purge", "question_ids": [q.id]})
        assert resp.status_code == 400


class TestCleanupRoutes:
    def test_preview_then_sweep(self, client, db, make_question, make_response):
        kept, dropped = make_question(), make_question()
        make_response(kept, days_ago=10)
        long_ago = utcnow() - timedelta(days=40)
        archive_question(db, kept.id, now=long_ago)
        archive_question(db, dropped.id, now=long_ago)

        preview = client.get("/api/admin/cleanup").json()
        assert [q["id"] for q in preview["questions_ready_for_deletion"]] == [dropped.id]
        assert [q["id"] for q in preview["protected_questions"]] == [kept.id]
        assert preview["total_archived"] == 2

        first = client.post("/api/admin/cleanup").json()
        second = client.post("/api/admin/cleanup").json()
        assert first["deleted_count"] == 1
        assert second["deleted_count"] == 0

        db.expire_all()
        assert db.get(type(dropped), dropped.id).status == QuestionStatus.DELETED
