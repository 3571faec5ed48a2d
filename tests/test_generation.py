"""
Tests for MCQ payload normalization and the question generation workflow.
"""

from unittest.mock import patch

import pytest

import models
from generation import ArticleNotFound, generate_questions_for_article
from llm import LLMError, _strip_fences
from utils import normalize_mcq_payload


def mcq(prompt="Which organ produces insulin?", answer_index=2, **overrides):
    data = {
        "prompt": prompt,
        "choices": ["Liver", "Kidney", "Pancreas", "Spleen"],
        "answer_index": answer_index,
        "explanation": "Beta cells in the pancreas produce insulin.",
        "source_quote": "Insulin is made by the pancreas",
    }
    data.update(overrides)
    return data


class TestNormalizeMcqPayload:
    def test_keeps_well_formed(self):
        out = normalize_mcq_payload({"article_url": "https://x", "questions": [mcq()]})
        assert out["article_url"] == "https://x"
        assert out["questions"] == [mcq()]

    def test_trims_strings(self):
        out = normalize_mcq_payload({"questions": [mcq(prompt="  Padded?  ")]})
        assert out["questions"][0]["prompt"] == "Padded?"

    def test_accepts_numeric_string_index(self):
        out = normalize_mcq_payload({"questions": [mcq(answer_index="3")]})
        assert out["questions"][0]["answer_index"] == 3

    @pytest.mark.parametrize("bad", [
        mcq(prompt=""),
        mcq(choices=["A", "B", "C"]),
        mcq(answer_index=4),
        mcq(answer_index=-1),
        mcq(answer_index=None),
        mcq(choices=["A", "", "C", "D"]),
    ])
    def test_drops_malformed(self, bad):
        assert normalize_mcq_payload({"questions": [bad]})["questions"] == []

    def test_missing_questions_key(self):
        assert normalize_mcq_payload({})["questions"] == []


class TestStripFences:
    def test_json_fence(self):
        assert _strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain(self):
        assert _strip_fences('{"a": 1}') == '{"a": 1}'


class TestGenerateQuestionsForArticle:
    @patch("generation.verify_mcq", return_value="approved")
    @patch("generation.generate_mcqs")
    def test_persists_questions_and_choices(self, mock_generate, mock_verify, db, make_article):
        article = make_article()
        mock_generate.return_value = {
            "article_url": article.url,
            "questions": [mcq(), mcq(prompt="What does insulin regulate?", answer_index=0)],
        }

        outcome = generate_questions_for_article(db, article.id)

        assert outcome.question_count == 2
        assert [r["status"] for r in outcome.results] == ["approved", "approved"]
        mock_generate.assert_called_once_with(article.url, article.clean_text, article.title)

        questions = db.query(models.Question).filter_by(article_id=article.id).order_by(models.Question.id).all()
        assert len(questions) == 2
        first = questions[0]
        assert first.status == models.QuestionStatus.ACTIVE
        assert first.reviewed is True
        assert first.difficulty == "medium"
        assert first.source_span == "Insulin is made by the pancreas"
        assert [c.order_index for c in first.choices] == [0, 1, 2, 3]
        assert [c.is_correct for c in first.choices] == [False, False, True, False]
        assert sum(c.is_correct for c in questions[1].choices) == 1

    @patch("generation.verify_mcq", return_value="needs_revision")
    @patch("generation.generate_mcqs")
    def test_verdict_is_advisory(self, mock_generate, mock_verify, db, make_article):
        article = make_article()
        mock_generate.return_value = {"questions": [mcq()]}

        outcome = generate_questions_for_article(db, article.id)

        assert outcome.results[0]["status"] == "needs_revision"
        assert db.query(models.Question).count() == 1

    @patch("generation.generate_mcqs")
    def test_existing_questions_short_circuit(self, mock_generate, db, make_question):
        question = make_question()

        outcome = generate_questions_for_article(db, question.article_id)

        assert outcome.already_exists is True
        assert outcome.question_count == 1
        mock_generate.assert_not_called()

    def test_missing_article(self, db):
        with pytest.raises(ArticleNotFound):
            generate_questions_for_article(db, 404)

    @patch("generation.generate_mcqs", side_effect=LLMError("All candidate models failed"))
    def test_llm_error_propagates(self, mock_generate, db, make_article):
        article = make_article()
        with pytest.raises(LLMError):
            generate_questions_for_article(db, article.id)
        assert db.query(models.Question).count() == 0
