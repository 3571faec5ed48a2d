# notify.py
"""Quiz result emails, delivered through the Resend HTTP API."""
import html
import logging

import requests

from config import APP_URL, FROM_EMAIL, RESEND_API_KEY

logger = logging.getLogger(__name__)

RESEND_ENDPOINT = "https://api.resend.com/emails"
SEND_TIMEOUT_SECONDS = 15


class NotificationError(Exception):
    pass


def score_message(percentage: int) -> str:
    if percentage >= 90:
        return "Excellent! You have strong healthcare knowledge."
    if percentage >= 80:
        return "Great job! Your healthcare knowledge is quite good."
    if percentage >= 70:
        return "Good work! You have a solid foundation."
    if percentage >= 60:
        return "Not bad! Consider reviewing some healthcare topics."
    return "Keep learning! Healthcare knowledge is important for everyone."


def score_color(percentage: int) -> str:
    if percentage >= 80:
        return "#059669"
    if percentage >= 60:
        return "#D97706"
    return "#DC2626"


def render_plain_text(results: dict) -> str:
    lines = [
        "HEALTHCARE QUIZ RESULTS",
        "=======================",
        "",
        f"Your Score: {results['percentage']}% "
        f"({results['correct_answers']} out of {results['total_questions']} correct)",
        score_message(results["percentage"]),
        "",
        "QUESTION REVIEW",
        "===============",
        "",
    ]
    for i, r in enumerate(results["responses"], start=1):
        source = r["article_title"]
        if r.get("article_url"):
            source += f" - {r['article_url']}"
        lines += [
            f"Question {i}: {'CORRECT' if r['is_correct'] else 'INCORRECT'}",
            f"Q: {r['question']}",
            f"Your answer: {r['selected_answer']}",
            f"Explanation: {r['explanation'] or ''}",
            f"Source: {source}",
            "",
        ]
    lines += [
        "Thank you for taking the Healthcare Quiz!",
        f"Visit {APP_URL} to take another quiz.",
        "",
        "This email was sent because you requested your quiz results.",
    ]
    return "\n".join(lines)


def _render_review_item(index: int, r: dict) -> str:
    esc = html.escape
    border, background = ("#D1FAE5", "#F0FDF4") if r["is_correct"] else ("#FEE2E2", "#FEF2F2")
    if r.get("article_url"):
        source = f'<a href="{esc(r["article_url"])}" style="color:#3B82F6;">{esc(r["article_title"])}</a>'
    else:
        source = esc(r["article_title"])
    return f"""
      <div style="border:1px solid {border};background:{background};border-radius:6px;padding:15px;margin-bottom:15px;">
        <strong>Question {index}</strong> {"&#10003;" if r["is_correct"] else "&#10007;"}
        <p><strong>Q:</strong> {esc(r["question"])}</p>
        <p><strong>Your answer:</strong> {esc(r["selected_answer"])}</p>
        <p><strong>Explanation:</strong> {esc(r["explanation"] or "")}</p>
        <p style="font-size:12px;color:#6B7280;"><strong>Source:</strong> {source}</p>
      </div>"""


def render_html(results: dict) -> str:
    pct = results["percentage"]
    review = "".join(_render_review_item(i, r) for i, r in enumerate(results["responses"], start=1))
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>Your Healthcare Quiz Results</title></head>
  <body style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto;padding:20px;">
    <h1>Healthcare Quiz Results</h1>
    <div style="background:#F9FAFB;border-radius:8px;padding:30px;text-align:center;">
      <div style="font-size:48px;font-weight:bold;color:{score_color(pct)};">{pct}%</div>
      <div>{results["correct_answers"]} out of {results["total_questions"]} correct</div>
      <p>{score_message(pct)}</p>
    </div>
    <h2>Question Review</h2>
    {review}
    <p style="text-align:center;"><a href="{html.escape(APP_URL)}">Take Another Quiz</a></p>
    <p style="text-align:center;color:#9CA3AF;font-size:14px;">This email was sent because you requested your quiz results.</p>
  </body>
</html>"""


def send_quiz_results(results: dict) -> None:
    if not RESEND_API_KEY:
        raise NotificationError("RESEND_API_KEY not configured - email sending disabled")

    body = {
        "from": FROM_EMAIL,
        "to": [results["email"]],
        "subject": f"Your Healthcare Quiz Results - {results['percentage']}% Score",
        "html": render_html(results),
        "text": render_plain_text(results),
        "headers": {"X-Entity-Ref-ID": f"quiz-results-{results['session_id']}"},
    }
    try:
        resp = requests.post(
            RESEND_ENDPOINT,
            json=body,
            headers={"Authorization": f"Bearer {RESEND_API_KEY}"},
            timeout=SEND_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise NotificationError(f"Email request failed: {e}") from e
    if not resp.ok:
        raise NotificationError(f"Resend returned HTTP {resp.status_code}: {resp.text[:200]}")
    logger.debug("Resend accepted message for session %s", results["session_id"])
