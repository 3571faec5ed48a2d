# utils.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC, matching what the DateTime columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_mcq_payload(raw: dict) -> dict:
    questions = []
    for q in (raw.get("questions") or []):
        if not isinstance(q, dict):
            continue
        prompt = (q.get("prompt") or q.get("question") or "").strip()
        choices = [str(c).strip() for c in (q.get("choices") or q.get("options") or [])]
        answer_index = q.get("answer_index")
        explanation = (q.get("explanation") or "").strip()
        source_quote = (q.get("source_quote") or "").strip()

        try:
            answer_index = int(answer_index)
        except (TypeError, ValueError):
            continue
        if prompt and len(choices) == 4 and all(choices) and 0 <= answer_index < 4:
            questions.append({
                "prompt": prompt,
                "choices": choices,
                "answer_index": answer_index,
                "explanation": explanation,
                "source_quote": source_quote,
            })

    return {
        "article_url": raw.get("article_url") or "",
        "questions": questions,
    }
