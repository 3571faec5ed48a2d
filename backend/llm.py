# llm.py  (google-generativeai directly, no LangChain wrapper)
import json
import logging
import os

import google.generativeai as genai

from config import GOOGLE_API_KEY, GEMINI_MODEL

logger = logging.getLogger(__name__)

# Known-good text models, tried in this order after GEMINI_MODEL
CANDIDATE_MODELS = [
    "gemini-1.5-flash",
    "gemini-1.5-flash-002",
    "gemini-1.5-pro",
    "gemini-pro",
]

PROMPTS_DIR = os.path.join(os.path.dirname(__file__), "prompts")


def _read_prompt(name: str) -> str:
    with open(os.path.join(PROMPTS_DIR, name), "r", encoding="utf-8") as f:
        return f.read()


MCQ_GENERATION_PROMPT = _read_prompt("mcq_generation.md")
MCQ_VERIFICATION_PROMPT = _read_prompt("mcq_verification.md")

_configured = False


class LLMError(Exception):
    pass


def _ensure_configured() -> None:
    global _configured
    if _configured:
        return
    if not GOOGLE_API_KEY:
        raise LLMError("GOOGLE_API_KEY is missing in .env")
    genai.configure(api_key=GOOGLE_API_KEY)
    _configured = True


def _models_to_try() -> list:
    names = [GEMINI_MODEL] if GEMINI_MODEL else []
    names += [m for m in CANDIDATE_MODELS if m != GEMINI_MODEL]
    return names


def _format_generation_prompt(article_url: str, clean_text: str, title: str) -> str:
    return f"""{MCQ_GENERATION_PROMPT}

Article URL: {article_url}
Article Title: {title}

Article Content:
{clean_text}

Generate 2-3 educational MCQs based on this healthcare article. Focus on key facts and concepts that would help readers better understand the healthcare topic.
"""


def _strip_fences(content: str) -> str:
    # Some models wrap JSON in ``` blocks
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        if content.rstrip().endswith("```"):
            content = content.rstrip()[:-3]
    return content.strip()


def _try_model_once(model_name: str, prompt_text: str, temperature: float) -> str:
    model = genai.GenerativeModel(model_name)
    resp = model.generate_content(prompt_text, generation_config={"temperature": temperature})
    text = getattr(resp, "text", None)
    if not text:
        raise LLMError(f"Model {model_name} returned empty response.")
    return text.strip()


def _generate_text(prompt_text: str, temperature: float) -> str:
    _ensure_configured()
    errors = []
    for name in _models_to_try():
        try:
            logger.info("Trying Gemini model %s", name)
            return _try_model_once(name, prompt_text, temperature)
        except Exception as e:
            errors.append(f"{name}: {e}")
    raise LLMError("All candidate models failed:\n" + "\n".join(errors))


def generate_mcqs(article_url: str, clean_text: str, title: str) -> dict:
    """
    Asks Gemini for 2-3 healthcare-literacy MCQs about one article.
    Returns the parsed JSON payload ({article_url, questions: [...]}).
    Raises LLMError when no model produced valid JSON.
    """
    content = _strip_fences(_generate_text(_format_generation_prompt(article_url, clean_text, title), 0.3))
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise LLMError(f"Model returned non-JSON or bad JSON: {e}\nRaw: {content[:400]}")
    if not isinstance(payload, dict):
        raise LLMError("Model returned JSON that is not an object")
    return payload


def verify_mcq(mcq: dict) -> str:
    # Advisory only: callers persist the question whatever this says
    prompt_text = f"{MCQ_VERIFICATION_PROMPT}\n\n{json.dumps(mcq, indent=2)}"
    try:
        verdict = _generate_text(prompt_text, 0.1)
    except Exception as e:
        logger.warning("MCQ verification failed: %s", e)
        return "error"
    return "approved" if "APPROVED" in verdict else "needs_revision"


# --- Simple ping for /api/llm-test
def ping_llm() -> dict:
    """
    Returns {"ok": True, "model": <model_used>, "content": "..."} on success,
            or {"ok": False, "error": "..."} on failure.
    """
    try:
        _ensure_configured()
    except LLMError as e:
        return {"ok": False, "error": str(e)}

    last_err = "Unknown error"
    for name in _models_to_try():
        try:
            model = genai.GenerativeModel(name)
            resp = model.generate_content("Reply with OK")
            text = (resp.text or "").strip()
            if text:
                return {"ok": True, "model": name, "content": text[:200]}
        except Exception as e:
            last_err = str(e)
    return {"ok": False, "error": last_err}
