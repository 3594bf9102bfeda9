# question_imports/services/drafts.py
"""
Turns OCR markdown into draft questions.

The model is asked for a JSON object ({"questionSet": {...}, "questions": [...]})
which is validated with DRF serializers, then normalized into rows for
QuestionImportQuestion.
"""
from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from django.conf import settings
from openai import APIError, OpenAI, RateLimitError
from rest_framework import serializers

from common.enums import Difficulty, QuestionType
from exams.validators import OPTION_LETTERS

from .ocr import MARKDOWN_IMAGE_RE, OCR_MAX_CHARS

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 200
INCOMPLETE_PLACEHOLDER = "[OCR tidak lengkap]"

_MAX_API_RETRIES = 3
_RATE_LIMIT_MAX_RETRIES = 5
_BACKOFF_BASE = 2.0

QUESTION_HEADER_RE = re.compile(r"(?:^|\n)\s*(?:#+\s*)?(?:No\.?|Nomor)\s*(\d+)\b", re.IGNORECASE)
STEM_NUMBER_RE = re.compile(r"(?:^|\b)(?:No\.?|Nomor)\s*(\d+)\b", re.IGNORECASE)
OPTION_LINE_RE = re.compile(r"^\s*([A-E])[.)]\s*", re.IGNORECASE)

SYSTEM_PROMPT = " ".join([
    "You are an expert Indonesian exam content editor for UTBK/TKA questions.",
    "Extract complete questions from OCR text and output ONLY a JSON object of the form",
    '{"questionSet": {"name": str, "description": str|null}, "questions": [...]}.',
    "Each question has subtestCode, questionType (single_choice|complex_selection|fill_in),",
    "stimulus, stem, options, complexOptions, answerKey, explanation {level1, level1WrongOptions, level2},",
    "difficulty (easy|medium|hard), topicTags, sourceYear, sourceInfo.",
    "Use Bahasa Indonesia. Use Markdown for math or formulas.",
    "If a question is incomplete or ambiguous, skip it.",
    "For single_choice: provide 4-5 options (no A-E prefix). answerKey.correct must be a letter A-E.",
    "For complex_selection: provide complexOptions with statements and choices; "
    "answerKey.rows must match the number of statements.",
    "For fill_in: provide answerKey.accepted array with acceptable answers.",
    "Keep markdown image tags from the OCR text next to the question or option they belong to.",
    "If you can identify a subtest, set subtestCode to one of the provided codes. Otherwise leave it null.",
])


class DraftGenerationError(Exception):
    pass


# ---------------- model output schema ----------------

class ComplexOptionSerializer(serializers.Serializer):
    statement = serializers.CharField(allow_blank=True)
    choices = serializers.ListField(child=serializers.CharField(allow_blank=True))


class ExplanationSerializer(serializers.Serializer):
    level1 = serializers.CharField(allow_blank=True)
    level1WrongOptions = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    level2 = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)


class GeneratedQuestionSerializer(serializers.Serializer):
    subtestCode = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    questionType = serializers.ChoiceField(choices=QuestionType.values)
    stimulus = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    stem = serializers.CharField(allow_blank=True)
    options = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, allow_null=True)
    complexOptions = ComplexOptionSerializer(many=True, required=False, allow_null=True)
    answerKey = serializers.DictField()
    explanation = ExplanationSerializer()
    difficulty = serializers.ChoiceField(choices=Difficulty.values, required=False, default=Difficulty.MEDIUM)
    topicTags = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    sourceYear = serializers.IntegerField(min_value=2000, max_value=2100, required=False, allow_null=True)
    sourceInfo = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_answerKey(self, value):
        kind = value.get("type")
        if kind == QuestionType.SINGLE_CHOICE:
            if not str(value.get("correct") or "").strip():
                raise serializers.ValidationError("correct is required.")
        elif kind == QuestionType.COMPLEX_SELECTION:
            rows = value.get("rows")
            if not isinstance(rows, list) or not rows:
                raise serializers.ValidationError("rows must be a non-empty list.")
            if any(not isinstance(r, dict) or not str(r.get("correct") or "").strip() for r in rows):
                raise serializers.ValidationError("Each row needs a correct value.")
        elif kind == QuestionType.FILL_IN:
            accepted = value.get("accepted")
            if not isinstance(accepted, list) or not any(str(a).strip() for a in accepted):
                raise serializers.ValidationError("accepted must list at least one answer.")
        else:
            raise serializers.ValidationError("Unknown answer key type.")
        return value


class GeneratedSetSerializer(serializers.Serializer):
    name = serializers.CharField()
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# ---------------- model call ----------------

def _make_client() -> OpenAI:
    if not settings.OPENAI_API_KEY:
        raise DraftGenerationError("Missing OpenAI API key")
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def _call_model(client, system_prompt: str, user_content: str, sleep: Callable = time.sleep) -> str:
    """Chat completion with exponential backoff on rate limits and transient API errors."""
    max_retries = _MAX_API_RETRIES
    attempt = 0
    while True:
        attempt += 1
        try:
            response = client.chat.completions.create(
                model=settings.QUESTION_IMPORT_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=0.1,
                response_format={"type": "json_object"},
            )
            return response.choices[0].message.content or ""
        except RateLimitError as e:
            max_retries = _RATE_LIMIT_MAX_RETRIES
            if attempt >= max_retries:
                raise DraftGenerationError(f"Rate limited by model provider: {e}") from e
            wait = _BACKOFF_BASE * (2 ** (attempt - 1))
            logger.warning("Rate limited, retrying in %.1fs (%s/%s)", wait, attempt, max_retries)
            sleep(wait)
        except APIError as e:
            transient = getattr(e, "status_code", None) in (500, 502, 503, 504) or any(
                k in str(e).lower() for k in ("timeout", "connection", "unavailable")
            )
            if not transient or attempt >= max_retries:
                raise DraftGenerationError(f"Model request failed: {e}") from e
            wait = _BACKOFF_BASE * (2 ** (attempt - 1))
            logger.warning("Model API error, retrying in %.1fs (%s/%s): %s", wait, attempt, max_retries, e)
            sleep(wait)


def build_user_prompt(ocr_text, exam_label=None, subtests=(), source_filename=None,
                      default_name=None, default_description=None) -> str:
    subtest_list = "\n".join(f"- {s['code']}: {s['name']}" for s in subtests) or "- (none)"
    lines = [
        f"Exam: {exam_label}" if exam_label else "",
        f"Suggested set name: {default_name}" if default_name else "",
        f"Suggested set description: {default_description}" if default_description else "",
        f"Source file: {source_filename}" if source_filename else "",
        "Available subtests (code: name):",
        subtest_list,
        "\nOCR TEXT:",
        ocr_text[:OCR_MAX_CHARS],
    ]
    return "\n".join(line for line in lines if line != "")


def generate_question_drafts(ocr_text, exam_label=None, subtests=(), source_filename=None,
                             default_name=None, default_description=None, client=None,
                             sleep: Callable = time.sleep) -> list[dict]:
    """
    Ask the model for questions and return the ones that validate.

    Invalid questions are dropped with a warning; an unparseable response or
    no valid question at all raises DraftGenerationError.
    """
    client = client or _make_client()
    prompt = build_user_prompt(ocr_text, exam_label, subtests, source_filename, default_name, default_description)
    raw = _call_model(client, SYSTEM_PROMPT, prompt, sleep=sleep)

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise DraftGenerationError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DraftGenerationError("Model returned an unexpected payload")

    meta = GeneratedSetSerializer(data=data.get("questionSet") or {})
    if not meta.is_valid():
        logger.warning("Generated question set metadata ignored: %s", meta.errors)

    questions = []
    for index, item in enumerate(data.get("questions") or []):
        ser = GeneratedQuestionSerializer(data=item)
        if ser.is_valid():
            questions.append(ser.validated_data)
        else:
            logger.warning("Dropping generated question %s: %s", index + 1, ser.errors)

    if not questions:
        raise DraftGenerationError("Model returned no usable questions")
    logger.info("Generated %s draft question(s) from %s", len(questions), source_filename or "OCR text")
    return questions


# ---------------- OCR chunks and image placement ----------------

@dataclass
class OcrChunk:
    text: str
    number: Optional[int] = None
    images: list = field(default_factory=list)
    option_images: dict = field(default_factory=dict)


def _http_image_tags(text: str) -> list[str]:
    return [
        m.group(0) for m in MARKDOWN_IMAGE_RE.finditer(text)
        if m.group(1).strip().startswith(("http://", "https://"))
    ]


def parse_ocr_chunks(ocr_text: str) -> list[OcrChunk]:
    """Split OCR text on "No. N" / "Nomor N" headers."""
    matches = list(QUESTION_HEADER_RE.finditer(ocr_text))
    if not matches:
        return [OcrChunk(text=ocr_text, images=_http_image_tags(ocr_text))]

    chunks = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(ocr_text)
        text = ocr_text[match.start():end]
        images, option_images = [], {}
        for line in text.split("\n"):
            tags = _http_image_tags(line)
            if not tags:
                continue
            option = OPTION_LINE_RE.match(line)
            if option:
                option_images.setdefault(option.group(1).upper(), []).extend(tags)
            else:
                images.extend(tags)
        chunks.append(OcrChunk(
            text=text,
            number=int(match.group(1)),
            images=list(dict.fromkeys(images)),
            option_images={k: list(dict.fromkeys(v)) for k, v in option_images.items()},
        ))
    return chunks


def _has_image(question: dict) -> bool:
    texts = [question.get("stimulus") or "", question.get("stem") or ""] + list(question.get("options") or [])
    return any(MARKDOWN_IMAGE_RE.search(t) for t in texts)


def _append_images(text: str, tags: list[str]) -> str:
    existing = set(_http_image_tags(text))
    extra = [t for t in tags if t not in existing]
    if not extra:
        return text
    return "\n\n".join(v for v in [text, *extra] if v.strip())


def inject_ocr_images(chunks: list[OcrChunk], questions: list[dict]) -> list[dict]:
    """
    Put back images the model dropped: match each question to its OCR chunk
    (by position, then by the number in its stem) and append that chunk's
    images to the stimulus (or stem) and option images to the options.
    """
    by_number = {c.number: c for c in chunks if c.number is not None}
    by_index = {
        c.number - 1: c for c in chunks
        if c.number is not None and 0 <= c.number - 1 < len(questions)
    }
    used = set()
    out = []
    for index, question in enumerate(questions):
        if _has_image(question):
            out.append(question)
            continue

        chunk = by_index.get(index)
        if chunk is not None and chunk.number in used:
            chunk = None
        if chunk is None:
            stem_number = STEM_NUMBER_RE.search(question.get("stem") or "")
            candidate = by_number.get(int(stem_number.group(1))) if stem_number else None
            if candidate is not None and candidate.number not in used:
                chunk = candidate
        if chunk is None:
            out.append(question)
            continue

        used.add(chunk.number)
        question = dict(question)
        if question.get("options"):
            options = list(question["options"])
            for letter, tags in chunk.option_images.items():
                pos = OPTION_LETTERS.find(letter)
                if 0 <= pos < len(options):
                    options[pos] = _append_images(options[pos], tags)
            question["options"] = options
        if chunk.images:
            if (question.get("stimulus") or "").strip():
                question["stimulus"] = _append_images(question["stimulus"], chunk.images)
            else:
                question["stem"] = _append_images(question.get("stem") or "", chunk.images)
        out.append(question)
    return out


# ---------------- normalization ----------------

def normalize_answer_key(question_type: str, answer_key, complex_options=None) -> dict:
    answer_key = answer_key if isinstance(answer_key, dict) else {}
    same_type = answer_key.get("type") == question_type

    if question_type == QuestionType.SINGLE_CHOICE:
        correct = str(answer_key.get("correct") or "").upper() if same_type else ""
        return {"type": question_type, "correct": correct if correct and correct in OPTION_LETTERS else "A"}

    if question_type == QuestionType.COMPLEX_SELECTION:
        if same_type and answer_key.get("rows"):
            return answer_key
        return {"type": question_type, "rows": [{"correct": ""} for _ in range(len(complex_options or []) or 1)]}

    if same_type:
        return answer_key
    return {"type": QuestionType.FILL_IN, "accepted": [""]}


def _mark_incomplete(stem: str) -> str:
    stem = stem.strip()
    if stem.startswith(INCOMPLETE_PLACEHOLDER):
        return stem
    return f"{INCOMPLETE_PLACEHOLDER} {stem}".strip()


def normalize_question(question: dict, fallback_text: str = "") -> dict:
    q = dict(question)
    if not (q.get("stem") or "").strip():
        q["stem"] = _mark_incomplete(fallback_text.strip())

    if q["questionType"] == QuestionType.SINGLE_CHOICE and len(q.get("options") or []) < 4:
        q.update({
            "questionType": QuestionType.FILL_IN,
            "options": None,
            "complexOptions": None,
            "answerKey": {"type": QuestionType.FILL_IN, "accepted": ["N/A"]},
            "stem": _mark_incomplete(q["stem"]),
        })
    return q


def build_draft_rows(questions: list[dict], chunks: list[OcrChunk],
                     resolve_subtest: Callable[[Optional[str]], object]) -> list[dict]:
    """Normalized QuestionImportQuestion field dicts, at most MAX_QUESTIONS."""
    rows = []
    for index, question in enumerate(questions[:MAX_QUESTIONS]):
        fallback = chunks[index].text if index < len(chunks) else ""
        q = normalize_question(question, fallback)
        qtype = q["questionType"]
        options = (q.get("options") or []) if qtype == QuestionType.SINGLE_CHOICE else None
        complex_options = (
            [dict(o) for o in (q.get("complexOptions") or [])]
            if qtype == QuestionType.COMPLEX_SELECTION else None
        )
        explanation = dict(q.get("explanation") or {})
        rows.append({
            "subtest_id": resolve_subtest(q.get("subtestCode")),
            "question_type": qtype,
            "stimulus": q.get("stimulus") or None,
            "stem": q["stem"],
            "options": options,
            "complex_options": complex_options,
            "answer_key": normalize_answer_key(qtype, q.get("answerKey"), complex_options),
            "explanation": {"level1": explanation.get("level1", ""), **{
                k: explanation[k] for k in ("level1WrongOptions", "level2") if k in explanation
            }},
            "difficulty": q.get("difficulty") or Difficulty.MEDIUM,
            "topic_tags": list(q.get("topicTags") or []),
            "source_year": q.get("sourceYear"),
            "source_info": q.get("sourceInfo") or None,
            "sort_order": index,
        })
    return rows
