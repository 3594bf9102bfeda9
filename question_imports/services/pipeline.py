# question_imports/services/pipeline.py
"""
Question import pipeline.

    pending -> queued -> processing -> ready -> saved
    queued | processing -> failed -> queued (manual retry)

Collaborators (storage, job queue, OCR, draft generator) are keyword
arguments so workers and tests can hand in their own.
"""
from __future__ import annotations

import logging
import re
import uuid

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from common.enums import ContentStatus, ImportStatus
from common.exceptions import Conflict, NotFound, QueueDispatchError, StorageError, ValidationError
from common.jobs import JobQueue
from common.ids import as_uuid
from exams.models import Question, QuestionSet, QuestionSetItem, Subtest
from exams.validators import validate_question_content

from ..models import QuestionImport, QuestionImportQuestion
from ..storage import ObjectStorage
from . import drafts as drafts_service
from . import ocr as ocr_service

logger = logging.getLogger(__name__)

QUESTION_IMPORT_PROCESS = "question-import.process"
QUEUE_LABEL = "question-import"
QUEUE_RETRIES = 3

MAX_UPLOAD_BYTES = 20 * 1024 * 1024
PDF_MIME_TYPE = "application/pdf"
DEFAULT_SET_NAME = "Imported Question Set"

DRAFT_METADATA_FIELDS = ("draft_exam", "draft_subtest", "draft_name", "draft_description")
DRAFT_QUESTION_FIELDS = (
    "subtest", "question_type", "stimulus", "stem", "options", "complex_options", "answer_key",
    "explanation", "difficulty", "topic_tags", "source_year", "source_info", "sort_order",
)


def sanitize_filename(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", name or "upload.pdf")


def _now_ms() -> int:
    return int(timezone.now().timestamp() * 1000)


def get_import(import_id) -> QuestionImport:
    record = None
    pk = as_uuid(import_id)
    if pk is not None:
        record = QuestionImport.objects.select_related("draft_exam", "draft_subtest").filter(pk=pk).first()
    if record is None:
        raise NotFound("Question import not found.")
    return record


def _mark_failed(record: QuestionImport, message: str):
    record.status = ImportStatus.FAILED
    record.error_message = message
    record.save(update_fields=["status", "error_message", "updated_at"])


# ---------------- upload + dispatch ----------------

def create_import(admin, upload, exam_id=None, subtest_id=None, name=None, description=None,
                  storage=None, queue=None) -> QuestionImport:
    if upload is None:
        raise ValidationError({"file": "A PDF file is required."})
    content_type = getattr(upload, "content_type", "") or ""
    if content_type != PDF_MIME_TYPE and not upload.name.lower().endswith(".pdf"):
        raise ValidationError({"file": "Only PDF files are supported."})
    if upload.size > MAX_UPLOAD_BYTES:
        raise ValidationError({"file": "File exceeds the 20 MB limit."})

    storage = storage or ObjectStorage()
    safe_name = sanitize_filename(upload.name)
    bucket = settings.QUESTION_IMPORT_BUCKET
    path = f"imports/{admin.id}/{_now_ms()}-{uuid.uuid4()}-{safe_name}"

    result = storage.upload(bucket, path, upload.read(), PDF_MIME_TYPE)
    if not result.ok:
        raise StorageError(f"Failed to upload file: {result.error}")

    record = QuestionImport.objects.create(
        status=ImportStatus.PENDING,
        storage_bucket=bucket,
        storage_path=path,
        source_filename=upload.name,
        source_mime_type=PDF_MIME_TYPE,
        source_size=upload.size,
        draft_exam_id=exam_id,
        draft_subtest_id=subtest_id,
        draft_name=name or None,
        draft_description=description or None,
        created_by=admin,
    )
    logger.info("Question import %s created by %s (%s bytes)", record.id, admin.id, upload.size)
    return enqueue(record.id, queue=queue)


def enqueue(import_id, queue=None) -> QuestionImport:
    record = get_import(import_id)
    queue = queue or JobQueue()
    dedup_id = f"import-{record.id}-{_now_ms()}"

    try:
        dispatched = queue.dispatch(
            QUESTION_IMPORT_PROCESS,
            {"importId": str(record.id)},
            deduplication_id=dedup_id,
            retries=QUEUE_RETRIES,
            label=QUEUE_LABEL,
        )
    except QueueDispatchError as e:
        try:
            _mark_failed(record, str(e.detail))
        except Exception:
            logger.exception("Failed to mark import %s as failed after dispatch error", record.id)
        raise

    record.status = ImportStatus.QUEUED
    record.error_message = None
    record.queue_message_id = dispatched.get("messageId")
    record.queue_deduplication_id = dedup_id
    record.save(update_fields=[
        "status", "error_message", "queue_message_id", "queue_deduplication_id", "updated_at",
    ])
    logger.info("Question import %s queued as %s", record.id, record.queue_message_id)
    return record


def trigger_processing(import_id, queue=None) -> QuestionImport:
    record = get_import(import_id)
    if record.status in (ImportStatus.QUEUED, ImportStatus.PROCESSING):
        return record
    if record.status == ImportStatus.SAVED:
        raise Conflict("Import already saved.")
    return enqueue(record.id, queue=queue)


# ---------------- worker ----------------

def _subtest_resolver(subtests, fallback_id):
    by_code = {s.code.lower(): s.id for s in subtests}
    by_name = {s.name.lower(): s.id for s in subtests}

    def resolve(value):
        if not value:
            return fallback_id
        key = value.strip().lower()
        return by_code.get(key) or by_name.get(key) or fallback_id

    return resolve


def process(import_id, storage=None, ocr=None, drafts=None) -> QuestionImport:
    """
    OCR the stored PDF, generate draft questions and move the import to ready.

    `ocr` is called as ocr(document_url) -> OcrResult and `drafts` with the
    keyword arguments of drafts.generate_question_drafts.
    """
    record = get_import(import_id)
    if record.status == ImportStatus.SAVED:
        raise Conflict("Import already saved.")

    record.status = ImportStatus.PROCESSING
    record.error_message = None
    record.save(update_fields=["status", "error_message", "updated_at"])

    storage = storage or ObjectStorage()
    ocr = ocr or ocr_service.run_ocr
    drafts = drafts or drafts_service.generate_question_drafts

    try:
        document_url = storage.signed_url(record.storage_bucket, record.storage_path)
        result = ocr(document_url)

        normalizer = ocr_service.PageNormalizer(storage, settings.QUESTION_IMPORT_IMAGE_BUCKET, record.id)
        pages = [normalizer.normalize(page, i) for i, page in enumerate(result.pages)]
        ocr_text = "\n\n".join(md for md, _ in pages if md.strip())
        if not ocr_text.strip():
            raise ocr_service.OcrError("OCR returned empty text")
        images = [img for _, page_images in pages for img in page_images]

        subtests = Subtest.objects.all()
        if record.draft_exam_id:
            subtests = subtests.filter(exam_id=record.draft_exam_id)
        subtests = list(subtests)
        exam = record.draft_exam
        generated = drafts(
            ocr_text=ocr_text,
            exam_label=f"{exam.name} ({exam.code})" if exam else None,
            subtests=[{"code": s.code, "name": s.name} for s in subtests],
            source_filename=record.source_filename,
            default_name=record.draft_name,
            default_description=record.draft_description,
        )

        chunks = drafts_service.parse_ocr_chunks(ocr_text)
        generated = drafts_service.inject_ocr_images(chunks, generated)
        rows = drafts_service.build_draft_rows(
            generated, chunks, _subtest_resolver(subtests, record.draft_subtest_id),
        )

        fallback_name = re.sub(r"\.[^/.]+$", "", record.source_filename)
        with transaction.atomic():
            record.questions.all().delete()
            QuestionImportQuestion.objects.bulk_create([
                QuestionImportQuestion(question_import=record, **row) for row in rows
            ])
            record.status = ImportStatus.READY
            record.ocr_text = ocr_text
            record.ocr_metadata = {
                "pageCount": len(pages),
                "truncated": len(ocr_text) > ocr_service.OCR_MAX_CHARS,
                "imageCount": len(images),
                "images": images,
            }
            record.processed_at = timezone.now()
            record.draft_name = (record.draft_name or "").strip() or fallback_name or DEFAULT_SET_NAME
            record.save(update_fields=[
                "status", "ocr_text", "ocr_metadata", "processed_at", "draft_name", "updated_at",
            ])
    except Exception as e:
        _mark_failed(record, str(e) or type(e).__name__)
        logger.warning("Question import %s failed: %s", record.id, e)
        raise

    logger.info("Question import %s ready with %s draft question(s)", record.id, len(rows))
    return record


# ---------------- admin edits ----------------

def delete_import(import_id, storage=None):
    """Remove the source PDF, then extracted images, then the record."""
    record = get_import(import_id)
    storage = storage or ObjectStorage()

    result = storage.remove(record.storage_bucket, [record.storage_path])
    if not result.ok:
        raise StorageError(f"Failed to delete source file: {result.error}")

    image_paths = record.image_paths()
    if image_paths:
        result = storage.remove(settings.QUESTION_IMPORT_IMAGE_BUCKET, image_paths)
        if not result.ok:
            raise StorageError(f"Failed to delete OCR images: {result.error}")

    record.delete()
    logger.info("Question import %s deleted", import_id)


def update_draft_metadata(import_id, **fields) -> QuestionImport:
    record = get_import(import_id)
    changed = [name for name in DRAFT_METADATA_FIELDS if name in fields]
    for name in changed:
        setattr(record, name, fields[name])
    if changed:
        record.save(update_fields=changed + ["updated_at"])
    return record


def update_draft_question(import_id, question_id, **fields) -> QuestionImportQuestion:
    record = get_import(import_id)
    question = record.questions.filter(pk=as_uuid(question_id)).first() if as_uuid(question_id) else None
    if question is None:
        raise NotFound("Draft question not found.")
    changed = [name for name in DRAFT_QUESTION_FIELDS if name in fields]
    for name in changed:
        setattr(question, name, fields[name])
    if changed:
        question.save(update_fields=changed + ["updated_at"])
    return question


# ---------------- finalize ----------------

def finalize(import_id, admin) -> QuestionSet:
    """Copy the reviewed drafts into the bank as a draft question set."""
    get_import(import_id)
    with transaction.atomic():
        record = QuestionImport.objects.select_for_update().get(pk=import_id)
        if record.status != ImportStatus.READY:
            raise Conflict("Import is not ready.")
        if not record.draft_exam_id:
            raise ValidationError({"draft_exam": "Select an exam before saving."})

        drafts = list(record.questions.order_by("sort_order"))
        if not drafts:
            raise ValidationError({"questions": "Import has no questions."})

        errors = {}
        for i, draft in enumerate(drafts, start=1):
            if not (draft.subtest_id or record.draft_subtest_id):
                errors[str(i)] = "Select a subtest."
                continue
            try:
                validate_question_content(draft.question_type, draft.answer_key,
                                          draft.options, draft.complex_options)
            except serializers.ValidationError as e:
                errors[str(i)] = e.detail
        if errors:
            raise ValidationError({"questions": errors})

        qset = QuestionSet.objects.create(
            exam_id=record.draft_exam_id,
            subtest_id=record.draft_subtest_id,
            name=record.draft_name or DEFAULT_SET_NAME,
            description=record.draft_description,
            status=ContentStatus.DRAFT,
            created_by=admin,
        )
        questions = Question.objects.bulk_create([
            Question(
                subtest_id=d.subtest_id or record.draft_subtest_id,
                question_type=d.question_type,
                stimulus=d.stimulus,
                stem=d.stem,
                options=d.options,
                complex_options=d.complex_options,
                answer_key=d.answer_key,
                explanation=d.explanation,
                difficulty=d.difficulty,
                topic_tags=d.topic_tags,
                source_year=d.source_year,
                source_info=d.source_info,
                status=ContentStatus.DRAFT,
                created_by=admin,
            )
            for d in drafts
        ])
        QuestionSetItem.objects.bulk_create([
            QuestionSetItem(question_set=qset, question=q, sort_order=i + 1)
            for i, q in enumerate(questions)
        ])

        record.status = ImportStatus.SAVED
        record.saved_question_set = qset
        record.saved_at = timezone.now()
        record.save(update_fields=["status", "saved_question_set", "saved_at", "updated_at"])

    logger.info("Question import %s saved as question set %s (%s questions)", record.id, qset.id, len(questions))
    return qset
