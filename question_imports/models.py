from __future__ import annotations

from django.db import models

from accounts.models import User
from common.enums import Difficulty, ImportStatus, QuestionType
from exams.models import Exam, QuestionSet, Subtest, TimeStampedModel


class QuestionImport(TimeStampedModel):
    """
    One uploaded PDF and the draft questions extracted from it.

    Source attributes (storage + source_*) never change after upload; the
    draft_* fields are what the admin edits before saving to the bank.
    """
    status = models.CharField(max_length=12, choices=ImportStatus.choices, default=ImportStatus.PENDING)

    storage_bucket = models.CharField(max_length=128)
    storage_path = models.CharField(max_length=512)
    source_filename = models.CharField(max_length=255)
    source_mime_type = models.CharField(max_length=100, default="application/pdf")
    source_size = models.PositiveBigIntegerField(default=0)

    ocr_text = models.TextField(blank=True, null=True)
    # {"pageCount": 3, "truncated": false, "imageCount": 2,
    #  "images": [{"page": 1, "index": 0, "mimeType": "image/png", "storagePath": "...", "publicUrl": "..."}]}
    ocr_metadata = models.JSONField(null=True, blank=True)

    queue_message_id = models.CharField(max_length=128, blank=True, null=True)
    queue_deduplication_id = models.CharField(max_length=128, blank=True, null=True)
    error_message = models.TextField(blank=True, null=True)

    draft_exam = models.ForeignKey(Exam, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name="question_imports")
    draft_subtest = models.ForeignKey(Subtest, on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name="question_imports")
    draft_name = models.CharField(max_length=200, blank=True, null=True)
    draft_description = models.TextField(blank=True, null=True)

    saved_question_set = models.ForeignKey(QuestionSet, on_delete=models.SET_NULL, null=True, blank=True,
                                           related_name="imports")
    processed_at = models.DateTimeField(null=True, blank=True)
    saved_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name="question_imports")

    class Meta:
        ordering = ("-created_at",)
        indexes = [models.Index(fields=["status", "created_at"])]

    def __str__(self):
        return f"{self.source_filename} • {self.status}"

    def image_paths(self) -> list[str]:
        images = (self.ocr_metadata or {}).get("images") or []
        return list(dict.fromkeys(img["storagePath"] for img in images if img.get("storagePath")))


class QuestionImportQuestion(TimeStampedModel):
    question_import = models.ForeignKey(QuestionImport, on_delete=models.CASCADE, related_name="questions")
    subtest = models.ForeignKey(Subtest, on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="import_drafts")
    question_type = models.CharField(max_length=20, choices=QuestionType.choices)
    stimulus = models.TextField(blank=True, null=True)
    stem = models.TextField()
    options = models.JSONField(null=True, blank=True)
    complex_options = models.JSONField(null=True, blank=True)
    answer_key = models.JSONField()
    explanation = models.JSONField(default=dict, blank=True)
    difficulty = models.CharField(max_length=8, choices=Difficulty.choices, default=Difficulty.MEDIUM)
    topic_tags = models.JSONField(default=list, blank=True)
    source_year = models.PositiveIntegerField(null=True, blank=True)
    source_info = models.CharField(max_length=255, blank=True, null=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("question_import", "sort_order")
