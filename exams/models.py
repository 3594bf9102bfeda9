from __future__ import annotations

import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from accounts.models import User
from common.enums import ContentStatus, Difficulty, ExamType, QuestionType


# ----------------------------
# Common
# ----------------------------

class TimeStampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ----------------------------
# Exams & subtests
# ----------------------------

class Exam(TimeStampedModel):
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=8, choices=ExamType.choices, default=ExamType.UTBK)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return f"{self.name} ({self.code})"


class Subtest(TimeStampedModel):
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name="subtests")
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_mandatory = models.BooleanField(default=True)

    class Meta:
        ordering = ("exam", "sort_order", "name")
        unique_together = ("exam", "code")

    def __str__(self):
        return f"{self.exam.code}/{self.code}"


# ----------------------------
# Question bank
# ----------------------------

class Question(TimeStampedModel):
    subtest = models.ForeignKey(Subtest, on_delete=models.PROTECT, related_name="questions")
    stimulus = models.TextField(blank=True, null=True)
    stem = models.TextField()
    # single_choice: ["opt A", "opt B", ...]
    options = models.JSONField(null=True, blank=True)
    # complex_selection: [{"statement": "...", "choices": ["Benar", "Salah"]}, ...]
    complex_options = models.JSONField(null=True, blank=True)
    question_type = models.CharField(max_length=20, choices=QuestionType.choices,
                                     default=QuestionType.SINGLE_CHOICE)
    answer_key = models.JSONField()
    explanation = models.JSONField(default=dict, blank=True)
    difficulty = models.CharField(max_length=8, choices=Difficulty.choices, default=Difficulty.MEDIUM)
    topic_tags = models.JSONField(default=list, blank=True)
    source_year = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(2000), MaxValueValidator(2100)]
    )
    source_info = models.CharField(max_length=255, blank=True, null=True)
    status = models.CharField(max_length=12, choices=ContentStatus.choices, default=ContentStatus.DRAFT)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name="questions_created")

    class Meta:
        indexes = [
            models.Index(fields=["subtest", "status"]),
            models.Index(fields=["question_type"]),
        ]

    def __str__(self):
        return self.stem[:60]


# ----------------------------
# Blueprints (tryout structure)
# ----------------------------

class Blueprint(TimeStampedModel):
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name="blueprints")
    version = models.PositiveIntegerField(default=1)
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ("exam", "-version")
        unique_together = ("exam", "version")

    def __str__(self):
        return f"{self.name} v{self.version}"

    def ordered_sections(self):
        return list(self.sections.select_related("subtest").order_by("sort_order", "created_at"))


class BlueprintSection(TimeStampedModel):
    blueprint = models.ForeignKey(Blueprint, on_delete=models.CASCADE, related_name="sections")
    subtest = models.ForeignKey(Subtest, on_delete=models.PROTECT, related_name="blueprint_sections")
    name = models.CharField(max_length=200, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    question_count = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    duration_seconds = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    countdown_seconds = models.PositiveIntegerField(default=30)

    class Meta:
        ordering = ("blueprint", "sort_order")

    @property
    def display_name(self) -> str:
        return self.name or self.subtest.name


# ----------------------------
# Question sets (practice)
# ----------------------------

class QuestionSet(TimeStampedModel):
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name="question_sets")
    subtest = models.ForeignKey(Subtest, on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="question_sets")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=12, choices=ContentStatus.choices, default=ContentStatus.DRAFT)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name="question_sets_created")

    class Meta:
        ordering = ("exam", "name")

    def __str__(self):
        return self.name


class QuestionSetItem(TimeStampedModel):
    question_set = models.ForeignKey(QuestionSet, on_delete=models.CASCADE, related_name="items")
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="set_items")
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("question_set", "sort_order")
        unique_together = ("question_set", "question")
