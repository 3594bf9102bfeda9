from __future__ import annotations

from django.db import models
from django.db.models import Q

from accounts.models import User
from common.enums import AttemptMode, AttemptStatus, TimeMode
from exams.models import Blueprint, Question, QuestionSet, Subtest, TimeStampedModel


class Attempt(TimeStampedModel):
    """
    One practice or tryout session owned by one user.

    `config_snapshot` for a tryout holds the section pointer:
      {"questionCount": 60, "currentSectionIndex": 0, "sectionStartedAt": "<iso>"}
    `sectionStartedAt` is absent until the current section is started.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="attempts")
    mode = models.CharField(max_length=12, choices=AttemptMode.choices)
    status = models.CharField(max_length=16, choices=AttemptStatus.choices, default=AttemptStatus.IN_PROGRESS)
    time_mode = models.CharField(max_length=12, choices=TimeMode.choices, null=True, blank=True)

    subtest = models.ForeignKey(Subtest, on_delete=models.SET_NULL, null=True, blank=True, related_name="attempts")
    question_set = models.ForeignKey(QuestionSet, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name="attempts")
    blueprint = models.ForeignKey(Blueprint, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name="attempts")

    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    total_time_seconds = models.PositiveIntegerField(null=True, blank=True)

    config_snapshot = models.JSONField(default=dict, blank=True)
    results = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ("-started_at",)
        indexes = [
            models.Index(fields=["user", "mode", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(Q(status=AttemptStatus.COMPLETED, results__isnull=False)
                           | (~Q(status=AttemptStatus.COMPLETED) & Q(results__isnull=True))),
                name="attempt_results_iff_completed",
            ),
        ]

    def __str__(self):
        return f"{self.mode} attempt {self.id} • {self.status}"

    @property
    def current_section_index(self) -> int:
        return int((self.config_snapshot or {}).get("currentSectionIndex") or 0)

    @property
    def section_started_at(self):
        return (self.config_snapshot or {}).get("sectionStartedAt")

    @property
    def sections_completed(self) -> bool:
        return bool((self.config_snapshot or {}).get("sectionsCompleted"))


class AttemptItem(TimeStampedModel):
    attempt = models.ForeignKey(Attempt, on_delete=models.CASCADE, related_name="items")
    question = models.ForeignKey(Question, on_delete=models.PROTECT, related_name="attempt_items")

    user_answer = models.JSONField(null=True, blank=True)
    is_correct = models.BooleanField(null=True, blank=True)
    partial_score = models.PositiveSmallIntegerField(null=True, blank=True)
    time_spent_seconds = models.PositiveIntegerField(null=True, blank=True)
    answered_at = models.DateTimeField(null=True, blank=True)

    sort_order = models.PositiveIntegerField(default=0)
    section_index = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ("attempt", "sort_order")
        indexes = [models.Index(fields=["attempt", "section_index"])]
