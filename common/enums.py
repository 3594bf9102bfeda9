from django.db import models


class ExamType(models.TextChoices):
    UTBK = "utbk", "UTBK"
    TKA  = "tka",  "TKA"


class Difficulty(models.TextChoices):
    EASY = "easy", "Easy"
    MEDIUM = "medium", "Medium"
    HARD = "hard", "Hard"


class QuestionType(models.TextChoices):
    SINGLE_CHOICE     = "single_choice",     "Single choice"
    COMPLEX_SELECTION = "complex_selection", "Complex selection"
    FILL_IN           = "fill_in",           "Fill in"


class ContentStatus(models.TextChoices):
    DRAFT     = "draft",     "Draft"
    PUBLISHED = "published", "Published"


class AttemptMode(models.TextChoices):
    PRACTICE = "practice", "Practice"
    TRYOUT   = "tryout",   "Tryout"


class AttemptStatus(models.TextChoices):
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED   = "completed",   "Completed"
    ABANDONED   = "abandoned",   "Abandoned"


class TimeMode(models.TextChoices):
    RELAXED = "relaxed", "Relaxed"
    TIMED   = "timed",   "Timed"


class ImportStatus(models.TextChoices):
    PENDING    = "pending",    "Pending"
    QUEUED     = "queued",     "Queued"
    PROCESSING = "processing", "Processing"
    READY      = "ready",      "Ready for review"
    FAILED     = "failed",     "Failed"
    SAVED      = "saved",      "Saved"
