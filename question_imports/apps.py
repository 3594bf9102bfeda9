from django.apps import AppConfig


class QuestionImportsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "question_imports"
    verbose_name = "Question imports"
