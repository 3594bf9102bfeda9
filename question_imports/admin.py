from django.contrib import admin

from .models import QuestionImport, QuestionImportQuestion


class QuestionImportQuestionInline(admin.TabularInline):
    model = QuestionImportQuestion
    extra = 0
    raw_id_fields = ("subtest",)
    fields = ("sort_order", "subtest", "question_type", "stem", "difficulty")
    ordering = ("sort_order",)


@admin.register(QuestionImport)
class QuestionImportAdmin(admin.ModelAdmin):
    list_display = ("source_filename", "status", "draft_exam", "created_by", "processed_at", "created_at")
    list_filter = ("status", "draft_exam")
    search_fields = ("source_filename", "draft_name")
    raw_id_fields = ("created_by", "draft_exam", "draft_subtest", "saved_question_set")
    readonly_fields = (
        "storage_bucket", "storage_path", "source_size", "ocr_metadata",
        "queue_message_id", "queue_deduplication_id", "created_at", "updated_at",
    )
    inlines = [QuestionImportQuestionInline]
