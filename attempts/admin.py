from django.contrib import admin

from .models import Attempt, AttemptItem


class AttemptItemInline(admin.TabularInline):
    model = AttemptItem
    extra = 0
    raw_id_fields = ("question",)
    fields = ("sort_order", "section_index", "question", "is_correct", "partial_score", "time_spent_seconds")
    readonly_fields = ("is_correct", "partial_score")
    ordering = ("sort_order",)


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "mode", "status", "blueprint", "question_set", "started_at", "completed_at")
    list_filter = ("mode", "status", "time_mode")
    search_fields = ("user__username", "user__email")
    raw_id_fields = ("user", "blueprint", "question_set", "subtest")
    readonly_fields = ("results", "config_snapshot")
    inlines = [AttemptItemInline]
