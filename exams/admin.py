from django.contrib import admin

from .models import (
    Blueprint, BlueprintSection, Exam, Question, QuestionSet, QuestionSetItem, Subtest,
)


# ----- Inlines -----
class SubtestInline(admin.TabularInline):
    model = Subtest
    extra = 0
    fields = ("code", "name", "sort_order", "is_active", "is_mandatory")
    ordering = ("sort_order",)


class BlueprintSectionInline(admin.TabularInline):
    model = BlueprintSection
    extra = 0
    raw_id_fields = ("subtest",)
    fields = ("sort_order", "subtest", "name", "question_count", "duration_seconds", "countdown_seconds")
    ordering = ("sort_order",)


class QuestionSetItemInline(admin.TabularInline):
    model = QuestionSetItem
    extra = 0
    raw_id_fields = ("question",)
    fields = ("sort_order", "question")
    ordering = ("sort_order",)


# ----- Admins -----
@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "type", "is_active", "created_at")
    list_filter = ("type", "is_active")
    search_fields = ("code", "name")
    inlines = [SubtestInline]
    readonly_fields = ("created_at", "updated_at")


@admin.register(Subtest)
class SubtestAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "exam", "sort_order", "is_active", "is_mandatory")
    list_filter = ("exam", "is_active")
    search_fields = ("code", "name")
    ordering = ("exam", "sort_order")


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("short_stem", "subtest", "question_type", "difficulty", "status", "created_at")
    list_filter = ("subtest__exam", "subtest", "question_type", "difficulty", "status")
    search_fields = ("stem", "stimulus")
    raw_id_fields = ("subtest", "created_by")
    readonly_fields = ("created_at", "updated_at")

    def short_stem(self, obj):
        return obj.stem[:80]


@admin.register(Blueprint)
class BlueprintAdmin(admin.ModelAdmin):
    list_display = ("name", "exam", "version", "is_active", "created_at")
    list_filter = ("exam", "is_active")
    search_fields = ("name", "exam__name")
    inlines = [BlueprintSectionInline]
    readonly_fields = ("created_at", "updated_at")


@admin.register(QuestionSet)
class QuestionSetAdmin(admin.ModelAdmin):
    list_display = ("name", "exam", "subtest", "status", "created_at")
    list_filter = ("exam", "status")
    search_fields = ("name", "description")
    raw_id_fields = ("created_by",)
    inlines = [QuestionSetItemInline]
    readonly_fields = ("created_at", "updated_at")
