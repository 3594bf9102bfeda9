import django_filters

from .models import Question, QuestionSet


class QuestionFilter(django_filters.FilterSet):
    exam = django_filters.UUIDFilter(field_name="subtest__exam_id")
    type = django_filters.CharFilter(field_name="question_type")
    q = django_filters.CharFilter(field_name="stem", lookup_expr="icontains")

    class Meta:
        model = Question
        fields = ["subtest", "status", "difficulty"]


class QuestionSetFilter(django_filters.FilterSet):
    class Meta:
        model = QuestionSet
        fields = ["exam", "subtest", "status"]
