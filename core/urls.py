# core/urls.py
from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounts.views import LoginEmailPasswordView, MeView, RegisterView
from attempts.views import (
    MyAnalyticsView, PracticeAnswerView, PracticeCompleteView, PracticeSessionCreateView,
    PracticeSessionDetailView, TryoutAnswerView, TryoutEndSectionView, TryoutResultsView,
    TryoutSessionCreateView, TryoutSessionDetailView, TryoutStartSectionView,
)
from common.views import JobDispatchView
from exams.views import (
    BlueprintDetailView, ExamViewSet, PracticeCatalogView, QuestionSetViewSet, QuestionViewSet,
    SubtestViewSet, TryoutCatalogView,
)
from question_imports.views import QuestionImportViewSet

from .jobs import build_job_registry

job_registry = build_job_registry()

router = DefaultRouter()
router.register(r"exams", ExamViewSet, basename="exam")
router.register(r"subtests", SubtestViewSet, basename="subtest")
router.register(r"admin/questions", QuestionViewSet, basename="question")
router.register(r"admin/question-sets", QuestionSetViewSet, basename="questionset")
router.register(r"admin/question-imports", QuestionImportViewSet, basename="questionimport")


urlpatterns = [
    path('admin/', admin.site.urls),

    path("api/auth/register/",    RegisterView.as_view(),           name="auth-register"),
    path("api/auth/login/",       LoginEmailPasswordView.as_view(), name="auth-login"),
    path("api/auth/me/",          MeView.as_view(),                 name="auth-me"),

    path("api/practice/catalog/", PracticeCatalogView.as_view(), name="practice-catalog"),
    path("api/practice/sessions/", PracticeSessionCreateView.as_view(), name="practice-create"),
    path("api/practice/sessions/<uuid:attempt_id>/", PracticeSessionDetailView.as_view(), name="practice-detail"),
    path("api/practice/sessions/<uuid:attempt_id>/answers/", PracticeAnswerView.as_view(), name="practice-answer"),
    path("api/practice/sessions/<uuid:attempt_id>/complete/", PracticeCompleteView.as_view(),
         name="practice-complete"),

    path("api/tryout/catalog/", TryoutCatalogView.as_view(), name="tryout-catalog"),
    path("api/tryout/blueprints/<uuid:blueprint_id>/", BlueprintDetailView.as_view(), name="blueprint-detail"),
    path("api/tryout/sessions/", TryoutSessionCreateView.as_view(), name="tryout-create"),
    path("api/tryout/sessions/<uuid:attempt_id>/", TryoutSessionDetailView.as_view(), name="tryout-detail"),
    path("api/tryout/sessions/<uuid:attempt_id>/sections/<int:section_index>/start/",
         TryoutStartSectionView.as_view(), name="tryout-start-section"),
    path("api/tryout/sessions/<uuid:attempt_id>/sections/<int:section_index>/end/",
         TryoutEndSectionView.as_view(), name="tryout-end-section"),
    path("api/tryout/sessions/<uuid:attempt_id>/answers/", TryoutAnswerView.as_view(), name="tryout-answer"),
    path("api/tryout/sessions/<uuid:attempt_id>/results/", TryoutResultsView.as_view(), name="tryout-results"),

    path("api/analytics/me/", MyAnalyticsView.as_view(), name="my-analytics"),

    path("api/jobs/", JobDispatchView.as_view(registry=job_registry), name="job-dispatch"),

    path("api/", include(router.urls)),
]
