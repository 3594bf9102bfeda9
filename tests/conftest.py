import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from accounts.models import User
from common.enums import ContentStatus, QuestionType
from exams.models import Blueprint, BlueprintSection, Exam, Question, QuestionSet, QuestionSetItem, Subtest


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def student(db):
    return User.objects.create_user(
        username="siswa@example.com", email="siswa@example.com", password="rahasia-123",
        role=User.Roles.STUDENT,
    )


@pytest.fixture
def other_student(db):
    return User.objects.create_user(
        username="lain@example.com", email="lain@example.com", password="rahasia-123",
        role=User.Roles.STUDENT,
    )


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username="admin@example.com", email="admin@example.com", password="rahasia-123",
        role=User.Roles.ADMIN,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def student_client(student):
    client = APIClient()
    client.force_authenticate(user=student)
    return client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def exam(db):
    return Exam.objects.create(code="UTBK", name="UTBK SNBT")


@pytest.fixture
def subtests(exam):
    pu = Subtest.objects.create(exam=exam, code="PU", name="Penalaran Umum", sort_order=1)
    pk = Subtest.objects.create(exam=exam, code="PK", name="Pengetahuan Kuantitatif", sort_order=2)
    return {"PU": pu, "PK": pk}


@pytest.fixture
def make_question(db):
    def make(subtest, question_type=QuestionType.SINGLE_CHOICE, status=ContentStatus.PUBLISHED, **kwargs):
        defaults = {
            QuestionType.SINGLE_CHOICE: {
                "options": ["1", "2", "3", "4", "5"],
                "answer_key": {"type": "single_choice", "correct": "B"},
            },
            QuestionType.COMPLEX_SELECTION: {
                "complex_options": [
                    {"statement": "Pernyataan 1", "choices": ["Benar", "Salah"]},
                    {"statement": "Pernyataan 2", "choices": ["Benar", "Salah"]},
                ],
                "answer_key": {"type": "complex_selection", "rows": [{"correct": "Benar"}, {"correct": "Salah"}]},
            },
            QuestionType.FILL_IN: {
                "answer_key": {"type": "fill_in", "accepted": ["42"]},
            },
        }[question_type]
        fields = {
            "subtest": subtest,
            "question_type": question_type,
            "stem": kwargs.pop("stem", f"Soal {question_type}"),
            "status": status,
            "explanation": {"level1": "Pembahasan singkat."},
            **defaults,
        }
        fields.update(kwargs)
        return Question.objects.create(**fields)
    return make


@pytest.fixture
def question_set(exam, subtests, make_question):
    qset = QuestionSet.objects.create(
        exam=exam, subtest=subtests["PU"], name="Latihan PU 1", status=ContentStatus.PUBLISHED,
    )
    questions = [
        make_question(subtests["PU"], QuestionType.SINGLE_CHOICE),
        make_question(subtests["PU"], QuestionType.COMPLEX_SELECTION),
        make_question(subtests["PU"], QuestionType.FILL_IN),
    ]
    for i, q in enumerate(questions):
        QuestionSetItem.objects.create(question_set=qset, question=q, sort_order=i + 1)
    return qset


@pytest.fixture
def blueprint(exam, subtests, make_question):
    """Two sections: PU (2 questions, 10 min) then PK (1 question, 5 min)."""
    for _ in range(3):
        make_question(subtests["PU"])
    for _ in range(2):
        make_question(subtests["PK"], QuestionType.FILL_IN)
    bp = Blueprint.objects.create(exam=exam, version=1, name="Tryout UTBK 1")
    BlueprintSection.objects.create(
        blueprint=bp, subtest=subtests["PU"], sort_order=1, question_count=2, duration_seconds=600,
    )
    BlueprintSection.objects.create(
        blueprint=bp, subtest=subtests["PK"], sort_order=2, question_count=1, duration_seconds=300,
    )
    return bp
