from django.urls import reverse

from common.enums import ContentStatus


def test_question_bank_is_admin_only(api_client, student_client, admin_client, question_set):
    url = reverse("question-list")
    assert api_client.get(url).status_code == 401
    assert student_client.get(url).status_code == 403
    assert admin_client.get(url).data["count"] == 3


def test_question_filters(admin_client, question_set, exam, subtests, make_question):
    make_question(subtests["PK"], stem="Deret aritmetika")
    url = reverse("question-list")

    assert admin_client.get(url, {"exam": str(exam.id)}).data["count"] == 4
    assert admin_client.get(url, {"type": "fill_in"}).data["count"] == 1
    assert admin_client.get(url, {"subtest": str(subtests["PK"].id)}).data["count"] == 1
    assert admin_client.get(url, {"q": "aritmetika"}).data["count"] == 1


def test_create_question_checks_answer_key(admin_client, subtests):
    payload = {
        "subtest": str(subtests["PU"].id),
        "question_type": "single_choice",
        "stem": "Manakah yang benar?",
        "options": ["a", "b", "c", "d"],
        "answer_key": {"type": "single_choice", "correct": "E"},
        "explanation": {"level1": "Pembahasan"},
    }
    url = reverse("question-list")
    assert admin_client.post(url, payload, format="json").status_code == 400

    payload["answer_key"] = {"type": "single_choice", "correct": "C"}
    resp = admin_client.post(url, payload, format="json")
    assert resp.status_code == 201
    assert resp.data["status"] == ContentStatus.DRAFT


def test_question_set_items_follow_given_order(admin_client, exam, subtests, make_question):
    q1, q2 = make_question(subtests["PU"]), make_question(subtests["PU"])
    resp = admin_client.post(
        reverse("questionset-list"),
        {"exam": str(exam.id), "subtest": str(subtests["PU"].id), "name": "Paket Baru",
         "question_ids": [str(q2.id), str(q1.id)]},
        format="json",
    )
    assert resp.status_code == 201
    assert [i["question_id"] for i in resp.data["items"]] == [str(q2.id), str(q1.id)]

    filtered = admin_client.get(reverse("questionset-list"), {"status": "draft"})
    assert filtered.data["count"] == 1
