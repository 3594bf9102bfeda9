import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from common.enums import ContentStatus, ImportStatus, QuestionType
from common.exceptions import Conflict, NotFound, QueueDispatchError, StorageError, ValidationError
from question_imports.models import QuestionImport, QuestionImportQuestion
from question_imports.services import pipeline
from question_imports.services.ocr import OcrError, OcrResult
from question_imports.storage import StorageResult

PNG_B64 = "iVBORw0KGgo="


class FakeStorage:
    def __init__(self, fail_upload=False, fail_remove=False):
        self.fail_upload = fail_upload
        self.fail_remove = fail_remove
        self.objects = {}
        self.removed = []

    def upload(self, bucket, path, body, content_type):
        if self.fail_upload:
            return StorageResult(error="access denied")
        self.objects[(bucket, path)] = body
        return StorageResult()

    def remove(self, bucket, paths):
        if self.fail_remove is True or self.fail_remove == bucket:
            return StorageResult(error="bucket offline")
        self.removed.append((bucket, list(paths)))
        return StorageResult()

    def signed_url(self, bucket, path):
        return f"https://signed.example.com/{bucket}/{path}"

    def public_url(self, bucket, path):
        return f"https://cdn.example.com/{bucket}/{path}"


class FakeQueue:
    def __init__(self):
        self.calls = []

    def dispatch(self, job_key, payload, deduplication_id=None, retries=3, label=None):
        self.calls.append({"job": job_key, "payload": payload, "dedup": deduplication_id,
                           "retries": retries, "label": label})
        return {"messageId": f"msg-{len(self.calls)}"}


class FailingQueue:
    def dispatch(self, *args, **kwargs):
        raise QueueDispatchError("broker down")


def _pdf(name="Soal UTBK 2024.pdf", body=b"%PDF-1.4 fake"):
    return SimpleUploadedFile(name, body, content_type="application/pdf")


@pytest.fixture
def make_import(admin_user):
    def make(status=ImportStatus.QUEUED, **kwargs):
        fields = {
            "status": status,
            "storage_bucket": "question-imports",
            "storage_path": f"imports/{admin_user.id}/1-abc-tryout-1.pdf",
            "source_filename": "tryout-1.pdf",
            "source_size": 1024,
            "created_by": admin_user,
        }
        fields.update(kwargs)
        return QuestionImport.objects.create(**fields)
    return make


def _draft(record, **kwargs):
    fields = {
        "question_type": QuestionType.SINGLE_CHOICE,
        "stem": "Berapa 2 + 2?",
        "options": ["1", "2", "3", "4", "5"],
        "answer_key": {"type": "single_choice", "correct": "D"},
        "explanation": {"level1": "2 + 2 = 4"},
    }
    fields.update(kwargs)
    return QuestionImportQuestion.objects.create(question_import=record, **fields)


# ---------------- upload + dispatch ----------------

def test_create_import_uploads_and_queues(admin_user, exam):
    storage, queue = FakeStorage(), FakeQueue()
    record = pipeline.create_import(admin_user, _pdf(), exam_id=exam.id, name="Paket A",
                                    storage=storage, queue=queue)

    assert record.status == ImportStatus.QUEUED
    assert record.storage_bucket == "question-imports"
    assert record.storage_path.startswith(f"imports/{admin_user.id}/")
    assert record.storage_path.endswith("-Soal_UTBK_2024.pdf")
    assert storage.objects[(record.storage_bucket, record.storage_path)] == b"%PDF-1.4 fake"
    assert record.draft_exam_id == exam.id
    assert record.draft_name == "Paket A"

    [call] = queue.calls
    assert call["job"] == "question-import.process"
    assert call["payload"] == {"importId": str(record.id)}
    assert call["dedup"].startswith(f"import-{record.id}-")
    assert call["label"] == "question-import"
    assert record.queue_message_id == "msg-1"


def test_create_import_rejects_non_pdf_and_oversize(admin_user, monkeypatch):
    storage = FakeStorage()
    with pytest.raises(ValidationError):
        pipeline.create_import(admin_user, SimpleUploadedFile("catatan.txt", b"x", content_type="text/plain"),
                               storage=storage, queue=FakeQueue())

    monkeypatch.setattr(pipeline, "MAX_UPLOAD_BYTES", 4)
    with pytest.raises(ValidationError):
        pipeline.create_import(admin_user, _pdf(), storage=storage, queue=FakeQueue())

    assert storage.objects == {}
    assert not QuestionImport.objects.exists()


def test_create_import_stops_when_upload_fails(admin_user):
    with pytest.raises(StorageError):
        pipeline.create_import(admin_user, _pdf(), storage=FakeStorage(fail_upload=True), queue=FakeQueue())
    assert not QuestionImport.objects.exists()


def test_dispatch_failure_marks_import_failed(admin_user):
    with pytest.raises(QueueDispatchError):
        pipeline.create_import(admin_user, _pdf(), storage=FakeStorage(), queue=FailingQueue())

    record = QuestionImport.objects.get()
    assert record.status == ImportStatus.FAILED
    assert record.error_message == "broker down"


def test_trigger_processing_by_status(make_import):
    queue = FakeQueue()

    queued = make_import(ImportStatus.QUEUED)
    assert pipeline.trigger_processing(queued.id, queue=queue).status == ImportStatus.QUEUED
    assert queue.calls == []

    with pytest.raises(Conflict):
        pipeline.trigger_processing(make_import(ImportStatus.SAVED).id, queue=queue)

    failed = make_import(ImportStatus.FAILED, error_message="OCR timeout")
    retried = pipeline.trigger_processing(failed.id, queue=queue)
    assert retried.status == ImportStatus.QUEUED
    assert retried.error_message is None
    assert len(queue.calls) == 1

    with pytest.raises(NotFound):
        pipeline.trigger_processing("bukan-uuid", queue=queue)


# ---------------- worker ----------------

def test_process_builds_drafts_with_rehosted_images(make_import, exam, subtests):
    record = make_import(draft_exam=exam, draft_subtest=subtests["PU"])
    storage = FakeStorage()
    seen = {}

    def fake_ocr(url):
        seen["url"] = url
        page = {
            "index": 0,
            "markdown": "No. 1\nPerhatikan gambar ![img-0.jpeg](img-0.jpeg)\nA. 1\nB. 2",
            "images": [{"id": "img-0.jpeg", "image_base64": f"data:image/png;base64,{PNG_B64}"}],
        }
        return OcrResult(text=page["markdown"], pages=[page])

    def fake_drafts(**kwargs):
        seen["drafts"] = kwargs
        return [
            {"subtestCode": "PK", "questionType": "single_choice", "stem": "Berapa 2 + 2?",
             "options": ["1", "2", "3", "4", "5"], "answerKey": {"type": "single_choice", "correct": "D"},
             "explanation": {"level1": "2 + 2 = 4"}},
            {"subtestCode": None, "questionType": "single_choice", "stem": "Soal terpotong",
             "options": ["a", "b"], "answerKey": {"type": "single_choice", "correct": "A"},
             "explanation": {"level1": ""}},
        ]

    done = pipeline.process(record.id, storage=storage, ocr=fake_ocr, drafts=fake_drafts)

    assert seen["url"] == f"https://signed.example.com/question-imports/{record.storage_path}"
    assert seen["drafts"]["exam_label"] == "UTBK SNBT (UTBK)"
    assert {s["code"] for s in seen["drafts"]["subtests"]} == {"PU", "PK"}

    image_path = f"imports/{record.id}/page-1/image-1.png"
    public_url = f"https://cdn.example.com/question-import-images/{image_path}"
    assert ("question-import-images", image_path) in storage.objects

    assert done.status == ImportStatus.READY
    assert done.draft_name == "tryout-1"
    assert done.processed_at is not None
    assert f"![OCR Image]({public_url})" in done.ocr_text
    assert done.ocr_metadata["pageCount"] == 1
    assert done.ocr_metadata["imageCount"] == 1
    assert done.ocr_metadata["images"][0]["storagePath"] == image_path

    first, second = done.questions.order_by("sort_order")
    assert first.subtest_id == subtests["PK"].id
    assert public_url in first.stem
    assert second.subtest_id == subtests["PU"].id
    assert second.question_type == QuestionType.FILL_IN
    assert second.stem.startswith("[OCR tidak lengkap]")
    assert second.answer_key == {"type": "fill_in", "accepted": ["N/A"]}


def test_process_failure_marks_failed(make_import):
    record = make_import()

    def broken_ocr(url):
        raise OcrError("Mistral OCR failed (500): upstream")

    with pytest.raises(OcrError):
        pipeline.process(record.id, storage=FakeStorage(), ocr=broken_ocr, drafts=lambda **kw: [])

    record.refresh_from_db()
    assert record.status == ImportStatus.FAILED
    assert "500" in record.error_message


def test_process_refuses_saved_import(make_import):
    with pytest.raises(Conflict):
        pipeline.process(make_import(ImportStatus.SAVED).id, storage=FakeStorage())


# ---------------- delete + edits ----------------

def test_delete_keeps_record_when_storage_fails(make_import):
    record = make_import(ImportStatus.READY, ocr_metadata={"images": [{"storagePath": "imports/x/page-1/image-1.png"}]})

    with pytest.raises(StorageError):
        pipeline.delete_import(record.id, storage=FakeStorage(fail_remove=True))
    assert QuestionImport.objects.filter(pk=record.id).exists()

    storage = FakeStorage()
    pipeline.delete_import(record.id, storage=storage)
    assert storage.removed == [
        ("question-imports", [record.storage_path]),
        ("question-import-images", ["imports/x/page-1/image-1.png"]),
    ]
    assert not QuestionImport.objects.filter(pk=record.id).exists()


def test_delete_keeps_record_when_image_removal_fails(make_import):
    images = [
        {"storagePath": "imports/x/page-1/image-1.png"},
        {"storagePath": "imports/x/page-2/image-1.jpg"},
    ]
    record = make_import(ImportStatus.READY, ocr_metadata={"imageCount": 2, "images": images})
    storage = FakeStorage(fail_remove="question-import-images")

    with pytest.raises(StorageError):
        pipeline.delete_import(record.id, storage=storage)

    assert storage.removed == [("question-imports", [record.storage_path])]
    assert QuestionImport.objects.filter(pk=record.id).exists()


def test_update_draft_metadata_and_question(make_import, exam):
    record = make_import(ImportStatus.READY)
    draft = _draft(record)

    updated = pipeline.update_draft_metadata(record.id, draft_exam=exam, draft_name="Paket B", status="saved")
    assert updated.draft_name == "Paket B"
    assert updated.draft_exam_id == exam.id
    assert updated.status == ImportStatus.READY

    question = pipeline.update_draft_question(record.id, draft.id, stem="Berapa 3 + 3?")
    assert question.stem == "Berapa 3 + 3?"

    with pytest.raises(NotFound):
        pipeline.update_draft_question(record.id, "0b6c7a52-3f4e-4c1d-9a55-5d0f1f7b2c10", stem="x")


# ---------------- finalize ----------------

def test_finalize_copies_drafts_into_question_set(make_import, admin_user, exam, subtests):
    record = make_import(ImportStatus.READY, draft_exam=exam, draft_subtest=subtests["PU"], draft_name="Impor 1")
    _draft(record, sort_order=0)
    _draft(record, sort_order=1, subtest=subtests["PK"], question_type=QuestionType.FILL_IN, options=None,
           answer_key={"type": "fill_in", "accepted": ["4"]})

    qset = pipeline.finalize(record.id, admin_user)

    assert qset.name == "Impor 1"
    assert qset.status == ContentStatus.DRAFT
    items = list(qset.items.select_related("question").order_by("sort_order"))
    assert [i.sort_order for i in items] == [1, 2]
    assert [i.question.subtest_id for i in items] == [subtests["PU"].id, subtests["PK"].id]
    assert all(i.question.status == ContentStatus.DRAFT for i in items)

    record.refresh_from_db()
    assert record.status == ImportStatus.SAVED
    assert record.saved_question_set_id == qset.id
    assert record.saved_at is not None

    with pytest.raises(Conflict):
        pipeline.finalize(record.id, admin_user)


def test_finalize_validates_before_saving(make_import, admin_user, exam, subtests):
    with pytest.raises(Conflict):
        pipeline.finalize(make_import(ImportStatus.PROCESSING, draft_exam=exam).id, admin_user)

    no_exam = make_import(ImportStatus.READY)
    _draft(no_exam, subtest=subtests["PU"])
    with pytest.raises(ValidationError):
        pipeline.finalize(no_exam.id, admin_user)

    record = make_import(ImportStatus.READY, draft_exam=exam)
    _draft(record, sort_order=0)
    _draft(record, sort_order=1, subtest=subtests["PU"], answer_key={"type": "single_choice", "correct": "Z"})
    with pytest.raises(ValidationError) as exc:
        pipeline.finalize(record.id, admin_user)
    assert set(exc.value.detail["questions"]) == {"1", "2"}

    record.refresh_from_db()
    assert record.status == ImportStatus.READY
    assert record.saved_question_set is None


# ---------------- HTTP ----------------

def test_admin_only_endpoints(api_client, student_client, admin_client, make_import):
    make_import()
    url = reverse("questionimport-list")
    assert api_client.get(url).status_code == 401
    assert student_client.get(url).status_code == 403
    resp = admin_client.get(url)
    assert resp.status_code == 200
    assert resp.data["count"] == 1


def test_upload_over_http(admin_client, exam, subtests, monkeypatch):
    storage, queue = FakeStorage(), FakeQueue()
    monkeypatch.setattr(pipeline, "ObjectStorage", lambda: storage)
    monkeypatch.setattr(pipeline, "JobQueue", lambda: queue)

    resp = admin_client.post(
        reverse("questionimport-list"),
        {"file": _pdf(), "exam_id": str(exam.id), "subtest_id": str(subtests["PK"].id)},
        format="multipart",
    )
    assert resp.status_code == 201
    assert resp.data["status"] == "queued"
    assert resp.data["questions"] == []
    assert len(queue.calls) == 1


def test_edit_draft_question_over_http(admin_client, make_import):
    record = make_import(ImportStatus.READY)
    draft = _draft(record)
    url = reverse("questionimport-update-question", args=[record.id, draft.id])

    resp = admin_client.patch(url, {"answer_key": {"type": "single_choice", "correct": "Z"}}, format="json")
    assert resp.status_code == 400

    resp = admin_client.patch(url, {"stem": "Berapa 5 + 5?"}, format="json")
    assert resp.status_code == 200
    assert resp.data["stem"] == "Berapa 5 + 5?"

    resp = admin_client.patch(reverse("questionimport-detail", args=[record.id]), {"draft_name": "Paket C"},
                              format="json")
    assert resp.status_code == 200
    assert resp.data["draft_name"] == "Paket C"
