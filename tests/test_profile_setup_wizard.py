"""End-to-end tests for the profile setup wizard and its submission."""

import asyncio
import sqlite3
from pathlib import Path

from logic.errors import StorageError
from logic.steps import SetupStep
from models.clothing import ClassificationResult, UploadedFile
from tools.profile_store import SQLiteProfileStore
from tools.storage_provider import InMemoryStorageProvider
from tools.vision_provider import MockClassificationProvider
from workflows.profile_setup import ProfileSetupWizard


class RecordingStorage(InMemoryStorageProvider):
    """In-memory storage that counts uploads and can fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.puts = []
        self.fail_names = set()

    async def _put(self, key: str, data: bytes, content_type: str) -> str:
        self.puts.append(key)
        if any(key.endswith(name) for name in self.fail_names):
            raise StorageError()
        return await super()._put(key, data, content_type)


class FlakyStore(SQLiteProfileStore):
    """SQLite store whose atomic save fails a set number of times."""

    def __init__(self, database_path: Path, failures: int = 0) -> None:
        super().__init__(database_path)
        self.failures = failures
        self.save_calls = 0

    def _save_profile_and_clothing_sync(self, user_id, fields, top, bottom):
        self.save_calls += 1
        if self.failures:
            self.failures -= 1
            raise sqlite3.OperationalError("database is locked")
        return super()._save_profile_and_clothing_sync(user_id, fields, top, bottom)


CLASSIFIER_SCRIPT = {
    "hoodie.png": ClassificationResult(name="Black Hoodie", description="Cozy", category="TOP", color="black"),
    "jeans.jpg": ClassificationResult(name="Blue Jeans", description="Denim", category="BOTTOM", color="blue"),
}


def _file(name: str, content_type: str = "image/png") -> UploadedFile:
    return UploadedFile(filename=name, content_type=content_type, data=b"\x89PNG-bytes")


def _wizard(tmp_path: Path, failures: int = 0, on_complete=None):
    storage = RecordingStorage()
    store = FlakyStore(tmp_path / "wardrobe.db", failures=failures)
    wizard = ProfileSetupWizard(
        "user-1",
        classifier=MockClassificationProvider(CLASSIFIER_SCRIPT),
        storage=storage,
        store=store,
        on_complete=on_complete,
    )
    return wizard, storage, store


def _fill(wizard: ProfileSetupWizard) -> None:
    wizard.update_fields(height=175, weight=70, age=28, dressing_style="CASUAL")
    asyncio.run(wizard.drop_file("TOP", [_file("hoodie.png")]))
    asyncio.run(wizard.drop_file("bottom", [_file("jeans.jpg", "image/jpeg")]))


def test_walkthrough_reaches_review_with_valid_answers(tmp_path: Path) -> None:
    wizard, _, _ = _wizard(tmp_path)
    assert wizard.current_step is SetupStep.HEIGHT
    assert not wizard.can_advance()

    wizard.update_fields(height=175)
    assert wizard.can_advance()
    wizard.advance()
    wizard.update_fields(weight=70)
    wizard.advance()
    wizard.update_fields(age=28)
    wizard.advance()
    assert wizard.current_step is SetupStep.DRESSING_STYLE
    assert wizard.can_advance()
    wizard.advance()

    assert not wizard.can_advance()
    asyncio.run(wizard.drop_file("top", [_file("hoodie.png")]))
    assert wizard.can_advance()
    wizard.advance()
    asyncio.run(wizard.drop_file("bottom", [_file("jeans.jpg", "image/jpeg")]))
    wizard.advance()

    assert wizard.current_step is SetupStep.REVIEW
    assert wizard.snapshot()["progress"] == 100.0
    assert wizard.is_complete()


def test_submission_uploads_twice_then_persists_once(tmp_path: Path) -> None:
    completed = []
    wizard, storage, store = _wizard(tmp_path, on_complete=lambda: completed.append(True))
    _fill(wizard)
    assert wizard.is_complete()

    result = asyncio.run(wizard.submit())

    assert result["status"] == "ok"
    assert len(storage.puts) == 2
    assert storage.puts[0].startswith("clothing/top/user-1/")
    assert storage.puts[1].startswith("clothing/bottom/user-1/")
    assert store.save_calls == 1
    assert completed == [True]
    assert wizard.completed
    assert not wizard.is_submitting
    assert [item["name"] for item in result["items"]] == ["Black Hoodie", "Blue Jeans"]
    assert wizard.previews.outstanding() == 0
    assert wizard.snapshot()["top"]["state"] == "empty"
    assert wizard.snapshot()["bottom"]["filename"] is None

    profile = asyncio.run(store.get_profile("user-1"))
    assert profile.height == 175.0 and profile.age == 28
    assert asyncio.run(store.has_profile("user-1"))


def test_persist_failure_keeps_state_and_retry_repeats_uploads(tmp_path: Path) -> None:
    wizard, storage, store = _wizard(tmp_path, failures=1)
    _fill(wizard)
    before = wizard.snapshot()

    failed = asyncio.run(wizard.submit())

    assert failed["status"] == "error"
    assert failed["error_kind"] == "service"
    assert failed["message"] == "Failed to save profile. Please try again."
    assert len(storage.puts) == 2
    assert not wizard.completed
    assert wizard.top_slot.snapshot() == before["top"]
    assert wizard.fields.as_dict() == before["fields"]
    assert asyncio.run(store.get_profile("user-1")) is None

    retried = asyncio.run(wizard.submit())

    assert retried["status"] == "ok"
    assert len(storage.puts) == 4
    assert store.save_calls == 2
    assert len(asyncio.run(store.list_clothing("user-1"))) == 2


def test_upload_failure_aborts_before_persistence(tmp_path: Path) -> None:
    wizard, storage, store = _wizard(tmp_path)
    storage.fail_names.add("jeans.jpg")
    _fill(wizard)

    result = asyncio.run(wizard.submit())

    assert result["status"] == "error"
    assert result["message"] == "Failed to upload image. Please try again."
    assert len(storage.puts) == 2
    assert store.save_calls == 0
    assert wizard.error == result["message"]
    assert wizard.is_complete()


def test_incomplete_submission_is_a_validation_error(tmp_path: Path) -> None:
    wizard, storage, store = _wizard(tmp_path)
    wizard.update_fields(height=175, weight=70)
    asyncio.run(wizard.drop_file("top", [_file("hoodie.png")]))

    result = asyncio.run(wizard.submit())

    assert result["status"] == "needs_review"
    assert result["error_kind"] == "validation"
    assert result["message"] == "Please complete all steps before submitting"
    assert result["missing"] == ["age", "bottom clothing"]
    assert storage.puts == []
    assert wizard.top_slot.is_ready


def test_corrupted_state_resets_the_wizard(tmp_path: Path) -> None:
    wizard, storage, _ = _wizard(tmp_path)
    _fill(wizard)
    wizard.advance()
    wizard.top_slot.file = None

    result = asyncio.run(wizard.submit())

    assert result["error_kind"] == "state_corruption"
    assert result["message"] == "Missing required data. Please start over."
    assert storage.puts == []
    assert wizard.current_step is SetupStep.HEIGHT
    assert wizard.fields.height is None
    assert wizard.top_slot.state.value == "empty"
    assert wizard.previews.outstanding() == 0


def test_double_submit_is_refused_while_in_flight(tmp_path: Path) -> None:
    wizard, _, _ = _wizard(tmp_path)
    _fill(wizard)
    wizard.is_submitting = True

    result = asyncio.run(wizard.submit())

    assert result["error_kind"] == "busy"


def test_rejections_are_reported_per_slot(tmp_path: Path) -> None:
    wizard, _, _ = _wizard(tmp_path)

    mismatch = asyncio.run(wizard.drop_file("top", [_file("jeans.jpg", "image/jpeg")]))
    gif = asyncio.run(wizard.drop_file("bottom", [_file("dance.gif", "image/gif")]))
    head = asyncio.run(wizard.drop_file("head", [_file("cap.png")]))
    bad_number = wizard.update_fields(height="tall")

    assert mismatch["status"] == "needs_review"
    assert mismatch["error_kind"] == "rejection"
    assert "we need a top item" in mismatch["message"]
    assert gif["message"] == "Only PNG and JPG images are allowed"
    assert wizard.bottom_slot.state.value == "empty"
    assert head["error_kind"] == "validation"
    assert bad_number["error_kind"] == "validation"
    assert wizard.fields.height is None


def test_reset_releases_every_preview(tmp_path: Path) -> None:
    wizard, _, _ = _wizard(tmp_path)
    _fill(wizard)
    assert wizard.previews.outstanding() == 2

    wizard.reset()

    assert wizard.previews.outstanding() == 0
    assert not wizard.is_complete()
