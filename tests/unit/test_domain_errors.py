from __future__ import annotations

import pytest

from batchvoice.app.domain.errors import (
    PipelineError,
    UnsupportedMediaError,
    StageFailure,
    PreconditionError,
    MissingCredentialError,
    StageTimeoutError,
    EmptyBatchError,
    IllegalTransitionError,
    FileNotFoundInStoreError,
    UnknownExportKindError,
    SettingsRepositoryError,
)


class TestPipelineError:
    def test_base_exception(self) -> None:
        error = PipelineError("Base error")
        assert str(error) == "Base error"
        assert isinstance(error, Exception)


class TestUnsupportedMediaError:
    def test_includes_filename_and_type(self) -> None:
        error = UnsupportedMediaError("notes.txt", "text/plain")
        assert "notes.txt" in str(error)
        assert "text/plain" in str(error)
        assert error.filename == "notes.txt"

    def test_unknown_type(self) -> None:
        error = UnsupportedMediaError("blob")
        assert "unknown type" in str(error)


class TestStageFailure:
    def test_keeps_stage_and_message(self) -> None:
        error = StageFailure("speech_generation", "HTTP error! status: 500")
        assert str(error) == "HTTP error! status: 500"
        assert error.stage == "speech_generation"
        assert isinstance(error, PipelineError)


class TestMissingCredentialError:
    def test_is_rewrite_precondition(self) -> None:
        error = MissingCredentialError()
        assert str(error) == "No OpenAI API key available"
        assert error.stage == "ai_processing"
        assert isinstance(error, PreconditionError)
        assert isinstance(error, StageFailure)


class TestStageTimeoutError:
    def test_includes_timeout_info(self) -> None:
        error = StageTimeoutError("transcription", 30)
        assert "transcription" in str(error)
        assert "30" in str(error)
        assert error.timeout_seconds == 30
        assert isinstance(error, StageFailure)


class TestEmptyBatchError:
    def test_default_message(self) -> None:
        assert str(EmptyBatchError()) == "No valid files to process"

    def test_custom_message(self) -> None:
        assert str(EmptyBatchError("No completed files to export")) == "No completed files to export"


class TestIllegalTransitionError:
    def test_includes_edge(self) -> None:
        error = IllegalTransitionError("f1", "pending", "completed")
        assert "pending -> completed" in str(error)
        assert error.file_id == "f1"
        assert error.current == "pending"
        assert error.target == "completed"


class TestLookupErrors:
    def test_file_not_found(self) -> None:
        error = FileNotFoundInStoreError("abc-123")
        assert "abc-123" in str(error)
        assert error.file_id == "abc-123"

    def test_unknown_export_kind(self) -> None:
        error = UnknownExportKindError("pdf")
        assert str(error) == "Unknown asset type: pdf"
        assert error.kind == "pdf"


class TestSettingsRepositoryError:
    def test_includes_operation_and_reason(self) -> None:
        error = SettingsRepositoryError("save", "disk full")
        assert "save" in str(error)
        assert "disk full" in str(error)
        assert error.operation == "save"
        assert error.reason == "disk full"


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            UnsupportedMediaError("a"),
            StageFailure("transcription", "x"),
            EmptyBatchError(),
            IllegalTransitionError("f", "a", "b"),
            FileNotFoundInStoreError("f"),
            UnknownExportKindError("k"),
            SettingsRepositoryError("load", "r"),
        ],
    )
    def test_all_inherit_from_base(self, error: Exception) -> None:
        assert isinstance(error, PipelineError)
