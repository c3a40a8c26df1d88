from __future__ import annotations


class PipelineError(Exception):
    pass


class UnsupportedMediaError(PipelineError):
    def __init__(self, filename: str, content_type: str = ""):
        super().__init__(f"Unsupported media file: {filename} ({content_type or 'unknown type'})")
        self.filename = filename
        self.content_type = content_type


class StageFailure(PipelineError):
    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message


class PreconditionError(StageFailure):
    pass


class MissingCredentialError(PreconditionError):
    def __init__(self, stage: str = "ai_processing"):
        super().__init__(stage, "No OpenAI API key available")


class StageTimeoutError(StageFailure):
    def __init__(self, stage: str, timeout_seconds: float):
        super().__init__(stage, f"Stage {stage} timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class EmptyBatchError(PipelineError):
    def __init__(self, message: str = "No valid files to process"):
        super().__init__(message)


class IllegalTransitionError(PipelineError):
    def __init__(self, file_id: str, current: str, target: str):
        super().__init__(f"Illegal transition for {file_id}: {current} -> {target}")
        self.file_id = file_id
        self.current = current
        self.target = target


class FileNotFoundInStoreError(PipelineError):
    def __init__(self, file_id: str):
        super().__init__(f"File not found: {file_id}")
        self.file_id = file_id


class UnknownExportKindError(PipelineError):
    def __init__(self, kind: str):
        super().__init__(f"Unknown asset type: {kind}")
        self.kind = kind


class SettingsRepositoryError(PipelineError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Settings repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason
