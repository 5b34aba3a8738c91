"""Errors raised inside a pipeline run.

Every subclass is fatal for the run that raised it; the pipeline boundary
catches ``PipelineError`` and sends the user a generic failure notice.
"""


class PipelineError(Exception):
    error_code = "pipeline_error"


class UserLookupError(PipelineError):
    error_code = "user_lookup_error"


class PersistenceError(PipelineError):
    error_code = "persistence_error"


class MediaDownloadError(PipelineError):
    error_code = "media_download_error"


class TranscriptionError(PipelineError):
    error_code = "transcription_error"


class GenerationError(PipelineError):
    error_code = "generation_error"
