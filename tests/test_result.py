from whatsapp_agent.services.errors import MediaDownloadError
from whatsapp_agent.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("SM123")
        assert result.ok is True
        assert result.value == "SM123"
        assert result.error is None


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Twilio API error: 400", "send_failed")
        assert result.ok is False
        assert result.error == "Twilio API error: 400"
        assert result.error_code == "send_failed"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestResultFromException:
    def test_uses_error_code_of_pipeline_errors(self):
        result = Result.from_exception(MediaDownloadError("404"))
        assert result.ok is False
        assert result.error == "404"
        assert result.error_code == "media_download_error"

    def test_explicit_code_wins(self):
        result = Result.from_exception(RuntimeError("boom"), "send_failed")
        assert result.error_code == "send_failed"

    def test_empty_message_falls_back_to_class_name(self):
        result = Result.from_exception(TimeoutError())
        assert result.error == "TimeoutError"
        assert result.error_code == "unknown"


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual").unwrap_or("default") == "actual"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "code").unwrap_or("default") == "default"
