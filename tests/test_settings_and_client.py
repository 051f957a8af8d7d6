import json

import pytest

from service.client import ANY_MODEL, RecordedAnalysisClient, analysis_from_dict
from service.models import AnalysisResult, FailureKind, ServiceFailure
from settings import ConfigurationError, get_settings, reload_settings


ENV_VARS = [
    "DOCINTEL_ENDPOINT",
    "DOCINTEL_API_KEY",
    "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT",
    "AZURE_DOCUMENT_INTELLIGENCE_API_KEY",
    "DOCINTEL_API_VERSION",
    "DOCINTEL_GENERIC_MODEL",
    "DOCINTEL_TIMEOUT",
    "DOCINTEL_PROFILES_DIR",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    get_settings.cache_clear()


def test_settings_defaults(clean_env):
    settings = reload_settings()
    assert settings.endpoint is None
    assert settings.api_version == "2023-07-31"
    assert settings.generic_model_id == "prebuilt-read"
    assert settings.timeout == 120.0
    assert settings.log_level == "INFO"
    with pytest.raises(ConfigurationError):
        settings.require_service()


def test_settings_from_environment(clean_env):
    clean_env.setenv("DOCINTEL_ENDPOINT", "https://host")
    clean_env.setenv("DOCINTEL_API_KEY", "key")
    clean_env.setenv("DOCINTEL_GENERIC_MODEL", "prebuilt-layout")
    clean_env.setenv("DOCINTEL_TIMEOUT", "30")
    clean_env.setenv("LOG_LEVEL", "debug")
    settings = reload_settings()
    assert settings.endpoint == "https://host"
    assert settings.api_key == "key"
    assert settings.generic_model_id == "prebuilt-layout"
    assert settings.timeout == 30.0
    assert settings.log_level == "DEBUG"
    settings.require_service()
    assert get_settings() is settings


def test_settings_accept_legacy_variable_names(clean_env):
    clean_env.setenv("AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT", "https://legacy")
    clean_env.setenv("AZURE_DOCUMENT_INTELLIGENCE_API_KEY", "legacy-key")
    settings = reload_settings()
    assert settings.endpoint == "https://legacy"
    assert settings.api_key == "legacy-key"


def test_analysis_from_dict():
    result = analysis_from_dict({"raw_text": "text", "fields": {"A": 1}}, "m")
    assert result == AnalysisResult(raw_text="text", fields={"A": 1}, model_id="m")

    failure = analysis_from_dict({"failure": {"kind": "MODEL_NOT_FOUND", "message": "gone", "status_code": 404}}, "m")
    assert failure == ServiceFailure(FailureKind.MODEL_NOT_FOUND, "gone", 404, "m")

    scored = analysis_from_dict({"raw_text": "t", "fields": {"A": 1}, "confidences": {"A": "0.4"}}, "m")
    assert scored.confidences == {"A": 0.4}


def test_recorded_client_by_model_and_wildcard():
    client = RecordedAnalysisClient({"prebuilt-read": {"raw_text": "read"}})
    assert client.analyze("prebuilt-read", b"abc").raw_text == "read"
    missing = client.analyze("prebuilt-tax.us.w2", b"")
    assert isinstance(missing, ServiceFailure)
    assert missing.kind == FailureKind.MODEL_NOT_FOUND
    assert client.calls == [("prebuilt-read", 3), ("prebuilt-tax.us.w2", 0)]

    wildcard = RecordedAnalysisClient({ANY_MODEL: {"raw_text": "any"}})
    assert wildcard.analyze("whatever", b"").raw_text == "any"


def test_recorded_client_from_file(tmp_path):
    single = tmp_path / "single.json"
    single.write_text(json.dumps({"raw_text": "t", "fields": {}}), encoding="utf-8")
    assert RecordedAnalysisClient.from_file(single).analyze("any-model", b"").raw_text == "t"

    per_model = tmp_path / "models.json"
    per_model.write_text(json.dumps({"models": {"m1": {"raw_text": "one"}}}), encoding="utf-8")
    client = RecordedAnalysisClient.from_file(per_model)
    assert client.analyze("m1", b"").raw_text == "one"
    assert client.analyze("m2", b"").kind == FailureKind.MODEL_NOT_FOUND
