import os
import sys

import pytest


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from gitlablib import pipeline_settings


#============================================
def test_load_settings_missing_file(tmp_path) -> None:
	"""
	Missing settings file should return empty settings.
	"""
	settings, resolved_path = pipeline_settings.load_settings(str(tmp_path / "missing.yaml"))
	assert settings == {}
	assert resolved_path.endswith("missing.yaml")


#============================================
def test_load_settings_reads_yaml(tmp_path) -> None:
	"""
	YAML settings should be parsed into nested mapping values.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text(
		"gitlab:\n"
		"  url: https://gitlab.example.com/\n"
		"  timeout_seconds: 45\n"
		"report:\n"
		"  locale: id\n",
		encoding="utf-8",
	)
	settings, _ = pipeline_settings.load_settings(str(settings_path))
	assert pipeline_settings.get_setting_int(settings, ["gitlab", "timeout_seconds"], 30) == 45
	assert pipeline_settings.get_report_locale(settings) == "id"
	assert pipeline_settings.get_markdown_mode(settings) == "regenerate"
	assert pipeline_settings.get_merge_request_key(settings) == "branches"


#============================================
def test_load_settings_rejects_non_mapping(tmp_path) -> None:
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text("- one\n- two\n", encoding="utf-8")
	with pytest.raises(RuntimeError):
		pipeline_settings.load_settings(str(settings_path))


#============================================
def test_environment_overrides_credentials(monkeypatch) -> None:
	"""
	GITLAB_URL and GITLAB_TOKEN take precedence over settings values.
	"""
	settings = {"gitlab": {"url": "https://settings.example.com", "token": "from-file"}}
	monkeypatch.setenv("GITLAB_URL", "https://env.example.com/")
	monkeypatch.setenv("GITLAB_TOKEN", "from-env")
	url, token = pipeline_settings.require_gitlab_credentials(settings)
	assert url == "https://env.example.com"
	assert token == "from-env"


#============================================
def test_missing_credentials_raise(monkeypatch) -> None:
	monkeypatch.delenv("GITLAB_URL", raising=False)
	monkeypatch.delenv("GITLAB_TOKEN", raising=False)
	with pytest.raises(RuntimeError) as excinfo:
		pipeline_settings.require_gitlab_credentials({"gitlab": {"url": "https://x"}})
	assert "gitlab.token" in str(excinfo.value)


#============================================
def test_invalid_choice_raises() -> None:
	with pytest.raises(RuntimeError):
		pipeline_settings.get_markdown_mode({"report": {"markdown_mode": "append-only"}})


#============================================
def test_report_timezone_fallbacks(monkeypatch) -> None:
	monkeypatch.delenv("TZ", raising=False)
	assert pipeline_settings.get_report_timezone_name({}) == "UTC"
	monkeypatch.setenv("TZ", "Asia/Jakarta")
	assert pipeline_settings.get_report_timezone_name({}) == "Asia/Jakarta"
	settings = {"report": {"timezone": "Europe/Berlin"}}
	assert pipeline_settings.get_report_timezone_name(settings) == "Europe/Berlin"
