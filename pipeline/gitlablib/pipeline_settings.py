import os

import yaml


VALID_LOCALES = ("en", "id")
VALID_MARKDOWN_MODES = ("regenerate", "prepend")
VALID_MERGE_REQUEST_KEYS = ("branches", "iid")


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	repo_root = os.path.dirname(pipeline_dir)
	return repo_root


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_root = get_repo_root()
	repo_candidate = os.path.join(repo_root, path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_choice(
	settings: dict,
	keys: list[str],
	choices: tuple[str, ...],
	default_value: str,
) -> str:
	"""
	Read a string setting restricted to a fixed set of values.
	"""
	value = get_setting_str(settings, keys, default_value).lower() or default_value
	if value not in choices:
		raise RuntimeError(
			f"Invalid value for setting path {'.'.join(keys)}: {value} "
			+ f"(expected one of: {', '.join(choices)})"
		)
	return value


#============================================
def get_gitlab_url(settings: dict) -> str:
	"""
	Resolve GitLab base URL from GITLAB_URL env, then settings.
	"""
	value = (os.environ.get("GITLAB_URL", "") or "").strip()
	if not value:
		value = get_setting_str(settings, ["gitlab", "url"], "")
	return value.rstrip("/")


#============================================
def get_gitlab_token(settings: dict) -> str:
	"""
	Resolve GitLab access token from GITLAB_TOKEN env, then settings.
	"""
	value = (os.environ.get("GITLAB_TOKEN", "") or "").strip()
	if value:
		return value
	return get_setting_str(settings, ["gitlab", "token"], "")


#============================================
def require_gitlab_credentials(settings: dict) -> tuple[str, str]:
	"""
	Return (url, token) or raise when either one is missing.
	"""
	url = get_gitlab_url(settings)
	token = get_gitlab_token(settings)
	missing = []
	if not url:
		missing.append("gitlab.url (or GITLAB_URL)")
	if not token:
		missing.append("gitlab.token (or GITLAB_TOKEN)")
	if missing:
		raise RuntimeError(
			"Missing GitLab configuration: " + ", ".join(missing) + "."
		)
	return url, token


#============================================
def get_report_timezone_name(settings: dict) -> str:
	"""
	Resolve report timezone name from settings, then TZ env, then UTC.
	"""
	value = get_setting_str(settings, ["report", "timezone"], "")
	if value:
		return value
	value = (os.environ.get("TZ", "") or "").strip()
	if value:
		return value
	return "UTC"


#============================================
def get_report_locale(settings: dict) -> str:
	return get_setting_choice(settings, ["report", "locale"], VALID_LOCALES, "en")


#============================================
def get_markdown_mode(settings: dict) -> str:
	return get_setting_choice(
		settings,
		["report", "markdown_mode"],
		VALID_MARKDOWN_MODES,
		"regenerate",
	)


#============================================
def get_merge_request_key(settings: dict) -> str:
	return get_setting_choice(
		settings,
		["report", "merge_request_key"],
		VALID_MERGE_REQUEST_KEYS,
		"branches",
	)
