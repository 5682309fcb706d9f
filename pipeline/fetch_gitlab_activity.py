#!/usr/bin/env python3
"""Collect the current user's GitLab activity into a JSON record and a changelog.

Walks every project the token's user is a member of, attributes the user's
commits to branches, reconciles the result with the previous JSON record and
rewrites both output files when something new turned up.
"""

# Standard Library
import argparse
from datetime import datetime
from datetime import timezone
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

# local repo modules
from gitlablib import activity_model
from gitlablib import activity_store
from gitlablib import branch_attribution
from gitlablib import gitlab_client
from gitlablib import pipeline_settings
from gitlablib import report_render

try:
	import rich.console
except ModuleNotFoundError:
	rich = None


DEFAULT_JSON_PATH = "daily_activity.json"
DEFAULT_MARKDOWN_PATH = "daily_activity.md"
RICH_CONSOLE = rich.console.Console() if rich is not None else None


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[fetch_gitlab_activity {now_text}] {message}"
	if RICH_CONSOLE is None:
		print(line, flush=True)
		return
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower) or ("fatal" in lower):
		style = "bold red"
	elif ("warning" in lower) or ("skipped" in lower) or ("could not" in lower):
		style = "yellow"
	elif ("wrote " in lower) or ("collected" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False, highlight=False)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Collect GitLab commits and merge requests into a JSON record and markdown changelog."
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for GitLab and report defaults.",
	)
	parser.add_argument(
		"--json-output",
		dest="json_output",
		default=None,
		help=f"Structured record path (defaults from settings.yaml, then {DEFAULT_JSON_PATH}).",
	)
	parser.add_argument(
		"--markdown-output",
		dest="markdown_output",
		default=None,
		help=f"Markdown report path (defaults from settings.yaml, then {DEFAULT_MARKDOWN_PATH}).",
	)
	parser.add_argument(
		"--timezone",
		default=None,
		help="IANA timezone used to group activity by day (defaults from settings.yaml, TZ, then UTC). "
		+ "An existing report only picks up a change on the next write; use --rebuild-markdown.",
	)
	parser.add_argument(
		"--locale",
		choices=list(pipeline_settings.VALID_LOCALES),
		default=None,
		help="Day label language (defaults from settings.yaml, then en). "
		+ "An existing report only picks up a change on the next write; use --rebuild-markdown.",
	)
	parser.add_argument(
		"--markdown-mode",
		dest="markdown_mode",
		choices=list(pipeline_settings.VALID_MARKDOWN_MODES),
		default=None,
		help="Rebuild the whole report or prepend only new days (default: regenerate).",
	)
	parser.add_argument(
		"--rebuild-markdown",
		dest="rebuild_markdown",
		action="store_true",
		help="Regenerate the whole markdown report from the JSON record even when nothing is new.",
	)
	parser.add_argument(
		"--max-projects",
		dest="max_projects",
		type=int,
		default=0,
		help="Optional cap for projects processed (0 means no cap).",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def resolve_report_timezone(name: str) -> ZoneInfo:
	"""
	Resolve report timezone object with UTC fallback.
	"""
	try:
		return ZoneInfo(name)
	except (ZoneInfoNotFoundError, ValueError):
		log_step(f"Warning: unknown timezone {name!r}; grouping days in UTC.")
		return ZoneInfo("UTC")


#============================================
def project_display_name(project: dict) -> str:
	return project.get("name_with_namespace") or project.get("name") or ""


#============================================
def collect_merge_request_commits(
	client: gitlab_client.GitLabClient,
	project_id,
	merge_requests: list[dict],
) -> list[tuple[dict, list[dict]]]:
	"""
	Fetch the commit list of each merge request, skipping ones that fail.
	"""
	pairs = []
	for merge_request in merge_requests:
		try:
			raw_commits = client.list_merge_request_commits(project_id, merge_request.get("iid"))
		except gitlab_client.GitLabAPIError as error:
			log_step(f"Could not fetch commits for MR !{merge_request.get('iid')}: {error}")
			continue
		pairs.append((merge_request, raw_commits))
	return pairs


#============================================
def collect_branch_commits(
	client: gitlab_client.GitLabClient,
	project_id,
) -> list[tuple[str, list[dict]]]:
	"""
	Fetch the commit list of each branch still present in the project.

	A failure stops the branch walk; branches already fetched are kept.
	"""
	pairs = []
	try:
		branches = client.list_branches(project_id)
		for branch in branches:
			branch_name = branch.get("name")
			pairs.append((branch_name, client.list_branch_commits(project_id, branch_name)))
	except gitlab_client.GitLabAPIError as error:
		log_step(f"Could not fetch commits from branches: {error}")
	return pairs


#============================================
def collect_project_activity(
	client: gitlab_client.GitLabClient,
	project: dict,
	user_id,
	user_email: str,
	seen_shas: set[str],
) -> list[dict]:
	"""
	Collect one project's merge requests and attributed commits.

	seen_shas is the run-wide set of commit shas already emitted and is
	updated in place. Merge request listing failures skip only the merge
	requests; commits are still collected from branches.
	"""
	project_id = project.get("id")
	project_name = project_display_name(project)
	activities = []

	merge_requests = []
	try:
		raw_merge_requests = client.list_merge_requests(project_id, user_id)
		merge_requests = [
			activity_model.build_merge_request_activity(project_name, raw_mr)
			for raw_mr in raw_merge_requests
		]
	except gitlab_client.GitLabAPIError as error:
		log_step(f"Skipped MRs for {project_name}: {error}")
	activities.extend(merge_requests)

	merge_request_commits = collect_merge_request_commits(client, project_id, merge_requests)
	branch_commits = collect_branch_commits(client, project_id)
	commits = branch_attribution.attribute_commits(
		project_name,
		user_email,
		merge_request_commits,
		branch_commits,
		seen_shas,
	)
	activities.extend(commits)
	log_step(
		f"Project {project_name}: collected {len(merge_requests)} MR(s), "
		+ f"{len(commits)} commit(s)."
	)
	return activities


#============================================
def collect_all_activity(
	client: gitlab_client.GitLabClient,
	projects: list[dict],
	user_id,
	user_email: str,
) -> list[dict]:
	"""
	Collect activity for every project, one project at a time.
	"""
	seen_shas: set[str] = set()
	all_activities = []
	for project in projects:
		log_step(f"Processing: {project_display_name(project)}")
		all_activities.extend(
			collect_project_activity(client, project, user_id, user_email, seen_shas)
		)
	return all_activities


#============================================
def resolve_user_email(settings: dict, user: dict) -> str:
	"""
	Resolve the author email used to pick the user's commits.
	"""
	override = pipeline_settings.get_setting_str(settings, ["gitlab", "author_email"], "")
	if override:
		return override
	return (user.get("email") or "").strip()


#============================================
def main(argv: list[str] | None = None) -> None:
	"""
	Run the GitLab activity collection and write both reports.
	"""
	args = parse_args(argv)
	settings, settings_path = pipeline_settings.load_settings(args.settings)
	log_step(f"Using settings file: {settings_path}")
	try:
		gitlab_url, token = pipeline_settings.require_gitlab_credentials(settings)
	except RuntimeError as error:
		log_step(str(error))
		log_step("Aborting run before network calls.")
		raise SystemExit(1) from error
	json_path = args.json_output or pipeline_settings.get_setting_str(
		settings, ["report", "json_path"], DEFAULT_JSON_PATH
	)
	markdown_path = args.markdown_output or pipeline_settings.get_setting_str(
		settings, ["report", "markdown_path"], DEFAULT_MARKDOWN_PATH
	)
	timezone_name = args.timezone or pipeline_settings.get_report_timezone_name(settings)
	report_tz = resolve_report_timezone(timezone_name)
	locale = args.locale or pipeline_settings.get_report_locale(settings)
	markdown_mode = args.markdown_mode or pipeline_settings.get_markdown_mode(settings)
	merge_request_key = pipeline_settings.get_merge_request_key(settings)
	timeout_seconds = pipeline_settings.get_setting_int(settings, ["gitlab", "timeout_seconds"], 30)

	client = gitlab_client.GitLabClient(
		gitlab_url,
		token,
		log_fn=log_step,
		timeout_seconds=timeout_seconds,
	)
	log_step(f"Using GitLab instance: {gitlab_url}")
	log_step("Collecting activity across all projects...")
	try:
		user = client.get_current_user()
		projects = client.list_projects()
	except gitlab_client.GitLabAPIError as error:
		log_step(f"Fatal: {error}")
		raise SystemExit(1) from error
	user_email = resolve_user_email(settings, user)
	if not user_email:
		log_step("Warning: no author email for the current user; no commits will match.")
	log_step(f"Using GitLab user: {user.get('username') or user.get('id')} <{user_email}>")
	if args.max_projects > 0:
		projects = projects[: args.max_projects]
		log_step(f"Applied --max-projects cap: {len(projects)} project(s).")
	else:
		log_step(f"Project candidates: {len(projects)}.")

	all_activities = collect_all_activity(client, projects, user.get("id"), user_email)

	prior_activities = activity_store.load_prior_record(json_path, log_fn=log_step)
	prior_identities = activity_store.extract_existing_identities(
		prior_activities,
		merge_request_key,
	)
	delta, full_record = activity_store.reconcile(
		all_activities,
		prior_identities,
		prior_activities,
		merge_request_key,
	)
	if delta or not prior_activities:
		written_path = activity_store.write_structured_record(
			json_path,
			full_record,
			datetime.now(timezone.utc),
		)
		log_step(f"Wrote {written_path} ({len(delta)} new activities)")
	else:
		log_step("No new activity to add to JSON.")

	markdown_written = report_render.write_markdown_report(
		markdown_path,
		full_record,
		delta,
		mode=markdown_mode,
		tz=report_tz,
		locale=locale,
		rebuild=args.rebuild_markdown,
	)
	if markdown_written:
		log_step(f"Wrote {markdown_path}")
	else:
		log_step("No new activity to append to markdown.")

	commit_count = sum(1 for item in all_activities if activity_model.is_commit(item))
	merge_request_count = sum(1 for item in all_activities if activity_model.is_merge_request(item))
	usage = client.api_usage_snapshot()
	log_step(
		"Summary: "
		+ f"activities={len(all_activities)}, "
		+ f"commits={commit_count}, "
		+ f"merge_requests={merge_request_count}, "
		+ f"new={len(delta)}, "
		+ f"projects={len(projects)}, "
		+ f"api_calls={usage.get('api_call_count', 0)}"
	)


if __name__ == "__main__":
	main()
