"""Uniform activity records built from raw GitLab payloads.

Activities are plain JSON-compatible dicts so the structured record can be
written and read back without conversion. The ``type`` field tags the
variant: ``Commit`` or ``Merge Request``.
"""

from datetime import datetime
from datetime import timezone


COMMIT_TYPE = "Commit"
MERGE_REQUEST_TYPE = "Merge Request"
# accepted when reading records written by other tools
MERGE_REQUEST_TYPE_ALIASES = {MERGE_REQUEST_TYPE, "MergeRequest"}
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


#============================================
def is_commit(activity: dict) -> bool:
	return activity.get("type") == COMMIT_TYPE


#============================================
def is_merge_request(activity: dict) -> bool:
	return activity.get("type") in MERGE_REQUEST_TYPE_ALIASES


#============================================
def parse_iso(ts) -> datetime:
	"""
	Parse an ISO timestamp string into a timezone-aware datetime.

	Missing or unparseable values map to the Unix epoch so they sort last.
	"""
	if not ts or not isinstance(ts, str):
		return EPOCH
	try:
		parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
	except ValueError:
		return EPOCH
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


#============================================
def is_authored_by(raw_commit: dict, user_email: str) -> bool:
	"""
	Check whether a raw commit belongs to the configured user.
	"""
	return raw_commit.get("author_email") == user_email


#============================================
def build_merge_request_activity(project_name: str, raw_mr: dict) -> dict:
	"""
	Build one Merge Request activity from a raw merge request payload.

	Unmerged merge requests have no merge commit and keep ``sha`` as None.
	"""
	activity = {
		"type": MERGE_REQUEST_TYPE,
		"project": project_name,
		"iid": raw_mr.get("iid"),
		"sha": raw_mr.get("merge_commit_sha"),
		"source": raw_mr.get("source_branch"),
		"target": raw_mr.get("target_branch"),
		"title": raw_mr.get("title"),
		"date": raw_mr.get("created_at"),
	}
	return activity


#============================================
def build_commit_activity(
	project_name: str,
	raw_commit: dict,
	branch: str,
	target_branch: str | None,
	merge_request: dict | None = None,
) -> dict:
	"""
	Build one Commit activity with its attributed branches.

	merge_request is the Merge Request activity the commit was found in, if
	any; its source and target are recorded as mr_source and mr_target.
	"""
	from_merge_request = merge_request is not None
	activity = {
		"type": COMMIT_TYPE,
		"project": project_name,
		"sha": raw_commit.get("id"),
		"branch": branch,
		"target_branch": target_branch,
		"title": raw_commit.get("title"),
		"date": raw_commit.get("created_at"),
		"from_merge_request": from_merge_request,
		"mr_source": merge_request.get("source") if from_merge_request else None,
		"mr_target": merge_request.get("target") if from_merge_request else None,
	}
	return activity


#============================================
def merge_request_branch_key(source, target) -> str:
	return f"{source} → {target}"


#============================================
def activity_identity(activity: dict, merge_request_key: str = "branches") -> str | None:
	"""
	Return the deduplication key for one activity.

	Commits are keyed on sha. Merge requests are keyed on "source → target"
	by default; with merge_request_key="iid" they are keyed on project and iid.
	Unknown activity types have no key and are never deduplicated.
	"""
	if is_commit(activity):
		return activity.get("sha")
	if is_merge_request(activity):
		if merge_request_key == "iid":
			return f"{activity.get('project')}!{activity.get('iid')}"
		return merge_request_branch_key(activity.get("source"), activity.get("target"))
	return None
