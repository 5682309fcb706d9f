import re

from gitlablib import activity_model


MERGE_TITLE_RE = re.compile(r"Merge branch '(.+?)'.*into (.+)")


#============================================
def parse_merge_title(title) -> tuple[str, str] | None:
	"""
	Match a "Merge branch '<name>' ... into <target>" commit title.

	Returns (merged_branch, target_branch) or None for ordinary titles.
	"""
	if not title:
		return None
	match = MERGE_TITLE_RE.search(title)
	if match is None:
		return None
	return match.group(1), match.group(2)


#============================================
def attribute_merge_request_commits(
	project_name: str,
	user_email: str,
	merge_request: dict,
	raw_commits: list[dict],
	seen_shas: set[str],
) -> list[dict]:
	"""
	Attribute the user's unseen commits of one merge request to its branches.

	The merge request's source branch is the originating branch even after
	it has been deleted post-merge.
	"""
	activities = []
	for raw_commit in raw_commits:
		sha = raw_commit.get("id")
		if not activity_model.is_authored_by(raw_commit, user_email):
			continue
		if sha in seen_shas:
			continue
		seen_shas.add(sha)
		activities.append(
			activity_model.build_commit_activity(
				project_name,
				raw_commit,
				merge_request.get("source"),
				merge_request.get("target"),
				merge_request=merge_request,
			)
		)
	return activities


#============================================
def attribute_branch_commits(
	project_name: str,
	user_email: str,
	branch_name: str,
	raw_commits: list[dict],
	seen_shas: set[str],
) -> list[dict]:
	"""
	Attribute the user's unseen commits found by walking one branch.
	"""
	activities = []
	for raw_commit in raw_commits:
		sha = raw_commit.get("id")
		if not activity_model.is_authored_by(raw_commit, user_email):
			continue
		if sha in seen_shas:
			continue
		seen_shas.add(sha)
		display_branch = branch_name
		target_branch = None
		merge_match = parse_merge_title(raw_commit.get("title"))
		if merge_match is not None:
			# merge commits are shown under the branch they merged into
			display_branch = merge_match[1] or branch_name
			target_branch = merge_match[1] or branch_name
		activities.append(
			activity_model.build_commit_activity(
				project_name,
				raw_commit,
				display_branch,
				target_branch,
			)
		)
	return activities


#============================================
def attribute_commits(
	project_name: str,
	user_email: str,
	merge_request_commits: list[tuple[dict, list[dict]]],
	branch_commits: list[tuple[str, list[dict]]],
	seen_shas: set[str],
) -> list[dict]:
	"""
	Attribute one project's commits, merge request data first.

	merge_request_commits holds (merge request activity, raw commits) pairs in
	listing order; branch_commits holds (branch name, raw commits) pairs in
	listing order. The first source to claim a sha wins. seen_shas is the
	run-wide accumulator and is updated in place.
	"""
	activities = []
	for merge_request, raw_commits in merge_request_commits:
		activities.extend(
			attribute_merge_request_commits(
				project_name,
				user_email,
				merge_request,
				raw_commits,
				seen_shas,
			)
		)
	for branch_name, raw_commits in branch_commits:
		activities.extend(
			attribute_branch_commits(
				project_name,
				user_email,
				branch_name,
				raw_commits,
				seen_shas,
			)
		)
	return activities
