import os
import sys


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from gitlablib import branch_attribution


USER_EMAIL = "dev@example.com"


#============================================
def make_raw_commit(sha: str, title: str, email: str = USER_EMAIL) -> dict:
	return {
		"id": sha,
		"title": title,
		"created_at": "2024-06-10T09:00:00Z",
		"author_email": email,
	}


#============================================
def make_merge_request(iid: int, source: str, target: str) -> dict:
	return {
		"type": "Merge Request",
		"project": "app",
		"iid": iid,
		"sha": None,
		"source": source,
		"target": target,
		"title": f"MR {iid}",
		"date": "2024-06-10T08:00:00Z",
	}


#============================================
def test_merge_request_attribution_wins_over_branch_walk() -> None:
	"""
	A commit seen in a merge request and on its branch keeps the MR attribution.
	"""
	seen: set[str] = set()
	commits = branch_attribution.attribute_commits(
		"app",
		USER_EMAIL,
		[(make_merge_request(1, "feat", "main"), [make_raw_commit("X", "Add login")])],
		[("feat", [make_raw_commit("X", "Add login")])],
		seen,
	)
	assert len(commits) == 1
	commit = commits[0]
	assert commit["branch"] == "feat"
	assert commit["target_branch"] == "main"
	assert commit["from_merge_request"] is True
	assert commit["mr_source"] == "feat"
	assert commit["mr_target"] == "main"
	assert seen == {"X"}


#============================================
def test_merge_commit_title_found_on_branch_walk() -> None:
	"""
	Merge commit titles attribute both branch and target to the merged-into branch.
	"""
	commits = branch_attribution.attribute_commits(
		"app",
		USER_EMAIL,
		[],
		[("main", [make_raw_commit("M", "Merge branch 'feat/login' into develop")])],
		set(),
	)
	assert len(commits) == 1
	assert commits[0]["branch"] == "develop"
	assert commits[0]["target_branch"] == "develop"
	assert commits[0]["from_merge_request"] is False
	assert commits[0]["mr_source"] is None


#============================================
def test_plain_branch_commit_uses_physical_branch() -> None:
	commits = branch_attribution.attribute_commits(
		"app",
		USER_EMAIL,
		[],
		[("hotfix", [make_raw_commit("H", "Fix crash")])],
		set(),
	)
	assert commits[0]["branch"] == "hotfix"
	assert commits[0]["target_branch"] is None


#============================================
def test_first_merge_request_and_first_branch_win() -> None:
	"""
	Listing order decides between sources of the same kind.
	"""
	shared = make_raw_commit("S", "Shared work")
	branch_only = make_raw_commit("B", "Branch work")
	commits = branch_attribution.attribute_commits(
		"app",
		USER_EMAIL,
		[
			(make_merge_request(1, "first", "main"), [shared]),
			(make_merge_request(2, "second", "main"), [shared]),
		],
		[("one", [branch_only]), ("two", [branch_only])],
		set(),
	)
	assert [commit["sha"] for commit in commits] == ["S", "B"]
	assert commits[0]["branch"] == "first"
	assert commits[1]["branch"] == "one"


#============================================
def test_other_authors_are_ignored() -> None:
	commits = branch_attribution.attribute_commits(
		"app",
		USER_EMAIL,
		[(make_merge_request(1, "feat", "main"), [make_raw_commit("O", "x", "other@example.com")])],
		[("main", [make_raw_commit("P", "y", "other@example.com")])],
		set(),
	)
	assert commits == []


#============================================
def test_seen_shas_from_earlier_projects_are_skipped() -> None:
	"""
	The accumulator carries across calls, so a sha is emitted once per run.
	"""
	seen = {"X"}
	commits = branch_attribution.attribute_commits(
		"fork",
		USER_EMAIL,
		[],
		[("main", [make_raw_commit("X", "Add login"), make_raw_commit("Y", "Other")])],
		seen,
	)
	assert [commit["sha"] for commit in commits] == ["Y"]
	assert seen == {"X", "Y"}


#============================================
def test_parse_merge_title() -> None:
	assert branch_attribution.parse_merge_title(
		"Merge branch 'feat/login' into develop"
	) == ("feat/login", "develop")
	assert branch_attribution.parse_merge_title(
		"Merge branch 'a' of https://host/x into main"
	) == ("a", "main")
	assert branch_attribution.parse_merge_title("Fix typo") is None
	assert branch_attribution.parse_merge_title(None) is None
