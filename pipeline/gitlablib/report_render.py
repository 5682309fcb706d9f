import os
from datetime import date
from datetime import datetime
from datetime import timezone
from datetime import tzinfo

from gitlablib import activity_model


REPORT_TITLE = "# GitLab Activity History"
UNKNOWN_PROJECT = "Unknown Project"

WEEKDAY_NAMES = {
	"en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
	"id": ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"],
}
MONTH_NAMES = {
	"en": [
		"January", "February", "March", "April", "May", "June",
		"July", "August", "September", "October", "November", "December",
	],
	"id": [
		"Januari", "Februari", "Maret", "April", "Mei", "Juni",
		"Juli", "Agustus", "September", "Oktober", "November", "Desember",
	],
}


#============================================
def format_day_label(day: date, locale: str = "en") -> str:
	"""
	Format a calendar day as "Weekday, D Month YYYY" in a fixed locale.
	"""
	if locale not in WEEKDAY_NAMES:
		raise RuntimeError(f"Unsupported report locale: {locale}")
	weekday = WEEKDAY_NAMES[locale][day.weekday()]
	month = MONTH_NAMES[locale][day.month - 1]
	return f"{weekday}, {day.day} {month} {day.year}"


#============================================
def local_day(activity: dict, tz: tzinfo) -> date:
	return activity_model.parse_iso(activity.get("date")).astimezone(tz).date()


#============================================
def group_by_day(
	activities: list[dict],
	tz: tzinfo = timezone.utc,
	locale: str = "en",
) -> list[tuple[str, list[dict]]]:
	"""
	Group activities by local calendar day, newest day first.

	Grouping and ordering use the calendar date itself; the label is only
	attached afterwards. Activities keep their input order within a day.
	"""
	buckets: dict[date, list[dict]] = {}
	for activity in activities:
		day = local_day(activity, tz)
		if day not in buckets:
			buckets[day] = []
		buckets[day].append(activity)
	groups = []
	for day in sorted(buckets, reverse=True):
		groups.append((format_day_label(day, locale), buckets[day]))
	return groups


#============================================
def render_commit_line(commit: dict) -> str:
	project = commit.get("project") or UNKNOWN_PROJECT
	branch_label = f"[{commit.get('branch')}"
	if commit.get("target_branch"):
		branch_label += f" / {commit.get('target_branch')}"
	branch_label += "]"
	from_mr = ""
	if commit.get("from_merge_request"):
		from_mr = f" (from MR: `{commit.get('mr_source')} → {commit.get('mr_target')}`)"
	return f"- [`{project}`] {branch_label} {commit.get('title')}{from_mr}"


#============================================
def render_merge_request_line(merge_request: dict) -> str:
	project = merge_request.get("project") or UNKNOWN_PROJECT
	return (
		f"- [`{project}`] "
		+ f"[{merge_request.get('source')} → {merge_request.get('target')}] "
		+ f"{merge_request.get('title')}"
	)


#============================================
def render_markdown_sections(
	activities: list[dict],
	tz: tzinfo = timezone.utc,
	locale: str = "en",
) -> str:
	"""
	Render day sections with Commits before Merge Requests in each day.
	"""
	lines = []
	for day_label, day_activities in group_by_day(activities, tz, locale):
		lines.append(f"\n## {day_label}\n")
		commits = [item for item in day_activities if activity_model.is_commit(item)]
		merge_requests = [item for item in day_activities if activity_model.is_merge_request(item)]
		if commits:
			lines.append("### Commits")
			for commit in commits:
				lines.append(render_commit_line(commit))
			lines.append("")
		if merge_requests:
			lines.append("### Merge Requests")
			for merge_request in merge_requests:
				lines.append(render_merge_request_line(merge_request))
			lines.append("")
	return "\n".join(lines)


#============================================
def render_markdown_document(sections_text: str, existing_text: str = "") -> str:
	"""
	Put new sections under the title, above any existing report content.

	The title line of the existing content is dropped so it appears once.
	"""
	body = existing_text or ""
	if body.startswith(REPORT_TITLE + "\n"):
		body = body[len(REPORT_TITLE) + 1:]
	elif body.strip() == REPORT_TITLE:
		body = ""
	return f"{REPORT_TITLE}\n{sections_text}{body}"


#============================================
def build_structured_record(activities: list[dict], generated_at: datetime) -> dict:
	"""
	Build the structured record with summary counters.
	"""
	commit_count = sum(1 for item in activities if activity_model.is_commit(item))
	merge_request_count = sum(1 for item in activities if activity_model.is_merge_request(item))
	record = {
		"generated_at": generated_at.isoformat(),
		"total_activities": len(activities),
		"summary": {
			"commits": commit_count,
			"merge_requests": merge_request_count,
		},
		"activities": activities,
	}
	return record


#============================================
def write_markdown_report(
	path: str,
	full_activities: list[dict],
	delta: list[dict],
	mode: str = "regenerate",
	tz: tzinfo = timezone.utc,
	locale: str = "en",
	rebuild: bool = False,
) -> bool:
	"""
	Write the markdown report and return True when the file changed.

	regenerate rebuilds the report from the full reconciled collection.
	prepend adds only the delta's day sections above the existing content;
	a missing report is rendered from the full collection instead.
	Nothing is written when there is no delta and the report already exists,
	unless rebuild is set, which regenerates the whole report in either mode.
	"""
	output_path = os.path.abspath(path)
	exists = os.path.isfile(output_path)
	if exists and not delta and not rebuild:
		return False
	if mode not in ("prepend", "regenerate"):
		raise RuntimeError(f"Unsupported markdown mode: {mode}")
	if mode == "prepend" and exists and not rebuild:
		with open(output_path, "r", encoding="utf-8") as handle:
			existing_text = handle.read()
		sections_text = render_markdown_sections(delta, tz, locale)
		document = render_markdown_document(sections_text, existing_text)
	else:
		sections_text = render_markdown_sections(full_activities, tz, locale)
		document = render_markdown_document(sections_text)
	output_dir = os.path.dirname(output_path)
	if output_dir:
		os.makedirs(output_dir, exist_ok=True)
	with open(output_path, "w", encoding="utf-8") as handle:
		handle.write(document)
	return True
