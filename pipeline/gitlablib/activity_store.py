"""Reconcile freshly collected activity with the persisted structured record.

The structured JSON record is the only source of truth for what has already
been seen. Reconciliation never rewrites an existing entry: it unions the
prior activities with the unseen part of the new batch and re-sorts the
whole collection by date, newest first.
"""

import json
import os
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

from gitlablib import activity_model
from gitlablib import report_render


#============================================
@dataclass
class ExistingIdentities:
	commit_shas: set[str] = field(default_factory=set)
	mr_keys: set[str] = field(default_factory=set)

	#============================================
	def contains(self, activity: dict, merge_request_key: str = "branches") -> bool:
		"""
		Check whether an activity's identity key was already recorded.
		"""
		key = activity_model.activity_identity(activity, merge_request_key)
		if key is None:
			return False
		if activity_model.is_commit(activity):
			return key in self.commit_shas
		return key in self.mr_keys

	#============================================
	def add(self, activity: dict, merge_request_key: str = "branches") -> None:
		key = activity_model.activity_identity(activity, merge_request_key)
		if key is None:
			return
		if activity_model.is_commit(activity):
			self.commit_shas.add(key)
		else:
			self.mr_keys.add(key)


#============================================
def load_prior_record(path: str, log_fn=None) -> list[dict]:
	"""
	Load prior activities from the structured record at path.

	A missing file is an empty record. A file that cannot be parsed, or does
	not have the expected shape, is reported through log_fn and treated as
	empty so the run can continue.
	"""
	if not os.path.isfile(path):
		return []
	try:
		with open(path, "r", encoding="utf-8") as handle:
			payload = json.load(handle)
	except (OSError, ValueError) as error:
		if log_fn is not None:
			log_fn(f"Warning: could not parse existing JSON file {path}: {error}")
		return []
	if not isinstance(payload, dict):
		if log_fn is not None:
			log_fn(f"Warning: existing JSON file {path} is not a mapping; ignoring it.")
		return []
	activities = payload.get("activities", [])
	if not isinstance(activities, list):
		if log_fn is not None:
			log_fn(f"Warning: existing JSON file {path} has no activity list; ignoring it.")
		return []
	return [item for item in activities if isinstance(item, dict)]


#============================================
def extract_existing_identities(
	prior_activities: list[dict],
	merge_request_key: str = "branches",
) -> ExistingIdentities:
	"""
	Recover commit sha and merge request key sets from prior activities.
	"""
	identities = ExistingIdentities()
	for activity in prior_activities:
		identities.add(activity, merge_request_key)
	return identities


#============================================
def activity_timestamp(activity: dict) -> float:
	return activity_model.parse_iso(activity.get("date")).timestamp()


#============================================
def sort_by_date_desc(activities: list[dict]) -> list[dict]:
	"""
	Stable sort by date, newest first.

	Equal dates keep their input order, so prior entries stay ahead of new
	ones when the caller passes prior + delta.
	"""
	return sorted(activities, key=activity_timestamp, reverse=True)


#============================================
def reconcile(
	new_batch: list[dict],
	prior_identities: ExistingIdentities,
	prior_activities: list[dict],
	merge_request_key: str = "branches",
) -> tuple[list[dict], list[dict]]:
	"""
	Merge a new batch into prior activities without duplicates.

	Returns (delta, full_record). delta holds the batch items whose identity
	key is unknown; full_record is the sorted union. When nothing is new and
	a prior record exists, prior_activities is returned unchanged.
	"""
	seen = ExistingIdentities(
		commit_shas=set(prior_identities.commit_shas),
		mr_keys=set(prior_identities.mr_keys),
	)
	delta = []
	for activity in new_batch:
		if seen.contains(activity, merge_request_key):
			continue
		seen.add(activity, merge_request_key)
		delta.append(activity)
	if not delta and prior_activities:
		return delta, prior_activities
	full_record = sort_by_date_desc(list(prior_activities) + delta)
	return delta, full_record


#============================================
def write_structured_record(
	path: str,
	activities: list[dict],
	generated_at: datetime,
) -> str:
	"""
	Write the structured record with freshly computed summary counters.
	"""
	record = report_render.build_structured_record(activities, generated_at)
	output_path = os.path.abspath(path)
	output_dir = os.path.dirname(output_path)
	if output_dir:
		os.makedirs(output_dir, exist_ok=True)
	with open(output_path, "w", encoding="utf-8") as handle:
		json.dump(record, handle, ensure_ascii=True, sort_keys=True, indent=2)
		handle.write("\n")
	return output_path
