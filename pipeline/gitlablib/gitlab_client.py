import requests


PAGE_SIZE = 100


#============================================
class GitLabAPIError(RuntimeError):
	"""
	Raised when a GitLab API request fails or returns an unusable payload.
	"""


#============================================
class GitLabClient:
	"""
	Thin requests wrapper for the GitLab v4 REST endpoints the collector uses.
	"""

	def __init__(
		self,
		base_url: str,
		token: str,
		log_fn=None,
		timeout_seconds: int = 30,
		session=None,
	):
		self.log_fn = log_fn
		self.api_url = f"{base_url.rstrip('/')}/api/v4"
		self.timeout_seconds = timeout_seconds
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		self.session = session if session is not None else requests.Session()
		self.session.headers.update({"PRIVATE-TOKEN": token})

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitLab API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def get_json(self, path: str, context: str, params: dict | None = None):
		"""
		Run one GET request and return the decoded JSON payload.
		"""
		url = f"{self.api_url}{path}"
		self.record_api_call(context)
		try:
			response = self.session.get(url, params=params, timeout=self.timeout_seconds)
			response.raise_for_status()
			return response.json()
		except requests.RequestException as error:
			raise GitLabAPIError(f"GitLab API request failed ({context}): {error}") from error
		except ValueError as error:
			raise GitLabAPIError(f"GitLab API returned invalid JSON ({context}): {error}") from error

	#============================================
	def fetch_all_pages(self, path: str, context: str, params: dict | None = None) -> list[dict]:
		"""
		Request pages of PAGE_SIZE items until a page comes back empty.
		"""
		results: list[dict] = []
		page = 1
		while True:
			page_params = dict(params or {})
			page_params["per_page"] = PAGE_SIZE
			page_params["page"] = page
			payload = self.get_json(path, context, params=page_params)
			if not isinstance(payload, list):
				raise GitLabAPIError(f"Unexpected GitLab API response format ({context}).")
			if not payload:
				break
			results.extend(payload)
			page += 1
		self.log(f"GitLab {path}: {len(results)} item(s) in {page - 1} page(s)")
		return results

	#============================================
	def get_current_user(self) -> dict:
		"""
		Return the user that owns the access token.
		"""
		payload = self.get_json("/user", "GET /user")
		if not isinstance(payload, dict):
			raise GitLabAPIError("Unexpected GitLab API response format (GET /user).")
		return payload

	#============================================
	def list_projects(self) -> list[dict]:
		"""
		List projects the current user is a member of.
		"""
		return self.fetch_all_pages(
			"/projects",
			"GET /projects",
			params={"membership": "true"},
		)

	#============================================
	def list_merge_requests(self, project_id, author_id) -> list[dict]:
		"""
		List merge requests authored by one user in any state.
		"""
		return self.fetch_all_pages(
			f"/projects/{project_id}/merge_requests",
			"GET /projects/:id/merge_requests",
			params={"author_id": author_id, "scope": "all", "state": "all"},
		)

	#============================================
	def list_merge_request_commits(self, project_id, merge_request_iid) -> list[dict]:
		return self.fetch_all_pages(
			f"/projects/{project_id}/merge_requests/{merge_request_iid}/commits",
			"GET /projects/:id/merge_requests/:iid/commits",
		)

	#============================================
	def list_branches(self, project_id) -> list[dict]:
		return self.fetch_all_pages(
			f"/projects/{project_id}/repository/branches",
			"GET /projects/:id/repository/branches",
		)

	#============================================
	def list_branch_commits(self, project_id, branch_name: str) -> list[dict]:
		return self.fetch_all_pages(
			f"/projects/{project_id}/repository/commits",
			"GET /projects/:id/repository/commits",
			params={"ref_name": branch_name},
		)
