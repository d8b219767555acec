"""HTTP client for the code-review tracker backend.

Every endpoint answers with an envelope ``{"success", "code", "message", "data"}``.
A request is a business failure when ``success`` is false, or when ``code``
is present and is not 200. Connection errors and timeouts are retried with
exponential backoff; business failures and HTTP errors are not.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Sequence

import requests

from crflow_core.models import AssignmentResult, ComponentSuggestion, FunctionSuggestion
from crflow_store.models import UserInfo

logger = logging.getLogger(__name__)

USER_AGENT = "crflow"
PLACEHOLDER = "-"


class TrackerError(Exception):
    """The tracker backend could not be reached or rejected a request."""


@dataclass
class CrRequestInfo:
    """Project-level fields of a code-review request."""

    git_project_name: str
    git_branch: str
    git_url: str
    work_hours: int
    participant_ids: list[int] = field(default_factory=list)
    check_user_ids: list[int] = field(default_factory=list)
    create_user_id: int | None = None
    req_doc_url: str = ""
    tech_doc_url: str = ""
    projex_url: str = ""
    ux_doc_url: str = ""
    remark: str = ""


class TrackerClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30,
        retry_count: int = 3,
        retry_delay: float = 1.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "User-Agent": USER_AGENT})
        if api_key:
            self.session.headers["x-api-key"] = api_key

    def post(self, endpoint: str, body: dict | None = None) -> Any:
        """POST ``body`` to ``endpoint`` and return the envelope's ``data``."""
        url = f"{self.base_url}{endpoint}"
        attempts = self.retry_count + 1
        for attempt in range(attempts):
            try:
                response = self.session.post(url, json=body or {}, timeout=self.timeout)
                break
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt == attempts - 1:
                    logger.error("POST %s failed after %d attempts: %s", endpoint, attempts, e)
                    raise TrackerError(f"Could not reach {url}: {e}") from e
                delay = self.retry_delay * 2**attempt
                logger.warning(
                    "POST %s failed (attempt %d/%d): %s. Retrying in %.1fs...",
                    endpoint,
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                time.sleep(delay)

        if not response.ok:
            raise TrackerError(f"HTTP {response.status_code} from {endpoint}: {response.reason}")
        try:
            envelope = response.json()
        except ValueError as e:
            raise TrackerError(f"{endpoint} returned a non-JSON response") from e
        if not isinstance(envelope, dict):
            raise TrackerError(f"{endpoint} returned an unexpected response")

        if envelope.get("success") is False:
            message = envelope.get("errorMsg") or envelope.get("message") or "request rejected"
            code = envelope.get("errorCode") or envelope.get("code") or "UNKNOWN"
            raise TrackerError(f"{message} (code: {code})")
        code = envelope.get("code")
        if code is not None and code != 200:
            raise TrackerError(envelope.get("message") or f"{endpoint} returned code {code}")

        logger.debug("POST %s ok", endpoint)
        return envelope.get("data")

    def list_users(self, real_name: str | None = None) -> list[UserInfo]:
        data = self.post("/common/getUserList", {"realName": real_name} if real_name else {})
        users = []
        for entry in (data or {}).get("list") or []:
            try:
                users.append(UserInfo(id=int(entry["id"]), display_name=entry.get("realName") or ""))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed user entry: %r", entry)
        return users

    def list_project_groups(self) -> list[dict]:
        data = self.post("/common/getProjectList", {})
        return list((data or {}).get("list") or [])

    def create_sprint(
        self,
        project_id: int,
        name: str,
        release_time: str | None = None,
        remark: str = "",
        create_user_id: int | None = None,
    ) -> int:
        """Create a sprint and return its id."""
        body: dict[str, Any] = {"projectId": project_id, "name": name, "remark": remark}
        if release_time:
            body["releaseTime"] = release_time
        if create_user_id is not None:
            body["createUserId"] = create_user_id
        data = self.post("/codeReview/createSprint", body)
        sprint_id = data.get("id") if isinstance(data, dict) else None
        if not sprint_id:
            raise TrackerError("createSprint did not return a sprint id")
        return int(sprint_id)

    def create_cr_request(self, payload: dict) -> Any:
        return self.post("/codeReview/createCrRequest", payload)

    def test_connection(self) -> bool:
        try:
            self.list_project_groups()
        except TrackerError as e:
            logger.warning("Tracker connection test failed: %s", e)
            return False
        return True


def build_cr_request(
    sprint_id: int,
    info: CrRequestInfo,
    components: Sequence[ComponentSuggestion],
    functions: Sequence[FunctionSuggestion],
    results: Sequence[AssignmentResult],
) -> dict:
    """Assemble the createCrRequest payload.

    Each component and function is audited by the reviewer assigned to its
    file. Files with no assignment fall back to the first check user.
    """
    reviewer_by_path = {r.file_path: r.reviewer_id for r in results}
    fallback = info.check_user_ids[0] if info.check_user_ids else None

    component_list = [
        {
            "name": c.name,
            "address": c.relative_path,
            "auditId": reviewer_by_path.get(c.relative_path, fallback),
            "imgUrl": PLACEHOLDER,
        }
        for c in components
    ]
    function_list = [
        {
            "name": f.name,
            "auditId": reviewer_by_path.get(f.relative_path, fallback),
            "desc": f.description or f.name,
        }
        for f in functions
    ]

    payload: dict[str, Any] = {
        "sprintId": sprint_id,
        "gitProjectName": info.git_project_name,
        "gitlabBranch": info.git_branch,
        "gitlabUrl": info.git_url,
        "reqDocUrl": info.req_doc_url or PLACEHOLDER,
        "techDocUrl": info.tech_doc_url or PLACEHOLDER,
        "projexUrl": info.projex_url or PLACEHOLDER,
        "uxDocUrl": info.ux_doc_url or PLACEHOLDER,
        "spendTime": str(info.work_hours),
        "participantIds": ",".join(str(i) for i in info.participant_ids),
        "checkUserIds": ",".join(str(i) for i in info.check_user_ids),
        "remark": info.remark,
        "componentList": component_list,
        "functionList": function_list,
    }
    if info.create_user_id is not None:
        payload["createUserId"] = info.create_user_id
    return payload
