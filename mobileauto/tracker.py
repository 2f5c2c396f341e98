# mobileauto/tracker.py
"""
@file tracker.py
@brief Jira Cloud REST client and Atlassian Document Format (ADF) builders.

Jira Cloud requires ADF documents for issue descriptions and comments.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import requests

from .config import TrackerConfig
from .exceptions import IssueTrackerError

ISSUE_ENDPOINT = "/rest/api/3/issue"


# --- ADF builders ---

def adf_text(text: str, marks: Optional[List[str]] = None) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "text", "text": text}
    if marks:
        node["marks"] = [{"type": m} for m in marks]
    return node


def adf_paragraph(*nodes: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "paragraph", "content": list(nodes)}


def adf_heading(text: str, level: int = 3) -> Dict[str, Any]:
    return {"type": "heading", "attrs": {"level": level}, "content": [adf_text(text)]}


def adf_code_block(text: str) -> Dict[str, Any]:
    return {"type": "codeBlock", "content": [adf_text(text)]}


def adf_document(*blocks: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "doc", "version": 1, "content": list(blocks)}


def build_adf(text: str) -> Dict[str, Any]:
    """Single-paragraph document. ADF text nodes must not be empty."""
    return adf_document(adf_paragraph(adf_text(text or " ")))


def adf_field(label: str, value: str) -> Dict[str, Any]:
    return adf_paragraph(adf_text(f"{label}: ", ["strong"]), adf_text(value or "-"))


# --- REST client ---

class JiraClient:
    """
    Minimal Jira REST v3 client: create issue, attach file, add comment.

    Methods return on success and raise IssueTrackerError on a rejected or
    failed request. Callers decide whether that is fatal.
    """

    def __init__(
        self,
        config: TrackerConfig,
        http: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.log = logger or logging.getLogger("mobileauto.tracker")
        self.http = http or requests.Session()
        self.http.auth = (config.api_email, config.api_token)

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _post(self, operation: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self.http.post(self._url(path), timeout=self.config.request_timeout, **kwargs)
        except requests.RequestException as e:
            raise IssueTrackerError(operation, details=f"{type(e).__name__}: {e}") from e

    def create_issue(self, summary: str, description: Dict[str, Any]) -> str:
        """
        Create an issue in the configured project.

        @return The new issue key
        @throws IssueTrackerError unless the tracker answers 201 with a key
        """
        payload = {
            "fields": {
                "project": {"key": self.config.project_key},
                "summary": summary,
                "issuetype": {"name": self.config.issue_type},
                "description": description,
            }
        }
        response = self._post("create_issue", ISSUE_ENDPOINT, json=payload)
        if response.status_code != 201:
            raise IssueTrackerError("create_issue", response.status_code, response.text[:500])
        try:
            key = response.json().get("key")
        except ValueError as e:
            raise IssueTrackerError("create_issue", response.status_code, "response is not JSON") from e
        if not key:
            raise IssueTrackerError("create_issue", response.status_code, "response has no issue key")
        return str(key)

    def attach_file(self, issue_key: str, file_path: str) -> None:
        """@throws IssueTrackerError unless the tracker answers 200 or 201"""
        with open(file_path, "rb") as f:
            response = self._post(
                "attach_file",
                f"{ISSUE_ENDPOINT}/{issue_key}/attachments",
                headers={"X-Atlassian-Token": "no-check"},
                files={"file": (os.path.basename(file_path), f, "image/png")},
            )
        if response.status_code not in (200, 201):
            raise IssueTrackerError("attach_file", response.status_code, response.text[:500])

    def add_comment(self, issue_key: str, body: Dict[str, Any]) -> None:
        """@throws IssueTrackerError unless the tracker answers 201"""
        response = self._post("add_comment", f"{ISSUE_ENDPOINT}/{issue_key}/comment", json={"body": body})
        if response.status_code != 201:
            raise IssueTrackerError("add_comment", response.status_code, response.text[:500])
