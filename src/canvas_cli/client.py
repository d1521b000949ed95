"""canvas_cli.client

`CanvasClient` wraps one Canvas LMS instance and one bearer token. Each public
method maps to a REST resource under ``https://{domain}/api/v1`` and returns
the parsed JSON body. Failures are raised as the typed errors in
:mod:`canvas_cli.errors`; nothing is retried.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import requests

from .errors import (
    CanvasError,
    RemoteError,
    error_from_exception,
    error_from_response,
)
from .utils import DateLike, parse_timestamp, to_query_date

__all__ = ["CanvasClient", "REQUEST_TIMEOUT", "sort_by_due_date"]

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds, applied to every request
MAX_PAGES = 50        # ceiling when following Link: rel="next"

JSONBody = Union[Dict[str, Any], List[Any], bool]


class CanvasClient:
    """Authenticated client for the Canvas REST API."""

    def __init__(
        self,
        token: str,
        domain: str,
        session: Optional[requests.Session] = None,
    ):
        self.domain = domain.strip().rstrip("/")
        for prefix in ("https://", "http://"):
            if self.domain.startswith(prefix):
                self.domain = self.domain[len(prefix):]
        self.base_url = f"https://{self.domain}/api/v1"
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        # per-request headers only: the direct upload step must not carry the token
        self.session = session or requests.Session()

    def __repr__(self) -> str:
        return f"CanvasClient(domain={self.domain!r})"

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, **kw) -> requests.Response:
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method, url, headers=self.headers, timeout=REQUEST_TIMEOUT, **kw
            )
        except requests.RequestException as exc:
            raise error_from_exception(exc) from exc
        if not response.ok:
            raise error_from_response(response)
        return response

    @staticmethod
    def _body(response: requests.Response) -> JSONBody:
        if response.status_code == 204 or not response.content:
            return True
        try:
            return response.json()
        except ValueError:
            return True

    @staticmethod
    def _json(response: requests.Response) -> Any:
        """Decode a body that must be JSON; anything else is a RemoteError."""
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(
                "Invalid JSON from Canvas", status=response.status_code, cause=exc
            ) from exc

    def _request(self, method: str, path: str, **kw) -> JSONBody:
        return self._body(self._send(method, path, **kw))

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._json(self._send("GET", path, params=params))

    def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """GET a list resource, following pagination links until exhausted."""
        response = self._send("GET", path, params=params)
        items = self._json(response)
        if not isinstance(items, list):
            return items
        pages = 1
        next_link = response.links.get("next", {}).get("url")
        while next_link and pages < MAX_PAGES:
            # the next link already carries the query string
            response = self._send("GET", next_link)
            page = self._json(response)
            if not isinstance(page, list):
                raise RemoteError(
                    f"Expected a list on page {pages + 1} of {path}", status=response.status_code
                )
            items.extend(page)
            pages += 1
            next_link = response.links.get("next", {}).get("url")
        if next_link:
            logger.warning("Stopped after %d pages of %s", pages, path)
        return items

    # ------------------------------------------------------------------
    # Users & courses
    # ------------------------------------------------------------------
    def get_current_user(self) -> Dict[str, Any]:
        return self._get("users/self")

    def get_courses(self, enrollment_state: Optional[str] = "active") -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"include[]": ["term", "teachers", "total_scores"]}
        if enrollment_state:
            params["enrollment_state"] = enrollment_state
        return self._get_list("courses", params)

    def get_course(self, course_id: int) -> Dict[str, Any]:
        return self._get(
            f"courses/{course_id}",
            {"include[]": ["syllabus_body", "term", "teachers"]},
        )

    def search_courses(self, query: str) -> List[Dict[str, Any]]:
        """Active courses whose name or course code contains *query* (case-insensitive)."""
        q = query.lower()
        return [
            c for c in self.get_courses()
            if q in (c.get("name") or "").lower() or q in (c.get("course_code") or "").lower()
        ]

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------
    def get_calendar_events(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        context_codes: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"all_events": "true"}
        codes = list(context_codes or [])
        if codes:
            params["context_codes[]"] = codes
        if start_date is not None:
            params["start_date"] = to_query_date(start_date)
        if end_date is not None:
            params["end_date"] = to_query_date(end_date)
        return self._get_list("calendar_events", params)

    def get_upcoming_events(self) -> List[Dict[str, Any]]:
        return self._get("users/self/upcoming_events")

    def create_calendar_event(
        self,
        context_code: str,
        title: str,
        start_at: Optional[DateLike] = None,
        end_at: Optional[DateLike] = None,
        description: Optional[str] = None,
        location_name: Optional[str] = None,
    ) -> JSONBody:
        event: Dict[str, Any] = {"context_code": context_code, "title": title}
        if start_at is not None:
            event["start_at"] = to_query_date(start_at)
        if end_at is not None:
            event["end_at"] = to_query_date(end_at)
        if description is not None:
            event["description"] = description
        if location_name is not None:
            event["location_name"] = location_name
        try:
            return self._request("POST", "calendar_events", json={"calendar_event": event})
        except CanvasError as err:
            raise err.with_context("Failed to create calendar event") from err

    def update_calendar_event(self, event_id: int, **fields: Any) -> JSONBody:
        for key in ("start_at", "end_at"):
            if key in fields and fields[key] is not None:
                fields[key] = to_query_date(fields[key])
        return self._request("PUT", f"calendar_events/{event_id}", json={"calendar_event": fields})

    def delete_calendar_event(self, event_id: int, cancel_reason: Optional[str] = None) -> JSONBody:
        params = {"cancel_reason": cancel_reason} if cancel_reason else None
        return self._request("DELETE", f"calendar_events/{event_id}", params=params)

    # ------------------------------------------------------------------
    # Assignments & submissions
    # ------------------------------------------------------------------
    def get_assignments(self, course_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Assignments for one course, or for every active course when *course_id* is None.

        The aggregated form tags each assignment with ``course_name`` and
        ``course_id`` and orders the result by due date, undated last.
        """
        if course_id is not None:
            return self._get_list(
                f"courses/{course_id}/assignments",
                {"include[]": ["submission", "overrides"], "order_by": "due_at"},
            )

        def fetch(course: Dict[str, Any]) -> List[Dict[str, Any]]:
            return [
                {**a, "course_name": course.get("name"), "course_id": course.get("id")}
                for a in self.get_assignments(course["id"])
            ]

        merged, _ = self._collect_per_course(fetch, "assignments")
        return sort_by_due_date(merged)

    def get_assignment(self, course_id: int, assignment_id: int) -> Dict[str, Any]:
        return self._get(
            f"courses/{course_id}/assignments/{assignment_id}",
            {"include[]": ["submission", "overrides"]},
        )

    def get_submission(self, course_id: int, assignment_id: int) -> Dict[str, Any]:
        return self._get(
            f"courses/{course_id}/assignments/{assignment_id}/submissions/self",
            {"include[]": ["submission_comments", "rubric_assessment"]},
        )

    def submit_assignment(
        self,
        course_id: int,
        assignment_id: int,
        submission_type: str,
        body: Optional[str] = None,
        url: Optional[str] = None,
        file_ids: Optional[Iterable[int]] = None,
        comment: Optional[str] = None,
    ) -> JSONBody:
        """Submit an assignment.

        *submission_type* is one of Canvas's types, e.g. ``online_text_entry``
        (uses *body*), ``online_url`` (uses *url*) or ``online_upload`` (uses
        *file_ids* from :meth:`upload_file`).
        """
        submission: Dict[str, Any] = {"submission_type": submission_type}
        if body is not None:
            submission["body"] = body
        if url is not None:
            submission["url"] = url
        if file_ids:
            submission["file_ids"] = list(file_ids)
        payload: Dict[str, Any] = {"submission": submission}
        if comment:
            payload["comment"] = {"text_comment": comment}
        try:
            return self._request(
                "POST",
                f"courses/{course_id}/assignments/{assignment_id}/submissions",
                json=payload,
            )
        except CanvasError as err:
            raise err.with_context("Failed to submit assignment") from err

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def get_files(self, course_id: Optional[int] = None) -> List[Dict[str, Any]]:
        path = f"courses/{course_id}/files" if course_id is not None else "users/self/files"
        return self._get(path, {"per_page": 50})

    def upload_file(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        course_id: Optional[int] = None,
        assignment_id: Optional[int] = None,
        parent_folder_path: Optional[str] = None,
    ) -> JSONBody:
        """Upload *data* as file *name* and return the Canvas file record.

        With *course_id* and *assignment_id* the file is attached to the
        caller's submission for that assignment; with *course_id* alone it
        goes to the course files; otherwise to the user's own files.
        """
        if course_id is not None and assignment_id is not None:
            path = f"courses/{course_id}/assignments/{assignment_id}/submissions/self/files"
        elif course_id is not None:
            path = f"courses/{course_id}/files"
        else:
            path = "users/self/files"

        params: Dict[str, Any] = {"name": name, "size": len(data), "content_type": content_type}
        if parent_folder_path:
            params["parent_folder_path"] = parent_folder_path

        try:
            ticket = self._request("POST", path, json=params)
            upload_url = ticket["upload_url"]
            upload_params = ticket.get("upload_params") or {}
        except CanvasError as err:
            raise err.with_context("Failed to upload file") from err
        except (KeyError, TypeError) as exc:
            raise RemoteError("Failed to upload file: Canvas returned no upload URL") from exc

        logger.debug("POST %s (direct upload of %s, %d bytes)", upload_url, name, len(data))
        try:
            # the one-time upload URL is pre-authorised; no bearer header
            response = self.session.post(
                upload_url,
                data=upload_params,
                files={"file": (name, data, content_type)},
                timeout=REQUEST_TIMEOUT,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            raise error_from_exception(exc).with_context("Failed to upload file") from exc

        if response.status_code == 201:
            return self._body(response)
        location = response.headers.get("Location")
        if location:
            try:
                return self._get(location)
            except CanvasError as err:
                raise err.with_context("Failed to upload file") from err
        if not response.ok:
            raise error_from_response(response).with_context("Failed to upload file")
        return self._body(response)

    # ------------------------------------------------------------------
    # Announcements, discussions, modules, activity
    # ------------------------------------------------------------------
    def get_announcements(self, context_codes: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"active_only": "true"}
        codes = list(context_codes or [])
        if codes:
            params["context_codes[]"] = codes
        return self._get_list("announcements", params)

    def get_discussion_topics(self, course_id: int) -> List[Dict[str, Any]]:
        return self._get_list(
            f"courses/{course_id}/discussion_topics",
            {"order_by": "recent_activity", "include[]": ["all_dates", "sections", "user"]},
        )

    def post_discussion_entry(self, course_id: int, topic_id: int, message: str) -> JSONBody:
        return self._request(
            "POST",
            f"courses/{course_id}/discussion_topics/{topic_id}/entries",
            json={"message": message},
        )

    def get_modules(self, course_id: int) -> List[Dict[str, Any]]:
        return self._get_list(
            f"courses/{course_id}/modules",
            {"include[]": ["items", "content_details"]},
        )

    def get_course_stream(self, course_id: int) -> List[Dict[str, Any]]:
        return self._get(f"courses/{course_id}/activity_stream")

    # ------------------------------------------------------------------
    # Grades
    # ------------------------------------------------------------------
    def get_grades(self, course_id: Optional[int] = None) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Grades object for one course, or one record per active course."""
        if course_id is not None:
            enrollments = self._get(
                f"courses/{course_id}/enrollments",
                {
                    "user_id": "self",
                    "include[]": ["grades", "computed_current_score", "computed_final_score"],
                },
            )
            if enrollments and isinstance(enrollments, list):
                return enrollments[0].get("grades") or {}
            return {}

        def fetch(course: Dict[str, Any]) -> List[Dict[str, Any]]:
            grades = self.get_grades(course["id"])
            return [{"course_name": course.get("name"), "course_id": course.get("id"), **grades}]

        merged, _ = self._collect_per_course(fetch, "grades")
        return merged

    # ------------------------------------------------------------------
    # To-dos, planner, conversations
    # ------------------------------------------------------------------
    def get_todos(self) -> List[Dict[str, Any]]:
        return self._get("users/self/todo", {"include[]": ["ungraded_quizzes"]})

    def create_planner_note(
        self,
        title: str,
        details: Optional[str] = None,
        todo_date: Optional[DateLike] = None,
        course_id: Optional[int] = None,
    ) -> JSONBody:
        note: Dict[str, Any] = {"title": title}
        if details is not None:
            note["details"] = details
        if todo_date is not None:
            note["todo_date"] = to_query_date(todo_date)
        if course_id is not None:
            note["course_id"] = course_id
        return self._request("POST", "planner_notes", json=note)

    def update_planner_note(self, note_id: int, **fields: Any) -> JSONBody:
        if fields.get("todo_date") is not None:
            fields["todo_date"] = to_query_date(fields["todo_date"])
        return self._request("PUT", f"planner_notes/{note_id}", json=fields)

    def delete_planner_note(self, note_id: int) -> JSONBody:
        return self._request("DELETE", f"planner_notes/{note_id}")

    def create_todo_override(
        self, plannable_type: str, plannable_id: int, marked_complete: bool = True
    ) -> JSONBody:
        """Mark a to-do item (assignment, quiz, planner note...) complete or not."""
        return self._request(
            "POST",
            "planner/overrides",
            json={
                "plannable_type": plannable_type,
                "plannable_id": plannable_id,
                "marked_complete": marked_complete,
            },
        )

    def update_todo_override(
        self,
        override_id: int,
        marked_complete: Optional[bool] = None,
        dismissed: Optional[bool] = None,
    ) -> JSONBody:
        fields: Dict[str, Any] = {}
        if marked_complete is not None:
            fields["marked_complete"] = marked_complete
        if dismissed is not None:
            fields["dismissed"] = dismissed
        return self._request("PUT", f"planner/overrides/{override_id}", json=fields)

    def delete_todo_override(self, override_id: int) -> JSONBody:
        return self._request("DELETE", f"planner/overrides/{override_id}")

    def get_conversations(self, scope: Optional[str] = "unread") -> List[Dict[str, Any]]:
        params = {"scope": scope} if scope else None
        return self._get_list("conversations", params)

    def send_message(
        self,
        recipients: Iterable[Union[str, int]],
        subject: str,
        body: str,
        context_code: Optional[str] = None,
    ) -> JSONBody:
        payload: Dict[str, Any] = {
            "recipients": [str(r) for r in recipients],
            "subject": subject,
            "body": body,
        }
        if context_code:
            payload["context_code"] = context_code
        return self._request("POST", "conversations", json=payload)

    def reply_to_conversation(self, conversation_id: int, body: str) -> JSONBody:
        return self._request(
            "POST", f"conversations/{conversation_id}/add_message", json={"body": body}
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------
    def _collect_per_course(
        self,
        fetch: Callable[[Dict[str, Any]], List[Dict[str, Any]]],
        what: str,
    ) -> Tuple[List[Dict[str, Any]], List[Tuple[Dict[str, Any], CanvasError]]]:
        """Run *fetch* for every active course, one at a time.

        Returns the merged successes and a list of ``(course, error)`` for
        the courses that failed. A failing course is logged and skipped.
        """
        results: List[Dict[str, Any]] = []
        failures: List[Tuple[Dict[str, Any], CanvasError]] = []
        for course in self.get_courses():
            try:
                results.extend(fetch(course))
            except CanvasError as err:
                logger.warning(
                    "Could not fetch %s for %s: %s", what, course.get("name", course.get("id")), err
                )
                failures.append((course, err))
        return results, failures


def sort_by_due_date(assignments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order by ``due_at`` ascending; assignments with no due date go last. Stable."""

    def key(a: Dict[str, Any]) -> Tuple[int, float]:
        due = parse_timestamp(a.get("due_at"))
        if due is None:
            return (1, 0.0)
        return (0, due.timestamp())

    return sorted(assignments, key=key)
