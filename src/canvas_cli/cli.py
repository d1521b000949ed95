"""CLI entry point for canvas_cli package."""
from __future__ import annotations

import functools
import json
import mimetypes
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from dateutil.relativedelta import relativedelta

from .client import CanvasClient
from .config import Settings, setup_logger
from .credentials import CredentialStore
from .errors import CanvasError
from .status import FILTERS, classify, filter_assignments, group_by_course, letter_grade
from .utils import parse_timestamp, strip_html, truncate

CALENDAR_VIEWS = ("today", "week", "month", "upcoming", "all")


class State:
    """Per-invocation settings and the lazily built client."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = CredentialStore(settings.config_dir)
        self._client: Optional[CanvasClient] = None

    def client(self) -> CanvasClient:
        if self._client is None:
            if self.settings.has_credentials:
                self._client = CanvasClient(self.settings.token, self.settings.domain)
            else:
                saved = self.store.load()
                if saved is None:
                    raise click.ClickException(
                        "No Canvas credentials found. Run 'canvas-cli login' "
                        "or set CANVAS_DOMAIN and CANVAS_API_TOKEN."
                    )
                self._client = CanvasClient(saved.token, saved.domain)
        return self._client


pass_state = click.make_pass_decorator(State)


def canvas_errors(f):
    """Report Canvas failures as a one-line error and exit status 1."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except CanvasError as err:
            raise click.ClickException(err.message) from err

    return wrapper


def json_option(f):
    return click.option("--json", "as_json", is_flag=True, help="Print raw JSON records.")(f)


def _dump(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _fmt_when(value: Optional[str], with_time: bool = True) -> str:
    dt = parse_timestamp(value)
    if dt is None:
        return "No due date"
    dt = dt.astimezone()
    return dt.strftime("%b %d %H:%M" if with_time else "%b %d")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log requests to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Canvas LMS command-line tool."""
    settings = Settings.from_env()
    setup_logger("DEBUG" if verbose else settings.log_level)
    ctx.obj = State(settings)


@main.command("login")
@click.option("--domain", help="Canvas domain, e.g. canvas.instructure.com")
@click.option("--token", help="Canvas API token (prompted for if omitted).")
@click.option("--save/--no-save", default=True, show_default=True, help="Save credentials for future use.")
@pass_state
@canvas_errors
def login_cmd(state: State, domain: Optional[str], token: Optional[str], save: bool) -> None:
    """Authenticate against Canvas and optionally save the credential."""
    domain = domain or click.prompt("Canvas Domain (e.g., canvas.instructure.com)")
    token = token or click.prompt("Canvas API Token", hide_input=True)
    client = CanvasClient(token, domain)
    user = client.get_current_user()
    click.echo(f"Authenticated as {user.get('name', 'unknown user')}")
    if save:
        state.store.store(token, client.domain)
        click.echo(f"Credentials saved to {state.store.path}")


@main.command("logout")
@pass_state
def logout_cmd(state: State) -> None:
    """Remove the saved credential."""
    if not state.store.exists():
        click.echo("No saved credentials.")
        return
    state.store.clear()
    click.echo("Credentials cleared")


@main.command("whoami")
@json_option
@pass_state
@canvas_errors
def whoami_cmd(state: State, as_json: bool) -> None:
    """Show the authenticated user."""
    user = state.client().get_current_user()
    if as_json:
        _dump(user)
        return
    click.echo(f"{user.get('name')} ({user.get('login_id') or user.get('id')})")


@main.command("courses")
@click.option("--state", "enrollment_state", default="active", show_default=True,
              help="Enrollment state to list.")
@click.option("--search", "query", help="Only courses whose name or code contains this.")
@json_option
@pass_state
@canvas_errors
def courses_cmd(state: State, enrollment_state: str, query: Optional[str], as_json: bool) -> None:
    """List your courses."""
    client = state.client()
    courses = client.search_courses(query) if query else client.get_courses(enrollment_state)
    if as_json:
        _dump(courses)
        return
    for c in courses:
        term = (c.get("term") or {}).get("name")
        line = f"{str(c.get('id') or ''):>8}  {c.get('course_code', '')}  {c.get('name', '')}"
        click.echo(f"{line}  [{term}]" if term else line)
    click.echo(f"\nTotal: {len(courses)}")


@main.command("assignments")
@click.option("--course", "course_id", type=int, help="Limit to one course id.")
@click.option("--filter", "filter_name", type=click.Choice(FILTERS), default="all", show_default=True)
@json_option
@pass_state
@canvas_errors
def assignments_cmd(state: State, course_id: Optional[int], filter_name: str, as_json: bool) -> None:
    """List assignments, across all active courses by default."""
    assignments = filter_assignments(state.client().get_assignments(course_id), filter_name)
    if as_json:
        _dump(assignments)
        return
    if not assignments:
        click.echo("No assignments found")
        return
    for course_name, items in group_by_course(assignments).items():
        click.echo(f"\n{course_name}")
        click.echo("-" * 40)
        for a in items:
            click.echo(f"  {classify(a).icon} {a.get('name')}")
            details: List[str] = []
            if a.get("due_at"):
                details.append(f"Due: {_fmt_when(a['due_at'])}")
            points = a.get("points_possible")
            if points:
                details.append(f"Points: {points}")
            score = (a.get("submission") or {}).get("score")
            if score is not None and points:
                details.append(f"Score: {score}/{points} ({score / points * 100:.1f}%)")
            if details:
                click.echo(f"     {' | '.join(details)}")


@main.command("assignment")
@click.argument("course_id", type=int)
@click.argument("assignment_id", type=int)
@json_option
@pass_state
@canvas_errors
def assignment_cmd(state: State, course_id: int, assignment_id: int, as_json: bool) -> None:
    """Show one assignment with its submission."""
    a = state.client().get_assignment(course_id, assignment_id)
    if as_json:
        _dump(a)
        return
    click.echo(a.get("name"))
    if a.get("due_at"):
        click.echo(f"  Due: {_fmt_when(a['due_at'])}")
    if a.get("points_possible"):
        click.echo(f"  Points: {a['points_possible']}")
    if a.get("submission_types"):
        click.echo(f"  Submission Types: {', '.join(a['submission_types'])}")
    click.echo(f"  Status: {classify(a).value.replace('_', ' ')}")
    sub = a.get("submission") or {}
    if sub.get("grade"):
        click.echo(f"  Grade: {sub['grade']}")
    desc = strip_html(a.get("description"))
    if desc:
        click.echo(f"\n  {truncate(desc)}")
    if a.get("html_url"):
        click.echo(f"\n  URL: {a['html_url']}")


@main.command("grades")
@click.option("--course", "course_id", type=int, help="Limit to one course id.")
@json_option
@pass_state
@canvas_errors
def grades_cmd(state: State, course_id: Optional[int], as_json: bool) -> None:
    """Show current and final scores."""
    grades = state.client().get_grades(course_id)
    if as_json:
        _dump(grades)
        return
    records: List[Dict[str, Any]] = [grades] if isinstance(grades, dict) else grades
    if not records or records == [{}]:
        click.echo("No grades found")
        return
    for g in records:
        if g.get("course_name"):
            click.echo(f"\n{g['course_name']}")
        parts = []
        for label, key in (("Current", "current_score"), ("Final", "final_score")):
            score = g.get(key)
            if score is not None:
                letter = g.get(key.replace("score", "grade")) or letter_grade(float(score))
                parts.append(f"{label}: {score}% ({letter})")
        click.echo(f"  {' | '.join(parts)}" if parts else "  No grade data available")


def _calendar_window(view: str, now: datetime):
    start = datetime.combine(now.date(), time.min).astimezone()
    if view == "today":
        return start, start + timedelta(days=1)
    if view == "week":
        return start, start + timedelta(days=7)
    return start, start + relativedelta(months=1)


@main.command("calendar")
@click.option("--view", type=click.Choice(CALENDAR_VIEWS), default="week", show_default=True)
@json_option
@pass_state
@canvas_errors
def calendar_cmd(state: State, view: str, as_json: bool) -> None:
    """List calendar events."""
    client = state.client()
    if view == "upcoming":
        events = client.get_upcoming_events()
    elif view == "all":
        events = client.get_calendar_events()
    else:
        start, end = _calendar_window(view, datetime.now())
        events = client.get_calendar_events(start, end)
    if as_json:
        _dump(events)
        return
    if not events:
        click.echo("No events found for this period")
        return

    def when(e: Dict[str, Any]) -> float:
        dt = parse_timestamp(e.get("start_at") or e.get("all_day_date"))
        return dt.timestamp() if dt else 0.0

    for e in sorted(events, key=when):
        if e.get("all_day"):
            stamp = f"{_fmt_when(e.get('all_day_date') or e.get('start_at'), with_time=False)} All Day"
        else:
            stamp = _fmt_when(e.get("start_at"))
        kind = "[assignment] " if e.get("assignment") or e.get("type") == "assignment" else ""
        click.echo(f"{stamp:<18} {kind}{e.get('title')}")
        if e.get("location_name"):
            click.echo(f"{'':<18} @ {e['location_name']}")


@main.command("announcements")
@click.option("--course", "course_id", type=int, help="Limit to one course id.")
@click.option("--limit", default=10, show_default=True, help="Maximum announcements to show.")
@json_option
@pass_state
@canvas_errors
def announcements_cmd(state: State, course_id: Optional[int], limit: int, as_json: bool) -> None:
    """Recent course announcements."""
    client = state.client()
    if course_id is not None:
        codes = [f"course_{course_id}"]
    else:
        codes = [f"course_{c['id']}" for c in client.get_courses()]
    items = client.get_announcements(codes)[:limit]
    if as_json:
        _dump(items)
        return
    if not items:
        click.echo("No announcements found")
        return
    for ann in items:
        click.echo(f"\n{ann.get('title')}  ({_fmt_when(ann.get('posted_at'), with_time=False)})")
        author = (ann.get("author") or {}).get("display_name")
        if author:
            click.echo(f"  by {author}")
        msg = strip_html(ann.get("message"))
        if msg:
            click.echo(f"  {truncate(msg, 200)}")


@main.command("todo")
@json_option
@pass_state
@canvas_errors
def todo_cmd(state: State, as_json: bool) -> None:
    """Items Canvas lists as needing your attention."""
    todos = state.client().get_todos()
    if as_json:
        _dump(todos)
        return
    if not todos:
        click.echo("Nothing to do")
        return
    for t in todos:
        item = t.get("assignment") or t.get("quiz") or {}
        name = item.get("name") or item.get("title") or t.get("type")
        click.echo(f"- {name}  ({_fmt_when(item.get('due_at'))})")


@main.command("submit")
@click.argument("course_id", type=int)
@click.argument("assignment_id", type=int)
@click.option("--text", help="Submit a text entry.")
@click.option("--url", help="Submit a website URL.")
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Upload and submit a file.")
@click.option("--comment", help="Optional submission comment.")
@pass_state
@canvas_errors
def submit_cmd(
    state: State,
    course_id: int,
    assignment_id: int,
    text: Optional[str],
    url: Optional[str],
    file_path: Optional[Path],
    comment: Optional[str],
) -> None:
    """Submit an assignment as text, a URL, or an uploaded file."""
    chosen = [x for x in (text, url, file_path) if x is not None]
    if len(chosen) != 1:
        raise click.UsageError("Give exactly one of --text, --url or --file.")
    client = state.client()
    if text is not None:
        result = client.submit_assignment(course_id, assignment_id, "online_text_entry", body=text, comment=comment)
    elif url is not None:
        result = client.submit_assignment(course_id, assignment_id, "online_url", url=url, comment=comment)
    else:
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        uploaded = client.upload_file(
            file_path.name,
            file_path.read_bytes(),
            content_type,
            course_id=course_id,
            assignment_id=assignment_id,
        )
        click.echo(f"Uploaded {file_path.name}")
        result = client.submit_assignment(
            course_id, assignment_id, "online_upload", file_ids=[uploaded["id"]], comment=comment
        )
    state_name = result.get("workflow_state", "submitted") if isinstance(result, dict) else "submitted"
    click.echo(f"Submission recorded ({state_name})")


if __name__ == "__main__":
    main()
