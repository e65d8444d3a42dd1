"""
Reminder message rendering.
Turns decided reminders into the plain texts each channel sends.
"""
from datetime import datetime
from html import escape
from typing import List, Optional, Sequence

from pydantic import BaseModel

from lifeops.config import settings
from lifeops.models.reminders import DigestDecision, ReminderKind

SMS_TASK_LIMIT = 3


class ReminderItem(BaseModel):
    task_id: str
    title: str
    category: str
    due_date: datetime
    days_until_due: int
    kind: ReminderKind

    class Config:
        frozen = True


class ReminderMessage(BaseModel):
    subject: str
    text: str
    html: str
    sms_text: str
    push_text: str

    class Config:
        frozen = True


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def describe_due(days_until_due: int) -> str:
    if days_until_due < 0:
        return f"Overdue by {_plural(abs(days_until_due), 'day')}"
    if days_until_due == 0:
        return "Due today"
    if days_until_due == 1:
        return "Due tomorrow"
    return f"Due in {days_until_due} days"


def _short_due(days_until_due: int) -> str:
    if days_until_due < 0:
        return f"{abs(days_until_due)}d overdue"
    if days_until_due == 0:
        return "today"
    if days_until_due == 1:
        return "tomorrow"
    return f"in {days_until_due}d"


def _format_date(value: datetime) -> str:
    return value.strftime("%a, %b %d")


def render_sms(items: Sequence[ReminderItem], app_url: Optional[str] = None) -> str:
    dashboard = f"{app_url or settings.app_url}/dashboard"
    if len(items) == 1:
        item = items[0]
        return f'LifeOps: "{item.title}" is due {_short_due(item.days_until_due)}. View: {dashboard}'

    lines = [f"- {item.title} ({_short_due(item.days_until_due)})" for item in items[:SMS_TASK_LIMIT]]
    remaining = f"\n+{len(items) - SMS_TASK_LIMIT} more" if len(items) > SMS_TASK_LIMIT else ""
    task_list = "\n".join(lines)
    return f"LifeOps: You have {len(items)} tasks:\n{task_list}{remaining}\n\nView: {dashboard}"


def render_reminder(
    items: Sequence[ReminderItem],
    user_name: Optional[str] = None,
    app_url: Optional[str] = None,
) -> ReminderMessage:
    """Render one message covering every reminder due for a user in this tick."""
    if not items:
        raise ValueError("Cannot render a reminder without items")

    greeting = f"Hi {user_name or 'there'}, you have tasks that need attention:"
    any_overdue = any(item.kind is ReminderKind.OVERDUE for item in items)

    if len(items) == 1:
        item = items[0]
        subject = f'{"Overdue" if any_overdue else "Reminder"}: {item.title}'
    else:
        subject = f"{len(items)} tasks need your attention"

    text_lines: List[str] = [greeting, ""]
    rows: List[str] = []
    for item in items:
        due_label = describe_due(item.days_until_due)
        text_lines.append(f"- {item.title} ({item.category}): {_format_date(item.due_date)}, {due_label}")
        rows.append(
            "<tr>"
            f"<td><strong>{escape(item.title)}</strong><br><small>{escape(item.category)}</small></td>"
            f"<td>{_format_date(item.due_date)}<br>{escape(due_label)}</td>"
            "</tr>"
        )

    html = (
        "<html><body>"
        f"<p>{escape(greeting)}</p>"
        f"<table>{''.join(rows)}</table>"
        f'<p><a href="{escape(app_url or settings.app_url)}/dashboard">View dashboard</a></p>'
        "</body></html>"
    )

    if len(items) == 1:
        push_text = render_push_body(items[0])
    else:
        push_text = f"You have {len(items)} tasks that need attention"

    return ReminderMessage(
        subject=subject,
        text="\n".join(text_lines),
        html=html,
        sms_text=render_sms(items, app_url=app_url),
        push_text=push_text,
    )


def render_push_body(item: ReminderItem) -> str:
    days = item.days_until_due
    if days < 0:
        return f'"{item.title}" is {abs(days)} day(s) overdue'
    if days == 0:
        return f'"{item.title}" is due today'
    if days == 1:
        return f'"{item.title}" is due tomorrow'
    return f'"{item.title}" is due in {days} days'


def render_digest_body(digest: DigestDecision) -> str:
    if digest.overdue_count > 0:
        return f"You have {digest.overdue_count} overdue and {digest.upcoming_count} upcoming tasks"
    return f"You have {digest.upcoming_count} tasks due this week"
