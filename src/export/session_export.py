"""
Session export as CSV or JSON.

The render functions are pure functions of a Session. Ids and timestamps
are generated values without commas, so CSV fields are written unquoted.
"""

from __future__ import annotations

import json

from models.session import Session, format_timestamp
from storage.repository import SessionRepository

CSV_HEADER = "Image ID,Count,Timestamp,Corrections"


def render_csv(session: Session) -> str:
    """
    Render a session as CSV.

    Layout: header row, one row per image in capture order, a blank line,
    then `Total Count:,<total>`. Every line ends with a newline.
    """
    lines = [CSV_HEADER]
    for img in session.images:
        lines.append(f"{img.id},{img.count},{format_timestamp(img.timestamp)},{img.corrections}")
    lines.append("")
    lines.append(f"Total Count:,{session.total_count}")
    return "\n".join(lines) + "\n"


def render_json(session: Session) -> str:
    """Render a session as indented JSON in its persisted form."""
    return json.dumps(session.to_dict(), indent=2)


class SessionExporter:
    """Looks sessions up in the repository and renders them."""

    def __init__(self, repository: SessionRepository):
        self.repository = repository

    def export_csv(self, session_id: str) -> str:
        return render_csv(self.repository.require_session(session_id))

    def export_json(self, session_id: str) -> str:
        return render_json(self.repository.require_session(session_id))
