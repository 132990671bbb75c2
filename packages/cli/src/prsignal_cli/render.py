from __future__ import annotations

from datetime import datetime

from prsignal_core.status import TrafficLight

_STATUS_STYLE = {
    TrafficLight.GREEN: ("green", "● green"),
    TrafficLight.YELLOW: ("yellow", "● yellow"),
    TrafficLight.RED: ("red", "● red"),
    TrafficLight.NONE: ("dim", "○ none"),
}


def status_label(status: TrafficLight) -> str:
    style, text = _STATUS_STYLE[status]
    return f"[{style}]{text}[/{style}]"


def hours(seconds: int | None) -> str:
    if seconds is None:
        return "—"
    return f"{seconds / 3600:.1f}h"


def timestamp(value: datetime | None) -> str:
    if value is None:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M")
