# src/client/render.py
"""
Отрисовка состояния зрителя в HTML-фрагменты.
Чистые функции: состояние на входе, разметка на выходе.
"""

from __future__ import annotations

from html import escape

from src.client.session_view import AmbulanceView

AT_DISPENSARY_HTML = '<div class="status-at-dispensary">AT DISPENSARY</div>'
EN_ROUTE_HTML = '<div class="status-en-route">EN ROUTE</div>'


def render_status(view: AmbulanceView) -> str:
    return AT_DISPENSARY_HTML if view.is_at_dispensary else EN_ROUTE_HTML


def render_count_control(online_count: int, at_dispensary_count: int) -> str:
    """Счётчик скорых в сети и у диспансера."""
    return (
        f"<div><strong>Ambulances Online:</strong> {online_count}</div>"
        f"<div><strong>At Dispensary:</strong> {at_dispensary_count}</div>"
    )


def render_route_summary(view: AmbulanceView) -> str:
    """Итог маршрута одной скорой; до первого ответа роутинга нули."""
    distance_km = view.distance_km or 0.0
    time_minutes = view.time_minutes or 0.0
    return (
        f"<div><strong>Ambulance {view.number}</strong></div>"
        f"{render_status(view)}"
        f"<div><strong>Road Distance:</strong> {distance_km:.2f} km</div>"
        f"<div><strong>Est. Travel Time:</strong> {time_minutes:.0f} min</div>"
    )


def render_popup(view: AmbulanceView) -> str:
    """Всплывающая подпись маркера."""
    html = f"<strong>Ambulance {view.number}</strong><br>{render_status(view)}"
    if view.distance_km is not None and view.time_minutes is not None:
        html += (
            f"<br><strong>Road distance:</strong> {view.distance_km:.2f} km"
            f"<br><strong>Est. travel time:</strong> {view.time_minutes:.0f} min"
        )
    html += f"<br><small>{escape(str(view.device_type))} · battery {escape(str(view.battery_level))}</small>"
    return html
