"""Notification copy for reward events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass
class RenderedTemplate:
    title: str
    body: str


def _clean(value: str | None, fallback: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return fallback


def render_geofence_entry(merchant_name: str | None, deal_titles: Sequence[str]) -> RenderedTemplate:
    merchant = _clean(merchant_name, "this location")
    title = f"Lucky Spins at {merchant}"
    if len(deal_titles) == 1:
        body = f"Try your luck at {merchant}! Spin to win: {_clean(deal_titles[0], 'an exclusive deal')}"
    else:
        body = f"Try your luck at {merchant}! Spin to win one of {len(deal_titles)} exclusive deals!"
    return RenderedTemplate(title=title, body=body)


def render_expiry_reminder(deal_title: str | None) -> RenderedTemplate:
    return RenderedTemplate(
        title="Deal Expiring Soon",
        body=f"Your {_clean(deal_title, 'reward')} deal is about to expire. Use it now!",
    )


def render_spin_win(deal_title: str | None, merchant_name: str | None) -> RenderedTemplate:
    return RenderedTemplate(
        title="Lucky Spin Winner!",
        body=(
            f"Congratulations! You won {_clean(deal_title, 'a deal')} at "
            f"{_clean(merchant_name, 'a PegPlug merchant')}. Tap to view your prize."
        ),
    )


def render_daily_spins(spins: int) -> RenderedTemplate:
    noun = "spins are" if spins > 1 else "spin is"
    return RenderedTemplate(
        title="Daily Spins Available!",
        body=f"Your {spins} daily {noun} now available! Visit any location to try your luck.",
    )


__all__ = [
    "RenderedTemplate",
    "render_daily_spins",
    "render_expiry_reminder",
    "render_geofence_entry",
    "render_spin_win",
]
