"""What the player draws for a given source, and the time label format."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .base import PlaybackState, ResolvedSource, STRATEGY_HLS

PLACEHOLDER_POSTER = "/placeholder.svg?height=720&width=1280"
IFRAME_SANDBOX = "allow-scripts allow-same-origin allow-presentation"


@dataclass(frozen=True)
class RenderPlan:
    element: str                      # "iframe" | "video"
    src: Optional[str]
    show_controls_overlay: bool
    show_spinner: bool
    show_play_overlay: bool
    source_type: Optional[str] = None   # <source type=...>; None for manifests and iframes
    poster: Optional[str] = None
    sandbox: Optional[str] = None
    download_url: Optional[str] = None

    def to_dict(self):
        return {
            "element": self.element,
            "src": self.src,
            "show_controls_overlay": self.show_controls_overlay,
            "show_spinner": self.show_spinner,
            "show_play_overlay": self.show_play_overlay,
            "source_type": self.source_type,
            "poster": self.poster,
            "sandbox": self.sandbox,
            "download_url": self.download_url,
        }


def plan_render(source: ResolvedSource, poster: str | None = None) -> RenderPlan:
    if source.is_embed:
        # The embed host draws its own player UI
        return RenderPlan(
            element="iframe",
            src=source.play_url,
            show_controls_overlay=False,
            show_spinner=False,
            show_play_overlay=False,
            sandbox=IFRAME_SANDBOX,
            download_url=source.download_url,
        )

    # Proxied loads are not instrumented for the spinner/overlay timing
    instrumented = not source.is_proxied
    return RenderPlan(
        element="video",
        src=source.play_url,
        show_controls_overlay=True,
        show_spinner=instrumented,
        show_play_overlay=instrumented,
        source_type=None if source.strategy == STRATEGY_HLS else "video/mp4",
        poster=poster or PLACEHOLDER_POSTER,
        download_url=source.download_url,
    )


def visible_overlays(plan: RenderPlan, state: PlaybackState) -> dict[str, bool]:
    return {
        "controls": plan.show_controls_overlay and state.show_controls,
        "spinner": plan.show_spinner and state.is_loading,
        "play_button": plan.show_play_overlay and not state.is_playing
                       and not state.is_loading and not state.error,
        "error": state.error is not None,
    }


def format_time(seconds: float) -> str:
    seconds = max(0, int(seconds or 0))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
