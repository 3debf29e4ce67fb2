"""Terminal front-end."""

from .app import GuidedSetupApp, UIState

__all__ = ["GuidedSetupApp", "UIState"]
