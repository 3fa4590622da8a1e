from __future__ import annotations

from .settings_base import *  # noqa: F403

# Development defaults
DEBUG = env.bool("DEBUG", default=True)  # type: ignore[name-defined]  # noqa: F405

# 0 disables the checkout commit window.
CHECKOUT_COMMIT_TIMEOUT_SECONDS = env.float("CHECKOUT_COMMIT_TIMEOUT_SECONDS", default=0)  # type: ignore[name-defined]  # noqa: F405
