"""Hypothesis profiles for the statebox property tests.

Examples that drive an event loop run it with `asyncio.run`, so per-example
deadlines are disabled. Set HYPO_SLOW=1 for the default example count.
"""

import os

from hypothesis import settings


def configure_hypo() -> None:
    settings.register_profile("fast", max_examples=10, deadline=None)
    settings.register_profile("slow", deadline=None)
    settings.load_profile("slow" if os.environ.get("HYPO_SLOW") == "1" else "fast")
