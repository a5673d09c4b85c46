from __future__ import annotations

import logging
import platform
from functools import lru_cache

from ctrldeck.app.controls.base import ControlAdapter, UnsupportedAdapter

logger = logging.getLogger(__name__)


def create_adapter(system: str | None = None) -> ControlAdapter:
    """Build the control adapter for ``system`` (defaults to the running OS)."""
    system = (system or platform.system()).strip()
    key = system.lower()
    if key == "linux":
        from ctrldeck.app.controls.linux import LinuxAdapter

        adapter: ControlAdapter = LinuxAdapter()
    elif key == "windows":
        from ctrldeck.app.controls.windows import WindowsAdapter

        adapter = WindowsAdapter()
    else:
        adapter = UnsupportedAdapter(system)
        logger.warning("No native controls for %s; volume, mic and brightness are unavailable", system)
    logger.info("Using %s control adapter", adapter.name)
    return adapter


@lru_cache
def get_adapter() -> ControlAdapter:
    """Return the process-wide adapter, chosen once on first use."""
    return create_adapter()
