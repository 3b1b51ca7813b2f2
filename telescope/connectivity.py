"""
Network shaping through the sitespeed.io ``throttle`` command.

Throttling is applied to the whole host while it is active, so two runs
asking for different profiles at the same time will interfere.
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# kbit/s up and down, round trip time in ms
NETWORK_PROFILES: Dict[str, Dict[str, int]] = {
    "cable": {"up": 1000, "down": 5000, "rtt": 14},
    "dsl": {"up": 384, "down": 1500, "rtt": 14},
    "4g": {"up": 9000, "down": 9000, "rtt": 85},
    "3g": {"up": 768, "down": 1600, "rtt": 150},
    "3gfast": {"up": 768, "down": 1600, "rtt": 75},
    "3gslow": {"up": 400, "down": 400, "rtt": 200},
    "2g": {"up": 256, "down": 280, "rtt": 400},
    "fios": {"up": 5000, "down": 20000, "rtt": 2},
}

THROTTLE_BINARY = "throttle"


def _run_throttle_command(*args) -> Optional[str]:
    """Run the throttle CLI, returning stdout or None when it failed"""
    try:
        result = subprocess.run(
            [THROTTLE_BINARY, *args], capture_output=True, text=True, check=True
        )
        return result.stdout.strip()
    except FileNotFoundError:
        logger.error("throttling error: %r not found on PATH", THROTTLE_BINARY)
    except subprocess.CalledProcessError as e:
        logger.error("throttling error: %s", e.stderr.strip() if e.stderr else e)
    return None


def start_throttle(connection_type: Optional[str]) -> bool:
    """Apply the named profile. Returns True when throttling is active."""
    if not connection_type:
        logger.debug("No network throttling applied")
        return False

    profile = NETWORK_PROFILES[connection_type]
    start = time.perf_counter()
    ok = (
        _run_throttle_command(
            "--up",
            str(profile["up"]),
            "--down",
            str(profile["down"]),
            "--rtt",
            str(profile["rtt"]),
        )
        is not None
    )
    if ok:
        logger.info("Throttling successfully started (%s)", connection_type)
    logger.debug("Network Throttle: %.0fms", (time.perf_counter() - start) * 1000)
    return ok


def stop_throttle() -> bool:
    ok = _run_throttle_command("--stop") is not None
    if ok:
        logger.info("Throttling successfully stopped")
    return ok
