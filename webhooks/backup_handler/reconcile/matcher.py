"""
Environment attribution for reported snapshots.

The backup operator names each snapshot after the pod that produced it.
An environment owns two kinds of snapshots:
    - its primary workload, hostname equal to the environment name
    - its pre-backup hook pods, hostname "<environment>-<anything>-prebackuppod"

Anything else belongs to another environment, even when the names share
a prefix ("env1" does not own "env12").
"""

from __future__ import annotations

import re
from functools import lru_cache

PREBACKUP_POD_SUFFIX = "-prebackuppod"


@lru_cache(maxsize=1024)
def _pattern_for(environment_name: str) -> re.Pattern[str]:
    name = re.escape(environment_name)
    return re.compile(rf"{name}-.*{re.escape(PREBACKUP_POD_SUFFIX)}|{name}")


def matches(environment_name: str, hostname: str) -> bool:
    """Whether a snapshot hostname belongs to the environment.

    Args:
        environment_name: Environment (namespace) the webhook was sent for
        hostname: Hostname reported on the snapshot

    Returns:
        True for the environment itself or one of its pre-backup pods
    """
    return _pattern_for(environment_name).fullmatch(hostname) is not None
