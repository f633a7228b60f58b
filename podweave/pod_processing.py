"""
Pod selection utilities for the aggregated stream.

This module decides which of the pods matched by a selector appear in the
roster and which of them are actually followed.

Key Functions:
- pod_name: Name of a pod object
- first_container_name: Name of the pod's first declared container
- is_streamable: Whether a pod's log can be followed right now
- roster_names: Roster frame contents, in API order
- stream_targets: (pod, container) pairs to follow

The roster lists every matching pod; only running pods with at least one
container are followed, and only their first container. Pods are read with
getattr so partially populated objects (as returned for pending pods) never
raise.

Example:
    ```python
    pods = await list_selector_pods(kube.core, "default", "app=web")
    roster = roster_names(pods)
    for pod, container in stream_targets(pods):
        ...
    ```
"""

from typing import Any, List, Optional, Sequence, Tuple

from .constants import RUNNING_PHASE


def pod_name(p: Any) -> str:
    metadata = getattr(p, 'metadata', None)
    return getattr(metadata, 'name', None) or ''


def first_container_name(p: Any) -> Optional[str]:
    """Get the name of the first container in the pod spec, if any."""
    containers = getattr(getattr(p, 'spec', None), 'containers', None) or []
    if not containers:
        return None
    return getattr(containers[0], 'name', None) or None


def is_streamable(p: Any) -> bool:
    """A pod is followed only when running and declaring a container."""
    phase = getattr(getattr(p, 'status', None), 'phase', None)
    return phase == RUNNING_PHASE and first_container_name(p) is not None


def roster_names(pods: Sequence[Any]) -> List[str]:
    return [n for n in (pod_name(p) for p in pods) if n]


def stream_targets(pods: Sequence[Any]) -> List[Tuple[str, str]]:
    targets = []
    for p in pods:
        name = pod_name(p)
        if not name or not is_streamable(p):
            continue
        targets.append((name, first_container_name(p)))
    return targets
