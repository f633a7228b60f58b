"""
Kubernetes client and API interactions for Podweave.

This module provides the interface between the Podweave stream server and the
Kubernetes API: client loading, pod selection by label selector and log
following. The Kubernetes client is blocking: one-shot calls run in the
default executor, log follows each get a thread of their own.

Key Components:
- KubeContext: Container for Kubernetes API clients
- load_kube: Initialize Kubernetes client with config loading
- list_selector_pods: List the pods a label selector matches
- stream_logs: Follow one container's log, one callback per line
- split_timestamp: Split the RFC3339 prefix Kubernetes adds to log lines

Example:
    ```python
    kube = await load_kube(kubeconfig=None, context=None)
    pods = await list_selector_pods(kube.core, "default", "app=web")
    ```
"""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from kubernetes import client, config

from .constants import DEFAULT_TAIL_LINES
from .logsetup import log_exception

log = logging.getLogger('podweave.kube')


class KubeContext:
    """
    Container for Kubernetes API clients.

    Attributes:
        core: CoreV1Api client for pod listing and log reads
    """

    def __init__(self, core: client.CoreV1Api):
        self.core = core


async def load_kube(kubeconfig: Optional[str], context: Optional[str]) -> KubeContext:
    """
    Load and initialize Kubernetes API clients.

    Uses the given kubeconfig and/or context when provided; otherwise tries
    the default kubeconfig and falls back to in-cluster configuration.

    Args:
        kubeconfig: Path to kubeconfig file (optional, uses default if None)
        context: Kubernetes context name (optional, uses current context if None)

    Returns:
        KubeContext: Initialized context with all API clients

    Raises:
        Exception: If Kubernetes configuration cannot be loaded
    """
    def _load():
        if kubeconfig or context:
            config.load_kube_config(config_file=kubeconfig, context=context)
        else:
            try:
                config.load_kube_config()
            except Exception:
                config.load_incluster_config()
        return client.CoreV1Api()
    loop = asyncio.get_running_loop()
    core = await loop.run_in_executor(None, _load)
    return KubeContext(core)


async def list_selector_pods(core: client.CoreV1Api, namespace: str, selector: str) -> List[client.V1Pod]:
    """
    List pods in a namespace matching a label selector.

    Args:
        core: CoreV1Api client for Kubernetes operations
        namespace: Namespace to search
        selector: Label selector expression, passed to the API unchanged

    Returns:
        List[V1Pod]: Matching pods in API order

    Raises:
        ApiException: If the API rejects the request (bad selector, RBAC, ...)
    """
    loop = asyncio.get_running_loop()
    def _list():
        return core.list_namespaced_pod(namespace=namespace, label_selector=selector)
    result = await loop.run_in_executor(None, _list)
    return list(result.items or [])


def split_timestamp(line: str) -> Tuple[Optional[str], str]:
    """
    Split a ``timestamps=true`` log line into (timestamp, message).

    Kubernetes prefixes each line with an RFC3339 timestamp and one space.
    Lines without that prefix come back unchanged with no timestamp.

    Example:
        ```python
        split_timestamp("2024-01-15T10:30:45.123456789Z started")
        # ("2024-01-15T10:30:45.123456789Z", "started")
        ```
    """
    if len(line) < 20 or line[4] != '-' or line[7] != '-' or line[10] != 'T':
        return None, line
    stamp, sep, message = line.partition(' ')
    if not sep:
        return stamp, ''
    return stamp, message


def iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """Reassemble a stream of byte chunks into decoded lines."""
    pending = b''
    for chunk in chunks:
        pending += chunk
        *lines, pending = pending.split(b'\n')
        for raw in lines:
            yield raw.decode('utf-8', 'replace').rstrip('\r')
    if pending:
        yield pending.decode('utf-8', 'replace').rstrip('\r')


def _close_response(resp) -> None:
    """Close a streaming log response so a read blocked on it returns."""
    for name in ('shutdown', 'close'):
        method = getattr(resp, name, None)
        if method is None:
            continue
        try:
            method()
        except Exception as e:
            log.debug(f"[kube] log response {name} failed: {e.__class__.__name__}: {e}")


async def stream_logs(
    core: client.CoreV1Api,
    namespace: str,
    pod: str,
    container: str,
    line_cb: Callable[[str], None],
    stop_event: threading.Event,
    tail_lines: int = DEFAULT_TAIL_LINES,
    timestamps: bool = True,
) -> None:
    """
    Follow a container's log in real time.

    Calls ``line_cb`` from a dedicated thread for every line until the log
    ends, the stop event is set, the task is cancelled or an error occurs.
    Follows stay off the default executor, so any number of pods can be
    followed at once. Cancelling the task closes the HTTP response, which
    releases a thread blocked waiting on a quiet pod.

    Errors are logged, not raised: one pod failing must not end the other
    pods' streams.

    Args:
        core: CoreV1Api client for Kubernetes operations
        namespace: Namespace containing the pod
        pod: Name of the pod
        container: Name of the container to stream logs from
        line_cb: Callback called (in the follower thread) for each log line
        stop_event: Threading event to signal when to stop streaming
        tail_lines: Lines of history to start from
        timestamps: Ask Kubernetes to prefix lines with RFC3339 timestamps
    """
    loop = asyncio.get_running_loop()
    done = loop.create_future()
    halt = threading.Event()
    responses = []
    where = f"{namespace}/{pod}/{container}"

    def _halted() -> bool:
        return stop_event.is_set() or halt.is_set()

    def _finish() -> None:
        if not done.done():
            done.set_result(None)

    def _stream():
        resp = None
        try:
            resp = core.read_namespaced_pod_log(
                name=pod, namespace=namespace, container=container, follow=True,
                tail_lines=tail_lines, timestamps=timestamps, _preload_content=False
            )
            responses.append(resp)
            if _halted():
                return
            for line in iter_lines(resp.stream()):  # type: ignore
                if _halted():
                    break
                line_cb(line)
        except Exception as e:
            if _halted():
                log.debug(f"[kube] log stream for {where} interrupted: {e.__class__.__name__}: {e}")
            else:
                log_exception(f"[kube] log stream for {where} failed", e, logger=log)
        finally:
            if resp is not None:
                try:
                    resp.release_conn()
                except Exception:
                    pass
            log.debug(f"[kube] log stream for {where} ended")
            try:
                loop.call_soon_threadsafe(_finish)
            except RuntimeError:
                log.debug(f"[kube] event loop gone before log stream for {where} ended")

    threading.Thread(target=_stream, name=f"podweave-log-{pod}", daemon=True).start()
    try:
        await done
    except asyncio.CancelledError:
        halt.set()
        for resp in list(responses):
            _close_response(resp)
        raise
