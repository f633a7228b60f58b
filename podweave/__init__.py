"""
Podweave - Real-time aggregated Kubernetes log streaming.

Podweave multiplexes the logs of every pod matched by a label selector into a
single live stream, and provides a consumer that turns that stream into an
ordered, bounded, pausable view.

Key Features:
- One websocket per selector, fanning in logs from every matching pod
- Stable per-pod colors for legends and line prefixes
- Bounded display buffer with oldest-first eviction
- Pause/resume without losing the most recent lines
- Server-reported errors surfaced separately from log content

Example:
    Start the stream server:
    ```bash
    podweave serve
    ```

    Tail every pod labelled app=web in prod:
    ```bash
    podweave tail --selector app=web --namespace prod
    ```
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
