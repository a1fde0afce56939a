"""
Kubestern - Multi-pod Kubernetes log tailing.

Kubestern follows the logs of every pod whose name matches a regex pattern and
prints them to a single terminal stream, one colored line at a time. Pods that
appear or disappear while it runs (scaling, restarts, rollouts) are picked up
or dropped on the next discovery tick without restarting the tool.

Key Features:
- Pod discovery by regex across one or more namespaces
- Stable per-pod colors generated from configurable hue intervals
- Lines from different pods never mix, even under heavy concurrent output
- Include, exclude and replace filters applied to every line
- Optional JSON config file merged with command-line overrides

Example:
    Follow every running pod in the current namespace:
    ```bash
    kubestern
    ```

    Follow api pods in two namespaces, showing timestamps:
    ```bash
    kubestern --pod-search '^api-' --namespace prod --namespace staging --timestamps
    ```

    Only show errors, hiding health checks:
    ```bash
    kubestern --include 'ERROR' --exclude 'GET /healthz'
    ```
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
