"""
Kubernetes client and API interactions for Kubestern.

This module provides the interface between Kubestern and the Kubernetes API.
It handles client loading, pod discovery and following log reads, and it is
the only module that sees Kubernetes client or urllib3 exceptions: they are
translated to DiscoveryError, StreamOpenError and StreamReadError here.

Key Components:
- KubeContext: Container for the Kubernetes API client
- load_kube: Initialize the Kubernetes client with config loading
- resolve_namespaces: Default to the namespace of the active context
- KubeInstanceSource: Lists running pods whose name matches a pattern
- KubeLogSource: Opens following log reads
- KubeLogRead: Line iterator over a following read, closable from any thread

The module supports both external kubeconfig files and in-cluster
configuration, with automatic fallback between the two.

Example:
    ```python
    kube = await load_kube(kubeconfig=None, context=None)
    pods = KubeInstanceSource(kube.core).list_instances(["default"], re.compile("^web-"))
    read = KubeLogSource(kube.core).open_following_read(pods[0], LogOptions(tail_lines=10))
    for line in read:
        print(line)
    ```
"""

from __future__ import annotations
import asyncio
import logging
import socket
from pathlib import Path
from typing import Iterator, List, Optional, Pattern, Sequence

import urllib3
from kubernetes import client, config
from kubernetes.client import ApiException

from .constants import (
    CONNECT_TIMEOUT_SECONDS, DEFAULT_NAMESPACE, DISCOVERY_TIMEOUT_SECONDS,
    INCLUSTER_NAMESPACE_FILE, RUNNING_PHASE
)
from .exceptions import DiscoveryError, KubernetesConnectionError, StreamOpenError, StreamReadError
from .models import InstanceKey, LogOptions

log = logging.getLogger('kubestern.kube')


class KubeContext:
    """
    Container for Kubernetes API clients.

    Attributes:
        core: CoreV1Api client for pod and log operations
        namespace: Namespace of the active context (or of the in-cluster service account)
    """

    def __init__(self, core: client.CoreV1Api, namespace: str = DEFAULT_NAMESPACE):
        self.core = core
        self.namespace = namespace


def _context_namespace(kubeconfig: Optional[str], context: Optional[str]) -> str:
    try:
        contexts, active = config.list_kube_config_contexts(config_file=kubeconfig)
    except Exception:
        return DEFAULT_NAMESPACE
    if context:
        active = next((c for c in contexts if c.get('name') == context), active)
    if not active:
        return DEFAULT_NAMESPACE
    return active.get('context', {}).get('namespace') or DEFAULT_NAMESPACE


def _incluster_namespace() -> str:
    try:
        return Path(INCLUSTER_NAMESPACE_FILE).read_text(encoding='utf-8').strip() or DEFAULT_NAMESPACE
    except OSError:
        return DEFAULT_NAMESPACE


async def load_kube(kubeconfig: Optional[str], context: Optional[str]) -> KubeContext:
    """
    Load and initialize the Kubernetes API client.

    Loads the kubeconfig file (or the default one), falling back to the
    in-cluster service account configuration when no kubeconfig is available.

    Args:
        kubeconfig: Path to kubeconfig file (optional, uses default if None)
        context: Kubernetes context name (optional, uses current context if None)

    Returns:
        KubeContext: Initialized context with the API client

    Raises:
        KubernetesConnectionError: If no configuration can be loaded
    """
    def _load():
        if kubeconfig or context:
            config.load_kube_config(config_file=kubeconfig, context=context)
            namespace = _context_namespace(kubeconfig, context)
        else:
            try:
                config.load_kube_config()
                namespace = _context_namespace(None, None)
            except Exception:
                config.load_incluster_config()
                namespace = _incluster_namespace()
        return client.CoreV1Api(), namespace

    loop = asyncio.get_event_loop()
    try:
        core, namespace = await loop.run_in_executor(None, _load)
    except Exception as e:
        raise KubernetesConnectionError(f"Failed to load Kubernetes configuration: {e}")
    return KubeContext(core, namespace)


def resolve_namespaces(namespaces: Sequence[str], kube: KubeContext) -> List[str]:
    """Return the configured namespaces, or the context namespace when none is configured."""
    resolved = list(dict.fromkeys(ns for ns in namespaces if ns))
    return resolved or [kube.namespace]


def _describe_api_error(e: ApiException) -> str:
    return f"{e.status} {e.reason}".strip()


def pod_instances(pod) -> List[InstanceKey]:
    """
    Build the instance keys of a pod.

    Single-container pods give one key without container name; multi-container
    pods give one key per container.
    """
    namespace = pod.metadata.namespace
    name = pod.metadata.name
    containers = [c.name for c in (getattr(pod.spec, 'containers', None) or [])]
    if len(containers) <= 1:
        return [InstanceKey(namespace, name)]
    return [InstanceKey(namespace, name, container) for container in containers]


def is_pod_running(pod) -> bool:
    status = getattr(pod, 'status', None)
    return status is not None and getattr(status, 'phase', None) == RUNNING_PHASE


class KubeInstanceSource:
    """Discovers running pods whose name matches a pattern."""

    def __init__(self, core: client.CoreV1Api, timeout: float = DISCOVERY_TIMEOUT_SECONDS):
        self.core = core
        self.timeout = timeout

    def list_instances(self, namespaces: Sequence[str], pattern: Pattern[str]) -> List[InstanceKey]:
        """
        List the instances matching ``pattern`` in every namespace.

        Raises:
            DiscoveryError: If any namespace can't be listed
        """
        instances: List[InstanceKey] = []
        for namespace in namespaces:
            try:
                pods = self.core.list_namespaced_pod(namespace=namespace, _request_timeout=self.timeout)
            except ApiException as e:
                raise DiscoveryError(f"failed to list pods in namespace {namespace}: {_describe_api_error(e)}")
            except (urllib3.exceptions.HTTPError, OSError) as e:
                raise DiscoveryError(f"failed to list pods in namespace {namespace}: {e}")
            for pod in pods.items or []:
                if not pattern.search(pod.metadata.name or ''):
                    continue
                if not is_pod_running(pod):
                    continue
                instances.extend(pod_instances(pod))
        return sorted(instances)


def _response_socket(resp) -> Optional[socket.socket]:
    for conn in (getattr(resp, 'connection', None), getattr(resp, '_connection', None)):
        sock = getattr(conn, 'sock', None)
        if sock is not None:
            return sock
    fp = getattr(getattr(resp, '_fp', None), 'fp', None)
    return getattr(getattr(fp, 'raw', None), '_sock', None)


class KubeLogRead:
    """
    Lazy, blocking iterator over the lines of a following log read.

    ``close`` may be called from another thread while iteration is blocked:
    it shuts the socket down, which makes the pending read return, and the
    iterator then ends quietly instead of raising.
    """

    def __init__(self, resp):
        self._resp = resp
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[str]:
        buffer = b''
        try:
            for chunk in self._resp.stream(decode_content=True):
                buffer += chunk
                while b'\n' in buffer:
                    line, buffer = buffer.split(b'\n', 1)
                    yield line.decode('utf-8', 'replace').rstrip('\r')
        except Exception as e:
            if self._closed:
                return
            raise StreamReadError(f"{e.__class__.__name__}: {e}") from e
        if buffer and not self._closed:
            yield buffer.decode('utf-8', 'replace').rstrip('\r')

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        sock = _response_socket(self._resp)
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        try:
            self._resp.close()
        finally:
            self._resp.release_conn()


class KubeLogSource:
    """Opens following log reads on pods."""

    def __init__(self, core: client.CoreV1Api, connect_timeout: float = CONNECT_TIMEOUT_SECONDS):
        self.core = core
        self.connect_timeout = connect_timeout

    def request_params(self, key: InstanceKey, options: LogOptions) -> dict:
        """Keyword arguments passed to ``read_namespaced_pod_log``."""
        params = {
            'name': key.name,
            'namespace': key.namespace,
            'follow': True,
            'previous': options.previous,
            'timestamps': options.timestamps,
            '_preload_content': False,
            '_request_timeout': (self.connect_timeout, None),
        }
        if key.container:
            params['container'] = key.container
        if options.since_seconds > 0:
            params['since_seconds'] = options.since_seconds
        if options.tail_lines > 0 or (options.tail_lines == 0 and options.since_seconds <= 0):
            params['tail_lines'] = options.tail_lines
        return params

    def open_following_read(self, key: InstanceKey, options: LogOptions) -> KubeLogRead:
        """
        Open a following log read on an instance.

        Raises:
            StreamOpenError: If the API refuses or the connection fails
        """
        try:
            resp = self.core.read_namespaced_pod_log(**self.request_params(key, options))
        except ApiException as e:
            raise StreamOpenError(_describe_api_error(e))
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StreamOpenError(str(e))
        log.debug(f"[kube] opened log stream for {key.identity()}")
        return KubeLogRead(resp)
