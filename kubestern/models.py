"""
Data models for Kubestern.

This module defines the data structures shared by the discovery loop, the
stream workers and the output writer.

Key Models:
- InstanceKey: Identity of one loggable source (namespace, pod, container)
- Color: Hue/saturation/lightness triple assigned to an instance
- FilterRules: Include, exclude and replace rules applied to every line
- LogOptions: Parameters of a following log read
- LogLine: One raw line read from an instance
- WorkerState: Lifecycle state of a stream worker
- TrackedInstance: Entry of the reconciliation loop's tracking table

InstanceKey, Color, FilterRules and LogOptions are frozen: they are shared
between threads and must never change once built.

Example:
    ```python
    key = InstanceKey(namespace="prod", name="api-7d9f5-x2x1z")
    color = Color(hue=210, saturation=100, lightness=50)
    print(key.label(), color.to_rgb())
    ```
"""

import colorsys
import enum
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True, order=True)
class InstanceKey:
    """
    Identity of one loggable source.

    Equality and hashing are defined by all three fields, so the same pod seen
    on two discovery ticks maps to the same key.

    Attributes:
        namespace: Kubernetes namespace of the pod
        name: Pod name
        container: Container name, only set for multi-container pods

    Example:
        ```python
        InstanceKey("prod", "api-1").label()                  # "api-1"
        InstanceKey("prod", "api-1", "sidecar").label(True)   # "prod/api-1/sidecar"
        ```
    """
    namespace: str
    name: str
    container: Optional[str] = None

    def label(self, with_namespace: bool = False) -> str:
        """Human-readable name printed in front of every line."""
        text = self.name
        if self.container:
            text = f"{text}/{self.container}"
        if with_namespace:
            text = f"{self.namespace}/{text}"
        return text

    def identity(self) -> str:
        """Stable string form used for hashing into the palette."""
        return f"{self.namespace}/{self.name}/{self.container or ''}"


@dataclass(frozen=True)
class Color:
    """
    Color as a hue/saturation/lightness triple.

    Attributes:
        hue: Hue angle in degrees (0-359)
        saturation: Saturation percentage (0-100)
        lightness: Lightness percentage (0-100)
    """
    hue: int
    saturation: int
    lightness: int

    def to_rgb(self) -> Tuple[int, int, int]:
        """Convert to an (r, g, b) tuple with 0-255 components."""
        r, g, b = colorsys.hls_to_rgb(self.hue / 360.0, self.lightness / 100.0, self.saturation / 100.0)
        return round(r * 255), round(g * 255), round(b * 255)

    def __str__(self) -> str:
        return f"{self.hue},{self.saturation},{self.lightness}"


@dataclass(frozen=True)
class FilterRules:
    """
    Per-line filter and replace rules.

    Attributes:
        include: Lines not matching this pattern are dropped
        exclude: Lines matching this pattern are dropped
        replace: Pattern substituted in surviving lines
        replacement: Replacement template, may use back-references like \\1 or \\g<name>
    """
    include: Optional[re.Pattern] = None
    exclude: Optional[re.Pattern] = None
    replace: Optional[re.Pattern] = None
    replacement: str = ""


@dataclass(frozen=True)
class LogOptions:
    """
    Parameters of a following log read.

    Attributes:
        previous: Read the previous terminated container instead of the current one
        since_seconds: Only return lines newer than this many seconds (0 = unset)
        tail_lines: Number of backlog lines to return (negative = whole log)
        timestamps: Ask the API to prefix every line with its timestamp
    """
    previous: bool = False
    since_seconds: int = 0
    tail_lines: int = 0
    timestamps: bool = False

    def for_reconnect(self) -> "LogOptions":
        """Options used when reopening a dropped read: new lines only."""
        return LogOptions(previous=False, since_seconds=0, tail_lines=0, timestamps=self.timestamps)


@dataclass
class LogLine:
    """
    One raw line read from an instance.

    Attributes:
        key: The instance the line was read from
        text: Line content without its trailing newline
        timestamp: RFC3339 timestamp sent by the API, when requested
    """
    key: InstanceKey
    text: str
    timestamp: Optional[str] = None


class WorkerState(str, enum.Enum):
    """Lifecycle state of a stream worker."""
    PENDING = "pending"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


@dataclass
class TrackedInstance:
    """
    Entry of the reconciliation loop's tracking table.

    Owned by the reconciliation loop only. The worker is referenced here so
    the loop can cancel it; the worker itself never sees this object.

    Attributes:
        key: Identity of the instance
        color: Color assigned when the instance was first tracked
        worker: The StreamWorker following this instance's logs
    """
    key: InstanceKey
    color: Color
    worker: Any = field(repr=False, default=None)

    @property
    def state(self) -> WorkerState:
        if self.worker is None:
            return WorkerState.PENDING
        return self.worker.state
