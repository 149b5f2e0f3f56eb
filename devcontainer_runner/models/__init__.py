"""Models for the devcontainer runner."""

from .config import (
    ApplicationConfig,
    BuildSource,
    Command,
    ComposeSource,
    Hooks,
    ImageSource,
    MountSpec,
    PortConfig,
    PortMapping,
    ResolvedConfig,
)
from .devcontainer import DevcontainerDocument, UserSettingsDocument
from .lifecycle import DownResult, LifecycleState, StateKind, UpResult
from .plan import (
    ActivePortMapping,
    ContainerInfo,
    ContainerRef,
    ContainerSpec,
    ContainerStatus,
    ProvisionPlan,
)

__all__ = [
    'ApplicationConfig',
    'BuildSource',
    'Command',
    'ComposeSource',
    'Hooks',
    'ImageSource',
    'MountSpec',
    'PortConfig',
    'PortMapping',
    'ResolvedConfig',
    'DevcontainerDocument',
    'UserSettingsDocument',
    'DownResult',
    'LifecycleState',
    'StateKind',
    'UpResult',
    'ActivePortMapping',
    'ContainerInfo',
    'ContainerRef',
    'ContainerSpec',
    'ContainerStatus',
    'ProvisionPlan',
]
