"""Exception hierarchy of the watchdog."""


class WatchdogError(Exception):
    """Base class for all watchdog errors."""


class ConfigError(WatchdogError):
    """The configuration file is missing, unreadable or invalid."""


class ContainerRuntimeError(WatchdogError):
    """A container runtime request failed."""


class MinerConfigError(WatchdogError):
    """The configuration read from a miner container cannot be parsed."""


class AlertBuildError(WatchdogError):
    """An alert event lacks the fields required to build a message."""


class ReloadError(WatchdogError):
    """A configuration reload could not be completed."""


class ChainQueryError(WatchdogError):
    """A chain query failed at a given stage.

    Args:
        stage: Name of the failing stage (e.g. ``miner_info``, ``reward``)
        message: Human readable description
    """

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


__all__ = [
    "AlertBuildError",
    "ChainQueryError",
    "ConfigError",
    "ContainerRuntimeError",
    "MinerConfigError",
    "ReloadError",
    "WatchdogError",
]
