from dockside.core.time.abc import Time
from dockside.core.time.real import RealTime

__all__ = ["RealTime", "Time"]
