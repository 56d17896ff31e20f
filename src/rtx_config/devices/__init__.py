"""Command executors for RTX routers."""
from .base import Executor, contains_error
from .offline import OfflineExecutor

__all__ = [
    "Executor",
    "contains_error",
    "OfflineExecutor",
]

# Executor type registry
EXECUTOR_TYPES = {
    "offline": OfflineExecutor,
}


def create_executor(device_id: str, config: dict) -> Executor:
    """Factory function to create executor instances."""
    executor_type = config.get("type", "").lower()
    if executor_type not in EXECUTOR_TYPES:
        raise ValueError(f"Unknown executor type: {executor_type}")

    if executor_type == "offline" and "config_file" in config:
        return OfflineExecutor.from_file(device_id, config["config_file"])
    return EXECUTOR_TYPES[executor_type](device_id, config.get("config_text", ""))
