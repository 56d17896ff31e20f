"""Base executor abstraction for RTX routers."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)

# RTX reports rejected commands on a line of its own
ERROR_LINE = re.compile(r"^\s*Error\s*:", re.MULTILINE)


def contains_error(output: str) -> Optional[str]:
    """Return the first error line in command output, if any."""
    match = ERROR_LINE.search(output or "")
    if not match:
        return None
    end = output.find("\n", match.start())
    return output[match.start():end if end != -1 else None].strip()


class Executor(ABC):
    """Abstract command executor for one router.

    Transport (SSH, telnet, serial) is the subclass's business. The engine
    only sends one command at a time and reads the output back.
    """

    def __init__(self, device_id: str):
        self.device_id = device_id
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Establish the session. Stateless executors need nothing."""
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    @abstractmethod
    async def execute(self, command: str) -> tuple[str, Optional[str]]:
        """Run one command.

        Returns:
            Tuple of (output, error). error is None when the transport
            succeeded; the output may still carry a device error line.
        """
        pass

    async def run(self, command: str) -> tuple[bool, str]:
        """Run a command and fold transport and device errors together.

        Returns:
            Tuple of (success, output or error message)
        """
        output, error = await self.execute(command)
        if error:
            return False, error
        device_error = contains_error(output)
        if device_error:
            return False, device_error
        return True, output

    # Context manager support
    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
