import time
from abc import ABC, abstractmethod
from typing import Any

from actionplan.core.exceptions import AppError
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for pipeline services.

    ``execute`` checks the input, runs the service and turns anything that is
    not already an ``AppError`` into one, keeping the cause on
    ``original_error``.
    """

    def __init__(self):
        self.logger = LOGGER

    @property
    def name(self) -> str:
        return self.__class__.__name__

    async def execute(self, *args, **kwargs) -> Any:
        """Validate, then run.

        Raises:
            AppError: Domain errors unchanged, any other failure wrapped
        """
        started = time.perf_counter()
        try:
            self.validate(*args, **kwargs)
            result = await self.run(*args, **kwargs)
        except AppError:
            raise
        except Exception as e:
            self.logger.error(
                f"{self.name} failed: {e}",
                exc_info=True,
                extra={"service": self.name},
            )
            raise AppError(f"{self.name} failed: {e}", original_error=e) from e

        self.logger.debug(
            f"{self.name} finished",
            extra={"service": self.name, "elapsed_ms": round((time.perf_counter() - started) * 1000, 1)},
        )
        return result

    def validate(self, *args, **kwargs) -> None:
        """Reject input before any work is done. No-op by default."""

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Core service logic."""
