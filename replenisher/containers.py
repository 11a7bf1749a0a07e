"""
Container capability and the transport boundary.

Defines:
- Container: the four operations every slot-based container offers
- Transport: presence checks and connection by name
- SafeContainer: the only place where TransportError is caught and turned
  into a DISCONNECTED result
- wrap_container(): validates presence and capability once, at the boundary
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from .errors import ErrorKind, Result, TransportError
from .models import ItemStack

R = TypeVar("R")

CONTAINER_METHODS = ("list", "size", "move", "peek")


class Container(ABC):
    """
    Slot-based storage reachable over the transport.

    Any method may raise TransportError when the underlying call fails.
    """

    @abstractmethod
    def list(self) -> Optional[dict[int, ItemStack]]:
        """Occupied slots, keyed by slot index."""

    @abstractmethod
    def size(self) -> int:
        """Number of slots."""

    @abstractmethod
    def move(self, target_name: str, slot: int, amount: int) -> int:
        """Move up to `amount` items from `slot` into `target_name`; returns items moved."""

    @abstractmethod
    def peek(self, slot: int) -> Optional[ItemStack]:
        """Contents of a single slot, or None when empty."""


class Transport(ABC):
    """The network the containers live on."""

    @abstractmethod
    def is_present(self, name: str) -> bool:
        """Whether a container with this name is currently reachable."""

    @abstractmethod
    def connect(self, name: str) -> Optional[Container]:
        """Return a handle for the named container, or None if absent."""


def has_container_capability(obj: object) -> bool:
    """True if `obj` exposes every container operation."""
    return all(callable(getattr(obj, method, None)) for method in CONTAINER_METHODS)


class SafeContainer:
    """
    Wraps a Container so that transport failures become Results.

    On a TransportError the handle is re-acquired through the transport and
    the operation retried once before giving up with DISCONNECTED.
    """

    def __init__(
        self,
        name: str,
        container: Container,
        transport: Transport,
        logger: logging.Logger | None = None,
    ):
        self._name = name
        self._container = container
        self._transport = transport
        self.logger = logger or logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self._name

    def is_connected(self) -> bool:
        """Presence check against the transport."""
        try:
            return self._transport.is_present(self._name)
        except TransportError:
            return False

    def _reconnect(self) -> bool:
        try:
            handle = self._transport.connect(self._name)
        except TransportError:
            return False
        if handle is None:
            return False
        self._container = handle
        self.logger.info("container reconnected: name=%s", self._name)
        return True

    def call(self, operation: Callable[[Container], R]) -> Result[R]:
        """
        Run `operation` against the container as one uninterrupted call.

        Returns DISCONNECTED if the transport fails, even after one reconnect.
        """
        try:
            return Result.success(operation(self._container))
        except TransportError as first_error:
            if self._reconnect():
                try:
                    return Result.success(operation(self._container))
                except TransportError:
                    pass
            self.logger.warning(
                "container operation failed: name=%s error=%s", self._name, first_error
            )
            return Result.failure(
                ErrorKind.DISCONNECTED,
                "Container is unreachable",
                name=self._name,
                error=str(first_error),
            )


def wrap_container(
    transport: Transport,
    name: str,
    logger: logging.Logger | None = None,
) -> Result[SafeContainer]:
    """
    Connect to a named container and validate its capability once.

    Returns:
        Result with a SafeContainer, or CONTAINER_MISSING / NOT_A_CONTAINER
    """
    log = logger or logging.getLogger(__name__)
    try:
        handle = transport.connect(name) if transport.is_present(name) else None
    except TransportError as e:
        return Result.failure(ErrorKind.DISCONNECTED, "Transport failed during connect", name=name, error=str(e))

    if handle is None:
        return Result.failure(ErrorKind.CONTAINER_MISSING, "Container not found on transport", name=name)

    if not has_container_capability(handle):
        return Result.failure(
            ErrorKind.NOT_A_CONTAINER,
            "Object does not provide container operations",
            name=name,
            type=type(handle).__name__,
        )

    log.debug("container validated: name=%s", name)
    return Result.success(SafeContainer(name, handle, transport, logger=log))
