"""
Camera permission gate.

Nothing touches the camera until the gate reports GRANTED, either right away
or through the continuation passed to check_and_request().
"""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger


class AuthorizationStatus(Enum):
    AUTHORIZED = "authorized"
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    RESTRICTED = "restricted"


class PermissionOutcome(Enum):
    GRANTED = auto()
    DENIED = auto()
    PENDING = auto()


class CameraAuthority(ABC):
    """Source of truth for whether this process may use the camera."""

    @abstractmethod
    def authorization_status(self) -> AuthorizationStatus:
        pass

    @abstractmethod
    def request_access(self, callback: Callable[[bool], None]) -> None:
        """Ask the user. `callback` is invoked once with the answer, later."""
        pass


class PromptAuthority(CameraAuthority):
    """
    Authority answered by the user through the web page.

    Answers live in memory only; a restart asks again unless an initial
    status is configured. A device node the process cannot open is reported
    as RESTRICTED regardless of the answer.
    """

    def __init__(
            self,
            initial_status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
            device_node: Optional[Path] = None,
    ):
        self._lock = threading.Lock()
        self._status = initial_status
        self._device_node = device_node
        self._pending: List[Callable[[bool], None]] = []

    def authorization_status(self) -> AuthorizationStatus:
        if self._device_node is not None and self._device_node.exists():
            if not os.access(self._device_node, os.R_OK | os.W_OK):
                return AuthorizationStatus.RESTRICTED
        with self._lock:
            return self._status

    def request_access(self, callback: Callable[[bool], None]) -> None:
        with self._lock:
            if self._status == AuthorizationStatus.NOT_DETERMINED:
                self._pending.append(callback)
                return
            granted = self._status == AuthorizationStatus.AUTHORIZED
        callback(granted)

    def is_prompting(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def respond(self, granted: bool) -> None:
        """Record the user's answer and resume every outstanding request."""
        with self._lock:
            if self._status != AuthorizationStatus.NOT_DETERMINED:
                return
            self._status = AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
            pending, self._pending = self._pending, []

        logger.info("Camera permission answered: {}", "granted" if granted else "denied")
        for callback in pending:
            callback(granted)


class PermissionGate:
    def __init__(self, authority: CameraAuthority):
        self.authority = authority

    def check_and_request(self, on_resolved: Callable[[bool], None]) -> PermissionOutcome:
        """
        Resolve camera authorization.

        GRANTED and DENIED are final and `on_resolved` is not called. PENDING
        means a prompt is showing and `on_resolved` fires once with the answer.
        """
        status = self.authority.authorization_status()

        if status == AuthorizationStatus.AUTHORIZED:
            return PermissionOutcome.GRANTED

        if status == AuthorizationStatus.NOT_DETERMINED:
            logger.info("Camera permission not determined, prompting")
            self.authority.request_access(on_resolved)
            return PermissionOutcome.PENDING

        logger.warning("Camera access denied ({}); capture unavailable", status.value)
        return PermissionOutcome.DENIED
