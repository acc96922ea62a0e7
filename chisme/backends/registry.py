"""Registry mapping backend names to package manager classes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from chisme.core.errors import BackendError

if TYPE_CHECKING:
    from chisme.core.interfaces import CommandRunner, PackageManager

logger = structlog.get_logger(__name__)


class BackendRegistry:
    """Registry of available package manager backends."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._backends: dict[str, type[PackageManager]] = {}

    def register(self, name: str, backend_class: type[PackageManager]) -> None:
        """Register a backend class under a name.

        Args:
            name: Name used to select the backend (e.g. "apt").
            backend_class: Class taking a CommandRunner as first argument.
        """
        self._backends[name] = backend_class
        logger.debug("backend_registered", backend=name)

    def unregister(self, name: str) -> bool:
        """Unregister a backend by name.

        Returns:
            True if the backend was unregistered, False if not found.
        """
        if name in self._backends:
            del self._backends[name]
            logger.debug("backend_unregistered", backend=name)
            return True
        return False

    def create(self, name: str, runner: CommandRunner, **options: Any) -> PackageManager:
        """Create a backend instance bound to a runner.

        Args:
            name: Registered backend name.
            runner: Runner executing the backend commands.
            **options: Extra keyword arguments for the backend class.

        Raises:
            BackendError: If no backend is registered under ``name``.
        """
        backend_class = self._backends.get(name)
        if backend_class is None:
            raise BackendError(
                f"Unsupported package manager: {name} "
                f"(available: {', '.join(self.list_names()) or 'none'})"
            )
        return backend_class(runner, **options)

    def list_names(self) -> list[str]:
        """List all registered backend names."""
        return sorted(self._backends)


def register_builtin_backends(registry: BackendRegistry) -> None:
    """Register the backends shipped with chisme."""
    from chisme.backends.apt import AptBackend

    registry.register("apt", AptBackend)


def get_backend(name: str, runner: CommandRunner, **options: Any) -> PackageManager:
    """Create a built-in backend by name."""
    registry = BackendRegistry()
    register_builtin_backends(registry)
    return registry.create(name, runner, **options)


def available_backends() -> list[str]:
    """List the names of the built-in backends."""
    registry = BackendRegistry()
    register_builtin_backends(registry)
    return registry.list_names()
