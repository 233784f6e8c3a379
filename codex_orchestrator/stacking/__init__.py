"""Stacking backends for linearizing task branches.

Only git-spice is supported. Backend selection and availability checks
are configuration concerns and happen before any stacking is attempted.
"""

from codex_orchestrator.errors import StackingError
from codex_orchestrator.stacking.base import StackingBackend
from codex_orchestrator.stacking.git_spice import GitSpiceBackend

SUPPORTED_BACKENDS = {"git-spice": GitSpiceBackend}


async def get_stacking_backend(name: str = "git-spice") -> StackingBackend:
    """Resolve and verify the configured stacking backend.

    Args:
        name: Backend name (case-insensitive)

    Returns:
        A backend whose CLI was detected

    Raises:
        StackingError: If the backend is unsupported or not installed
    """
    backend_name = (name or "git-spice").lower()
    backend_cls = SUPPORTED_BACKENDS.get(backend_name)
    if backend_cls is None:
        supported = ", ".join(sorted(SUPPORTED_BACKENDS))
        raise StackingError(
            f"Unsupported stacking backend: {backend_name}. Supported: {supported}"
        )

    backend = backend_cls()
    if not await backend.detect_backend():
        raise StackingError(
            f"{backend_name} backend not available. "
            "Install git-spice: https://github.com/abhinav/git-spice"
        )
    return backend


__all__ = [
    "GitSpiceBackend",
    "StackingBackend",
    "get_stacking_backend",
]
