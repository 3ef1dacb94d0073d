# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Owned runtime handles and scoped release.

OwnedHandle wraps an opaque runtime handle with explicit release and
move-only ownership. ResourceScope releases every handle it owns in reverse
acquisition order when the scope exits, on success or on error.
"""

import logging
from contextlib import ExitStack
from typing import Any, Optional

from .errors import ResourceReleaseError, runtime_call
from .runtime.base import ComputeRuntime

logger = logging.getLogger("oclbench.handles")


class OwnedHandle:
    """
    Exclusively owned runtime handle.

    Copying is refused; ``take()`` moves ownership into a new handle and
    leaves this one empty. ``release()`` is idempotent.

    Example:
        buf = OwnedHandle(runtime, raw_buffer, "buffer")
        moved = buf.take()      # buf is now empty
        moved.release()
    """

    def __init__(self, runtime: ComputeRuntime, raw: Any, kind: str):
        self._runtime = runtime
        self._raw = raw
        self.kind = kind

    @property
    def raw(self) -> Any:
        """The underlying runtime handle."""
        if self._raw is None:
            raise ValueError(f"{self.kind} handle is empty (released or moved)")
        return self._raw

    @property
    def is_empty(self) -> bool:
        return self._raw is None

    def take(self) -> "OwnedHandle":
        """Move ownership into a new OwnedHandle."""
        moved = OwnedHandle(self._runtime, self.raw, self.kind)
        self._raw = None
        return moved

    def release(self) -> None:
        if self._raw is None:
            return
        raw, self._raw = self._raw, None
        logger.debug(f"Releasing {self.kind}")
        with runtime_call(ResourceReleaseError, "clRelease"):
            self._runtime.release(raw)

    def __copy__(self):
        raise TypeError(f"{self.kind} handle cannot be copied; use take()")

    def __deepcopy__(self, memo):
        raise TypeError(f"{self.kind} handle cannot be copied; use take()")

    def __enter__(self) -> "OwnedHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        state = "empty" if self._raw is None else "owned"
        return f"<OwnedHandle({self.kind}, {state})>"


class ResourceScope:
    """
    Release owned handles in reverse acquisition order.

    Example:
        with ResourceScope() as scope:
            context = scope.adopt(executor.create_context(device))
            queue = scope.adopt(executor.create_queue(context, device))
        # queue released, then context
    """

    def __init__(self):
        self._stack = ExitStack()
        self._handles: list[OwnedHandle] = []

    def adopt(self, handle: OwnedHandle) -> OwnedHandle:
        """Take ownership of a handle; it is released when the scope closes."""
        owned = handle.take()
        self._handles.append(owned)
        self._stack.callback(owned.release)
        return owned

    @property
    def kinds(self) -> list[str]:
        """Kinds of handles currently owned, in acquisition order."""
        return [h.kind for h in self._handles if not h.is_empty]

    def close(self) -> None:
        self._stack.close()

    def __enter__(self) -> "ResourceScope":
        self._stack.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> Optional[bool]:
        return self._stack.__exit__(exc_type, exc_val, exc_tb)
