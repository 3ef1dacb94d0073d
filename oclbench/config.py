# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Harness configuration.

All run parameters live in HarnessConfig and are passed explicitly to every
component, so tests can run the full pipeline with a small element count.

Environment overrides (read by HarnessConfig.from_env):
    OCLBENCH_N, OCLBENCH_ITERATIONS, OCLBENCH_LOCAL_SIZE, OCLBENCH_SEED,
    OCLBENCH_KERNEL_PATH, OCLBENCH_SYNC_POLICY
"""

import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

PACKAGE_DIR = Path(__file__).parent
DEFAULT_KERNEL_PATH = PACKAGE_DIR / "kernels" / "aplusb.cl"
DEFAULT_KERNEL_NAME = "aplusb"

DEFAULT_N = 100 * 1000 * 1000
DEFAULT_ITERATIONS = 20
DEFAULT_LOCAL_SIZE = 128

FLOAT_SIZE = 4


class SyncPolicy(Enum):
    """How the dispatcher waits for kernel completions."""

    # Wait for each dispatch before submitting the next
    BLOCKING = "blocking"
    # Submit every dispatch, then wait for all of them
    BATCHED = "batched"


@dataclass(frozen=True)
class HarnessConfig:
    """
    Parameters of one benchmark run.

    Attributes:
        n: Number of float32 elements per vector
        iterations: Timed repetitions for kernel and transfer benchmarks
        local_size: Work-group size; global size is rounded up to a multiple
        seed: Input generator seed (defaults to n)
        kernel_path: Location of the kernel source resource
        kernel_name: Entry point inside the kernel program
        build_options: Compiler options passed to the program build
        sync_policy: Dispatch synchronization policy
        profiling: Create the queue with profiling enabled and report
            device-side event durations
    """

    n: int = DEFAULT_N
    iterations: int = DEFAULT_ITERATIONS
    local_size: int = DEFAULT_LOCAL_SIZE
    seed: Optional[int] = None
    kernel_path: Path = DEFAULT_KERNEL_PATH
    kernel_name: str = DEFAULT_KERNEL_NAME
    build_options: tuple[str, ...] = field(default_factory=tuple)
    sync_policy: SyncPolicy = SyncPolicy.BLOCKING
    profiling: bool = False

    def __post_init__(self):
        if self.n <= 0 or self.n > 0xFFFFFFFF:
            raise ConfigurationError(
                "element count must be in [1, 2^32)", "n", str(self.n)
            )
        if self.iterations <= 0:
            raise ConfigurationError(
                "iterations must be positive", "iterations", str(self.iterations)
            )
        if self.local_size <= 0:
            raise ConfigurationError(
                "local size must be positive", "local_size", str(self.local_size)
            )
        if not self.kernel_name:
            raise ConfigurationError("kernel name must not be empty", "kernel_name")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "kernel_path", Path(self.kernel_path))
        object.__setattr__(self, "build_options", tuple(self.build_options))
        if not isinstance(self.sync_policy, SyncPolicy):
            object.__setattr__(self, "sync_policy", _parse_sync_policy(self.sync_policy))

    @property
    def effective_seed(self) -> int:
        return self.n if self.seed is None else self.seed

    @property
    def buffer_size_bytes(self) -> int:
        return self.n * FLOAT_SIZE

    def with_overrides(self, **overrides) -> "HarnessConfig":
        """Return a copy with the non-None overrides applied."""
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **updates)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "HarnessConfig":
        """
        Build a config from OCLBENCH_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values = {}

        for key, name in (
            ("n", "OCLBENCH_N"),
            ("iterations", "OCLBENCH_ITERATIONS"),
            ("local_size", "OCLBENCH_LOCAL_SIZE"),
            ("seed", "OCLBENCH_SEED"),
        ):
            raw = env.get(name)
            if raw is not None:
                try:
                    values[key] = int(raw)
                except ValueError:
                    raise ConfigurationError(
                        f"{name} must be an integer", name, raw
                    ) from None

        if env.get("OCLBENCH_KERNEL_PATH"):
            values["kernel_path"] = Path(env["OCLBENCH_KERNEL_PATH"])
        if env.get("OCLBENCH_SYNC_POLICY"):
            values["sync_policy"] = _parse_sync_policy(env["OCLBENCH_SYNC_POLICY"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse_sync_policy(value) -> SyncPolicy:
    try:
        return SyncPolicy(str(value).lower())
    except ValueError:
        raise ConfigurationError(
            "sync policy must be 'blocking' or 'batched'", "sync_policy", str(value)
        ) from None
