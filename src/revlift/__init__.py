"""RevLift — reactive binary-to-IR lifting pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from revlift.version import __version__

if TYPE_CHECKING:
    from revlift.config.models import RevLiftConfig


@dataclass
class RevLiftContext:
    """Explicit initialization state shared by pipelines and CLI commands."""

    config: RevLiftConfig | None = None
    _supported_targets: list[str] = field(default_factory=list)
    _initialized: bool = False

    def ensure_config(self) -> RevLiftConfig:
        if self.config is None:
            from revlift.config.loader import load_config

            self.config = load_config()
        return self.config

    def ensure_initialized(self) -> list[str]:
        """Ask the decoder for the targets it can handle. Runs once."""
        if not self._initialized:
            from revlift.image.targets import detect_supported_targets

            self._supported_targets = detect_supported_targets()
            self._initialized = True
        return self._supported_targets

    @property
    def initialized(self) -> bool:
        return self._initialized


__all__ = ["RevLiftContext", "__version__"]
