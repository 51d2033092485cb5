"""Config — load codec and file-handling settings from YAML.

Only the behaviour around the codecs is tunable: what a missing map looks
like, which format new maps are saved in, and where XOR keys come from.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import yaml

from mirmap.grid.grid import BLANK_SIZE, MapFormat


@dataclass
class CodecConfig:
    """Settings for reading and writing map files.

    Attributes:
        blank_width: Width of the grid returned for a missing map file.
        blank_height: Height of the grid returned for a missing map file.
        save_format: ``MapFormat`` name (case-insensitive) used when a
            write does not name a format.
        fallback_to_native: Save in the native format when the requested
            format has no encoder.
        xor_seed: Seed for the XOR key generator of formats 1 and 4;
            None draws fresh entropy.
    """

    blank_width: int = BLANK_SIZE
    blank_height: int = BLANK_SIZE
    save_format: str = "native"
    fallback_to_native: bool = True
    xor_seed: int | None = None

    def map_format(self) -> MapFormat:
        """Resolve ``save_format`` to a ``MapFormat``.

        Raises:
            ValueError: If the name is not a known format.
        """
        try:
            return MapFormat[self.save_format.upper()]
        except KeyError:
            msg = f"unknown save_format {self.save_format!r}"
            raise ValueError(msg) from None

    def key_rng(self) -> np.random.Generator:
        """Return a generator for XOR keys, seeded with ``xor_seed``."""
        return np.random.default_rng(self.xor_seed)

    @classmethod
    def from_yaml(cls, path: str | Path) -> CodecConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated CodecConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        return cls(
            blank_width=data.get("blank_width", cls.blank_width),
            blank_height=data.get("blank_height", cls.blank_height),
            save_format=data.get("save_format", cls.save_format),
            fallback_to_native=data.get("fallback_to_native", cls.fallback_to_native),
            xor_seed=data.get("xor_seed", cls.xor_seed),
        )
