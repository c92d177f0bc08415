"""Material definitions passed through unchanged by skin transfer."""

from dataclasses import dataclass


@dataclass
class Material:
    """Surface material properties of a garment or body mesh."""
    name: str = ""
    color: tuple[float, float, float] = (0.8, 0.8, 0.8)
    opacity: float = 1.0
    double_sided: bool = False
    transparent: bool = False
    texture_path: str | None = None
