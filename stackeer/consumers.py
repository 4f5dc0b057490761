from __future__ import annotations

from typing import Any, Callable, Protocol


class Consumer(Protocol):
    """Receives the delivered payload: a decoded image or the response text."""

    def apply(self, payload: Any) -> None: ...


class CallbackConsumer:
    def __init__(self, callback: Callable[[Any], None]) -> None:
        self._callback = callback

    def apply(self, payload: Any) -> None:
        self._callback(payload)


class ImageSurfaceConsumer:
    """Assigns the decoded image to ``surface.image``."""

    def __init__(self, surface: Any) -> None:
        self.surface = surface

    def apply(self, payload: Any) -> None:
        self.surface.image = payload


class MaterialSurfaceConsumer:
    """Assigns the decoded image to ``material.main_texture``."""

    def __init__(self, material: Any) -> None:
        self.material = material

    def apply(self, payload: Any) -> None:
        self.material.main_texture = payload


__all__ = ["CallbackConsumer", "Consumer", "ImageSurfaceConsumer", "MaterialSurfaceConsumer"]
