"""Render PDFs with many engines and compare the results."""

from .backends import Backend, ExecutionMode
from .collector import collect
from .document import RenderedDocument, RenderedPage, RenderOptions
from .errors import (
    ExecutionError,
    ExecutionTimeoutError,
    InvalidInputError,
    NativeRenderError,
    OutputContractError,
    SessionConstructionError,
    SitroError,
)
from .renderer import Renderer, render


__all__ = [
    "Backend",
    "ExecutionError",
    "ExecutionMode",
    "ExecutionTimeoutError",
    "InvalidInputError",
    "NativeRenderError",
    "OutputContractError",
    "RenderOptions",
    "RenderedDocument",
    "RenderedPage",
    "Renderer",
    "SessionConstructionError",
    "SitroError",
    "collect",
    "render",
]
