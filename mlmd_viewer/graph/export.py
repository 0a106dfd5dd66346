# mlmd_viewer/graph/export.py
"""
Graph export: DOT text to image via Graphviz, with text fallback.

Two renderers share one interface:
- GraphvizRenderer: runs the `dot` executable as a subprocess
- TextRenderer: returns the DOT text unchanged

select_renderer() probes for the executable once per call. A Graphviz
failure at render time (spawn error, non-zero exit, timeout) also
degrades to text, so exporting never fails a request.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional, Union

from ..logging import get_logger
from ..settings import Settings, settings as default_settings

logger = get_logger(__name__)

MEDIA_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}


class RendererUnavailable(Exception):
    """Raised inside GraphvizRenderer when the layout tool cannot produce output."""
    pass


@dataclass(frozen=True)
class ImageOutput:
    data: bytes
    media_type: str


@dataclass(frozen=True)
class TextOutput:
    text: str


RenderedOutput = Union[ImageOutput, TextOutput]


class GraphRenderer:
    """Interface: turn DOT text into a rendered output. Must not raise."""

    def render(self, dot_text: str) -> RenderedOutput:
        raise NotImplementedError


class TextRenderer(GraphRenderer):
    """Pass-through renderer used when no layout tool is available."""

    def render(self, dot_text: str) -> RenderedOutput:
        return TextOutput(dot_text)


class GraphvizRenderer(GraphRenderer):
    """
    Renderer backed by the Graphviz `dot` executable.

    DOT goes to stdin, the image is read from stdout. The wait is
    bounded by timeout_seconds; the child is killed on expiry.
    """

    def __init__(
        self,
        dot_path: str = "dot",
        output_format: str = "png",
        timeout_seconds: Optional[float] = 30.0,
    ):
        if output_format not in MEDIA_TYPES:
            raise ValueError(f"unsupported graph output format: {output_format}")
        self.dot_path = dot_path
        self.output_format = output_format
        self.timeout_seconds = timeout_seconds

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self.output_format]

    def _run(self, dot_text: str) -> bytes:
        try:
            result = subprocess.run(
                [self.dot_path, f"-T{self.output_format}"],
                input=dot_text.encode("utf-8"),
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise RendererUnavailable(f"{self.dot_path} timed out after {e.timeout}s") from e
        except (OSError, subprocess.SubprocessError) as e:
            raise RendererUnavailable(f"failed to run {self.dot_path}: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise RendererUnavailable(
                f"{self.dot_path} exited with status {result.returncode}: {stderr[:200]}"
            )
        if not result.stdout:
            raise RendererUnavailable(f"{self.dot_path} produced no output")
        return result.stdout

    def render(self, dot_text: str) -> RenderedOutput:
        try:
            data = self._run(dot_text)
        except RendererUnavailable as e:
            logger.warning("graph_renderer_fallback", reason=str(e))
            return TextOutput(dot_text)
        return ImageOutput(data=data, media_type=self.media_type)


def select_renderer(config: Optional[Settings] = None) -> GraphRenderer:
    """
    Pick a renderer by probing for the Graphviz executable.

    Args:
        config: Settings (defaults to the global settings)

    Returns:
        GraphvizRenderer if the executable is on PATH and the configured
        format is supported, else TextRenderer
    """
    config = config or default_settings
    dot_path = shutil.which(config.graphviz_dot)
    if dot_path is None:
        logger.debug("graph_renderer_missing", executable=config.graphviz_dot)
        return TextRenderer()
    if config.graphviz_format not in MEDIA_TYPES:
        logger.warning(
            "graph_format_unsupported",
            format=config.graphviz_format,
            supported=sorted(MEDIA_TYPES),
        )
        return TextRenderer()
    return GraphvizRenderer(
        dot_path=dot_path,
        output_format=config.graphviz_format,
        timeout_seconds=config.graphviz_timeout_seconds,
    )


def export_graph(dot_text: str, renderer: Optional[GraphRenderer] = None) -> RenderedOutput:
    """
    Render DOT text with the given (or probed) renderer.

    Returns:
        ImageOutput on success, TextOutput(dot_text) otherwise
    """
    renderer = renderer or select_renderer()
    return renderer.render(dot_text)
