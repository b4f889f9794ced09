"""
Render Orchestrator
===================
Drives the Remotion CLI to turn composition props into a local MP4.

Stages:
    bundling -> composition_resolved -> rendering -> done
    (failed is reachable from every stage)

The engine is treated as a black box: it is invoked as a blocking
subprocess per stage, its progress lines are observed, and the whole job is
bounded by a single wall-clock timeout. Nothing is retried here.
"""

import json
import os
import re
import shutil
import subprocess
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from loguru import logger

from config.settings import DEFAULT_COMPOSITION_ID

from .errors import RenderFailure
from .models import CompositionInfo, JobState, RenderSettings, VideoInputProperties

ProgressCallback = Callable[[int, int], None]

_PROGRESS_RE = re.compile(r"(\d+)\s*/\s*(\d+)")
_OUTPUT_TAIL_LINES = 20


@dataclass
class RenderJob:
    """Ephemeral state of one render call."""
    composition_id: str
    output_path: str
    settings: RenderSettings
    state: JobState = JobState.BUNDLING
    composition: Optional[CompositionInfo] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rendered_frames: int = 0

    def advance(self, state: JobState) -> None:
        logger.debug(f"[Remotion] {self.composition_id}: {self.state.value} -> {state.value}")
        self.state = state


class VideoRenderer(ABC):
    """
    Abstract base class for rendering engines.

    Implementations render composition props into a single local file and
    raise RenderFailure on any error, leaving no partial output behind.
    """

    @abstractmethod
    def get_engine_name(self) -> str:
        """Return the rendering engine name."""

    @abstractmethod
    def render(
        self,
        properties: VideoInputProperties,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Render properties to output_path.

        Args:
            properties: Validated composition props
            output_path: Where the MP4 should be written
            on_progress: Optional callback receiving (rendered_frames, total_frames)

        Returns:
            Path of the rendered file

        Raises:
            RenderFailure: If any stage fails
        """


def parse_progress(line: str) -> Optional[Tuple[int, int]]:
    """Extract (rendered, total) from an engine progress line."""
    matches = _PROGRESS_RE.findall(line)
    if not matches:
        return None
    rendered, total = (int(v) for v in matches[-1])
    if total <= 0 or rendered > total:
        return None
    return rendered, total


def parse_composition(output: str, composition_id: str) -> Optional[CompositionInfo]:
    """
    Find a composition row in ``remotion compositions`` output, e.g.

        ListingReel    30    1080x1920    780 (26.00 sec)
    """
    pattern = re.compile(
        rf"^\s*{re.escape(composition_id)}\s+(\d+(?:\.\d+)?)\s+(\d+)x(\d+)\s+(\d+)",
        re.MULTILINE,
    )
    match = pattern.search(output)
    if not match:
        return None
    fps, width, height, frames = match.groups()
    return CompositionInfo(
        id=composition_id,
        fps=int(float(fps)),
        width=int(width),
        height=int(height),
        duration_in_frames=int(frames),
    )


class RemotionRenderer(VideoRenderer):
    """
    Remotion rendering via the CLI.

    Usage:
        renderer = RemotionRenderer("/srv/remotion", settings=RenderSettings())
        path = renderer.render(props, "/tmp/listing-1-1700000000000.mp4")
    """

    def __init__(
        self,
        project_dir: str,
        entry_point: str = "src/index.js",
        composition_id: str = DEFAULT_COMPOSITION_ID,
        settings: Optional[RenderSettings] = None,
        npx: str = "npx",
    ):
        self.project_dir = Path(project_dir)
        self.entry_point = entry_point
        self.composition_id = composition_id
        self.settings = settings or RenderSettings()
        self.npx = npx
        logger.info(f"[Remotion] Initialized with project dir: {self.project_dir}")

    def get_engine_name(self) -> str:
        return "remotion"

    def render(
        self,
        properties: VideoInputProperties,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        job = RenderJob(
            composition_id=self.composition_id,
            output_path=output_path,
            settings=self.settings,
        )
        deadline = time.monotonic() + self.settings.timeout_seconds
        workdir = tempfile.mkdtemp(prefix="reel-")
        start_time = time.time()
        stage = "bundling"

        logger.info(f"[Remotion] Starting render: {self.composition_id} -> {output_path}")

        try:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            props_path = os.path.join(workdir, "props.json")
            with open(props_path, "w") as f:
                json.dump(properties.to_props(), f)

            serve_url = self.bundle(workdir, deadline)
            stage = "composition"
            job.composition = self.select_composition(serve_url, props_path, deadline)
            job.advance(JobState.COMPOSITION_RESOLVED)
            logger.info(
                f"[Remotion] Composition: {job.composition.id}, "
                f"{job.composition.duration_in_frames} frames at {job.composition.fps}fps, "
                f"{job.composition.width}x{job.composition.height}"
            )

            stage = "rendering"
            job.advance(JobState.RENDERING)
            self.render_media(job, serve_url, props_path, deadline, on_progress)

            if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
                raise RenderFailure("rendering", "engine reported success but produced no output")

            job.advance(JobState.DONE)
            logger.info(f"[Remotion] Render complete: {output_path} ({time.time() - start_time:.2f}s)")
            return output_path

        except RenderFailure as e:
            job.advance(JobState.FAILED)
            self._discard_partial(output_path)
            logger.error(f"[Remotion] {e}")
            raise
        except Exception as e:
            job.advance(JobState.FAILED)
            self._discard_partial(output_path)
            logger.error(f"[Remotion] Render failed during {stage}: {e}")
            raise RenderFailure(stage, e) from e
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def bundle(self, workdir: str, deadline: float) -> str:
        """Bundle the Remotion project; returns the serve directory."""
        bundle_dir = os.path.join(workdir, "bundle")
        cmd = [
            self.npx, "remotion", "bundle",
            self.entry_point,
            f"--out-dir={bundle_dir}",
        ]
        logger.info("[Remotion] Bundling project...")
        returncode, output = self._run(cmd, deadline)
        if returncode != 0:
            raise RenderFailure("bundling", self._tail(output))
        return bundle_dir

    def select_composition(self, serve_url: str, props_path: str, deadline: float) -> CompositionInfo:
        """Resolve timeline parameters for the composition with these props."""
        cmd = [
            self.npx, "remotion", "compositions",
            serve_url,
            f"--props={props_path}",
        ]
        returncode, output = self._run(cmd, deadline)
        if returncode != 0:
            raise RenderFailure("composition", self._tail(output))

        composition = parse_composition(output, self.composition_id)
        if composition is None:
            raise RenderFailure("composition", f"composition {self.composition_id} not found")
        return composition

    def render_media(
        self,
        job: RenderJob,
        serve_url: str,
        props_path: str,
        deadline: float,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        settings = job.settings
        cmd = [
            self.npx, "remotion", "render",
            serve_url,
            job.composition_id,
            job.output_path,
            f"--props={props_path}",
            f"--codec={settings.codec}",
            f"--crf={settings.crf}",
            f"--pixel-format={settings.pixel_format}",
            f"--image-format={settings.image_format}",
            f"--concurrency={settings.concurrency}",
            f"--gl={settings.gl}",
            "--overwrite",
        ]
        total_frames = job.composition.duration_in_frames if job.composition else 0
        interval = max(1, settings.progress_log_interval)
        last_logged = [-interval]

        def on_line(line: str) -> None:
            progress = parse_progress(line)
            if progress is None:
                return
            rendered, total = progress
            total = total or total_frames
            job.rendered_frames = rendered
            if on_progress:
                on_progress(rendered, total)
            if rendered - last_logged[0] >= interval or rendered == total:
                last_logged[0] = rendered
                percent = round(rendered / total * 100) if total else 0
                logger.info(f"[Remotion] Progress: {percent}% ({rendered}/{total} frames)")

        logger.info(f"[Remotion] Rendering video to {job.output_path}")
        returncode, output = self._run(cmd, deadline, on_line)
        if returncode != 0:
            raise RenderFailure("rendering", self._tail(output))

    def _run(
        self,
        cmd: List[str],
        deadline: float,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> Tuple[int, str]:
        """Run one CLI step, streaming its output, killed at the job deadline."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise subprocess.TimeoutExpired(cmd, 0)

        logger.debug(f"[Remotion] Running: {' '.join(cmd)}")
        process = subprocess.Popen(
            cmd,
            cwd=str(self.project_dir),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
        timed_out = threading.Event()

        def kill() -> None:
            timed_out.set()
            process.kill()

        watchdog = threading.Timer(remaining, kill)
        watchdog.start()
        lines = []
        try:
            for line in process.stdout:
                line = line.rstrip()
                lines.append(line)
                if on_line:
                    on_line(line)
            returncode = process.wait()
        finally:
            watchdog.cancel()
            # no engine process survives this call
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdout.close()

        if timed_out.is_set():
            raise subprocess.TimeoutExpired(cmd, self.settings.timeout_seconds)
        return returncode, "\n".join(lines)

    @staticmethod
    def _tail(output: str) -> str:
        lines = [l for l in output.splitlines() if l.strip()]
        return "\n".join(lines[-_OUTPUT_TAIL_LINES:]) or "engine exited with an error"

    @staticmethod
    def _discard_partial(output_path: str) -> None:
        if os.path.exists(output_path):
            os.remove(output_path)
            logger.warning(f"[Remotion] Removed incomplete output: {output_path}")
