"""
Tests for the Remotion render orchestrator, with the CLI stubbed or scripted.
"""
import subprocess
import sys
import time

import pytest

from services.reels.assembler import assemble_video_input
from services.reels.errors import RenderFailure
from services.reels.models import DEFAULT_SELLER_PROFILE, Listing, RenderSettings
from services.reels.renderer import RemotionRenderer, parse_composition, parse_progress

COMPOSITIONS_OUTPUT = """
The following compositions are available:

ListingReel    30      1080x1920      780 (26.00 sec)
"""


class StubbedRemotion(RemotionRenderer):
    """Replaces subprocess calls with scripted (returncode, output) results."""

    def __init__(self, tmp_path, script, write_output=True, **kwargs):
        super().__init__(str(tmp_path), **kwargs)
        self.script = dict(script)
        self.write_output = write_output
        self.commands = []

    def _run(self, cmd, deadline, on_line=None):
        step = cmd[2]
        self.commands.append(cmd)
        result = self.script.get(step, (0, ""))
        if isinstance(result, Exception):
            raise result
        returncode, output = result
        if step == "render":
            output_path = cmd[5]
            if self.write_output:
                with open(output_path, "wb") as f:
                    f.write(b"partial" if returncode else b"video-bytes")
            for line in output.splitlines():
                if on_line:
                    on_line(line)
        return returncode, output


@pytest.fixture
def props():
    listing = Listing(id="l1", title="Gold Eagle", purity=".9167", year="2024")
    return assemble_video_input(listing, DEFAULT_SELLER_PROFILE, "Timeless gold.")


def test_parse_progress():
    assert parse_progress("Rendered 120/780") == (120, 780)
    assert parse_progress("Rendering frames ━━━━━ 60 / 780") == (60, 780)
    assert parse_progress("Bundling 100%") is None
    assert parse_progress("Rendered 900/780") is None


def test_parse_composition():
    info = parse_composition(COMPOSITIONS_OUTPUT, "ListingReel")
    assert info.fps == 30
    assert (info.width, info.height) == (1080, 1920)
    assert info.duration_in_frames == 780
    assert info.duration_seconds == 26
    assert parse_composition(COMPOSITIONS_OUTPUT, "Other") is None


def test_render_success(tmp_path, props):
    renderer = StubbedRemotion(
        tmp_path,
        {
            "compositions": (0, COMPOSITIONS_OUTPUT),
            "render": (0, "Rendered 60/780\nRendered 390/780\nRendered 780/780"),
        },
    )
    progress = []
    output = str(tmp_path / "out" / "listing-l1.mp4")

    assert renderer.render(props, output, on_progress=lambda r, t: progress.append((r, t))) == output
    assert progress == [(60, 780), (390, 780), (780, 780)]

    render_cmd = renderer.commands[-1]
    assert render_cmd[:3] == ["npx", "remotion", "render"]
    assert "ListingReel" in render_cmd
    for flag in ("--codec=h264", "--crf=28", "--pixel-format=yuv420p", "--gl=angle", "--concurrency=50%"):
        assert flag in render_cmd


def test_render_uses_configured_settings(tmp_path, props):
    renderer = StubbedRemotion(
        tmp_path,
        {"compositions": (0, COMPOSITIONS_OUTPUT)},
        settings=RenderSettings(crf=23, concurrency="100%"),
    )
    renderer.render(props, str(tmp_path / "a.mp4"))
    assert "--crf=23" in renderer.commands[-1]
    assert "--concurrency=100%" in renderer.commands[-1]


def test_bundle_failure(tmp_path, props):
    renderer = StubbedRemotion(tmp_path, {"bundle": (1, "Module not found: ./src/index.js")})
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(tmp_path / "a.mp4"))
    assert exc.value.stage == "bundling"
    assert "Module not found" in str(exc.value.cause)
    assert len(renderer.commands) == 1


def test_schema_mismatch_fails_composition(tmp_path, props):
    renderer = StubbedRemotion(tmp_path, {"compositions": (1, "ZodError: listingTitle required")})
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(tmp_path / "a.mp4"))
    assert exc.value.stage == "composition"


def test_missing_composition(tmp_path, props):
    renderer = StubbedRemotion(tmp_path, {"compositions": (0, "No compositions")})
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(tmp_path / "a.mp4"))
    assert exc.value.stage == "composition"


def test_render_failure_removes_partial_output(tmp_path, props):
    output = tmp_path / "a.mp4"
    renderer = StubbedRemotion(
        tmp_path,
        {"compositions": (0, COMPOSITIONS_OUTPUT), "render": (1, "Chrome crashed")},
    )
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(output))
    assert exc.value.stage == "rendering"
    assert not output.exists()


def test_no_output_is_a_failure(tmp_path, props):
    renderer = StubbedRemotion(
        tmp_path,
        {"compositions": (0, COMPOSITIONS_OUTPUT)},
        write_output=False,
    )
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(tmp_path / "a.mp4"))
    assert exc.value.stage == "rendering"


def test_timeout_is_a_render_failure(tmp_path, props):
    output = tmp_path / "a.mp4"
    renderer = StubbedRemotion(
        tmp_path,
        {
            "compositions": (0, COMPOSITIONS_OUTPUT),
            "render": subprocess.TimeoutExpired(["npx"], 840),
        },
    )
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(output))
    assert exc.value.stage == "rendering"
    assert not output.exists()


def test_missing_toolchain(tmp_path, props):
    renderer = StubbedRemotion(tmp_path, {"bundle": FileNotFoundError("npx")})
    with pytest.raises(RenderFailure) as exc:
        renderer.render(props, str(tmp_path / "a.mp4"))
    assert exc.value.stage == "bundling"


class TestRemotionSubprocess:
    """Runs the real subprocess path against a shell script standing in for npx."""

    pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

    @staticmethod
    def fake_npx(tmp_path, render_body):
        script = tmp_path / "npx"
        script.write_text(
            "#!/bin/sh\n"
            'case "$2" in\n'
            "  bundle) echo 'Bundled' ;;\n"
            "  compositions) echo 'ListingReel    30      1080x1920      780 (26.00 sec)' ;;\n"
            f"  render)\n{render_body}\n    ;;\n"
            "esac\n"
        )
        script.chmod(0o755)
        return str(script)

    def test_streams_progress_and_tolerates_undecodable_output(self, tmp_path, props):
        npx = self.fake_npx(tmp_path, (
            "    echo 'Rendered 390/780'\n"
            "    printf '\\377\\376 garbage\\n'\n"
            "    echo 'Rendered 780/780'\n"
            '    printf video > "$5"'
        ))
        renderer = RemotionRenderer(str(tmp_path), npx=npx)
        output = tmp_path / "out" / "a.mp4"
        progress = []

        assert renderer.render(props, str(output), on_progress=lambda r, t: progress.append(r)) == str(output)
        assert progress == [390, 780]
        assert output.read_bytes() == b"video"

    def test_engine_exit_code_is_a_render_failure(self, tmp_path, props):
        npx = self.fake_npx(tmp_path, "    echo 'Chrome crashed'\n    exit 3")
        renderer = RemotionRenderer(str(tmp_path), npx=npx)

        with pytest.raises(RenderFailure) as exc:
            renderer.render(props, str(tmp_path / "a.mp4"))
        assert exc.value.stage == "rendering"
        assert "Chrome crashed" in str(exc.value.cause)

    def test_timeout_kills_engine(self, tmp_path, props):
        npx = self.fake_npx(tmp_path, "    echo 'Rendered 1/780'\n    exec sleep 30")
        renderer = RemotionRenderer(
            str(tmp_path), npx=npx, settings=RenderSettings(timeout_seconds=1)
        )
        output = tmp_path / "a.mp4"
        started = time.monotonic()

        with pytest.raises(RenderFailure) as exc:
            renderer.render(props, str(output))
        assert exc.value.stage == "rendering"
        assert isinstance(exc.value.cause, subprocess.TimeoutExpired)
        assert time.monotonic() - started < 10
        assert not output.exists()

    def test_failed_progress_callback_stops_engine(self, tmp_path, props):
        npx = self.fake_npx(tmp_path, (
            "    echo 'Rendered 1/780'\n"
            "    sleep 1\n"
            '    printf late > "$5"'
        ))
        renderer = RemotionRenderer(str(tmp_path), npx=npx)
        output = tmp_path / "a.mp4"

        def on_progress(rendered, total):
            raise ValueError("progress sink closed")

        with pytest.raises(RenderFailure) as exc:
            renderer.render(props, str(output), on_progress=on_progress)
        assert exc.value.stage == "rendering"

        time.sleep(1.5)
        assert not output.exists()
