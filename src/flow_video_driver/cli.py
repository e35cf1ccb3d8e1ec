"""Command line interface for flow-video-driver."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from .config import load_config
from .factory import build_orchestrator
from .models import AspectRatio, GenerationMode, VideoGenerationRequest, VideoGenerationResult
from .orchestrator.runner import VideoGenerationOrchestrator

app = typer.Typer(help="Flow Video Driver entry point")

SERVICE_FACTORY = "flow_video_driver.service:create_app"

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to YAML configuration."),
]
EnvFileOption = Annotated[
    Optional[Path],
    typer.Option("--env-file", help="Path to an .env file with default configuration values."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("flow-video-driver"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


def frame_to_data_url(path: Path) -> str:
    """Encode an image file as a ``data:image/...;base64,`` URL."""

    media_type, _ = mimetypes.guess_type(path.name)
    if not media_type or not media_type.startswith("image/"):
        raise typer.BadParameter(f"{path} does not look like an image file")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


async def _generate_once(
    orchestrator: VideoGenerationOrchestrator,
    request: VideoGenerationRequest,
) -> VideoGenerationResult:
    try:
        return await orchestrator.generate(request)
    finally:
        await orchestrator.close()


async def _check_once(orchestrator: VideoGenerationOrchestrator) -> bool:
    try:
        return await orchestrator.can_attach_to_browser()
    finally:
        await orchestrator.close()


@app.command()
def generate(
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="Text prompt for the video.")],
    aspect_ratio: Annotated[
        AspectRatio,
        typer.Option("--aspect-ratio", help="Output orientation."),
    ] = AspectRatio.LANDSCAPE,
    mode: Annotated[
        GenerationMode,
        typer.Option("--mode", help="Generation flow to drive."),
    ] = GenerationMode.TEXT_TO_VIDEO,
    outputs: Annotated[
        int,
        typer.Option("--outputs", min=1, max=4, help="Number of videos to request."),
    ] = 1,
    start_frame: Annotated[
        Optional[Path],
        typer.Option("--start-frame", exists=True, dir_okay=False, help="Start frame image."),
    ] = None,
    end_frame: Annotated[
        Optional[Path],
        typer.Option("--end-frame", exists=True, dir_okay=False, help="End frame image."),
    ] = None,
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
    headless: Annotated[
        Optional[bool],
        typer.Option("--headless/--headed", help="Run the browser in headless mode (or headed)."),
    ] = None,
    profile_path: Annotated[
        Optional[Path],
        typer.Option("--profile-path", help="Browser user data directory to reuse between runs."),
    ] = None,
) -> None:
    """Generate videos for a prompt and print their URLs."""

    overrides: dict[str, Any] = {"notifications": {"channel": "console"}}
    if headless is not None or profile_path is not None:
        overrides["browser"] = {}
        if headless is not None:
            overrides["browser"]["headless"] = headless
        if profile_path is not None:
            overrides["browser"]["profile_path"] = str(profile_path)
    config = load_config(config_path, env_file=env_file, **overrides)

    request = VideoGenerationRequest(
        prompt=prompt,
        aspect_ratio=aspect_ratio,
        mode=mode,
        outputs_count=outputs,
        start_frame=frame_to_data_url(start_frame) if start_frame else None,
        end_frame=frame_to_data_url(end_frame) if end_frame else None,
    )
    orchestrator = build_orchestrator(config)
    result = asyncio.run(_generate_once(orchestrator, request))
    if not result.success:
        typer.echo(f"Generation failed: {result.error}", err=True)
        raise typer.Exit(code=1)
    for url in result.video_urls:
        typer.echo(url)


@app.command("check-browser")
def check_browser(
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """Report whether a running browser accepts CDP connections."""

    config = load_config(config_path, env_file=env_file)
    orchestrator = build_orchestrator(config)
    if asyncio.run(_check_once(orchestrator)):
        typer.echo(f"Browser reachable at {config.browser.cdp_endpoint}")
        return
    typer.echo(f"No browser reachable at {config.browser.cdp_endpoint}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Binding address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="HTTP port.")] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", help="Restart on code changes; configuration then comes from the environment."),
    ] = False,
    config_path: ConfigOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """Run the HTTP service."""

    import uvicorn

    from .service import create_app

    config = load_config(config_path, env_file=env_file)
    host = host or config.service.host
    port = port or config.service.port
    if reload:
        # uvicorn's reloader only accepts an import string.
        uvicorn.run(SERVICE_FACTORY, factory=True, host=host, port=port, reload=True)
        return
    uvicorn.run(create_app(config), host=host, port=port)


if __name__ == "__main__":
    app()
