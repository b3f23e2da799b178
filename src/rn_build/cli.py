import click

from . import settings
from .utils import async_click
from .core.config import DEFAULT_BRANCH, DEFAULT_LANE
from .core.core import BuildPipeline
from .core.models import RunFlags


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--branch", default=DEFAULT_BRANCH, show_default=True, help="Git branch")
@click.option("--lane", default=DEFAULT_LANE, show_default=True, help="Fastlane lane")
@click.option("--config", default="./config", show_default=True, help="Config file, without .json")
@click.option("--android/--no-android", default=not settings.DARWIN, show_default=True,
              help="Build for Android (only switchable on Darwin)")
@click.option("--quiet/--no-quiet", default=False, show_default=True, help="Log build output to a file")
@click.option("--release/--no-release", default=False, show_default=True, help="Release build")
@click.option("--live/--no-live", default=False, show_default=True, help="Live environment")
@click.option("--cleanup/--no-cleanup", default=True, show_default=True, help="Cleanup after")
@click.option("--increment/--no-increment", default=True, show_default=True, help="Increment build #")
@click.option("--templates", default="./templates", show_default=True, help="Template directory")
@async_click
async def main(
    branch: str,
    lane: str,
    config: str,
    android: bool,
    quiet: bool,
    release: bool,
    live: bool,
    cleanup: bool,
    increment: bool,
    templates: str,
):
    ctx = click.get_current_context()
    if not branch or not lane:
        click.echo(ctx.get_help())
        ctx.exit(0)

    click.echo(settings.LOGO)

    flags = RunFlags(
        branch=branch,
        lane=lane,
        config=config,
        android=android,
        quiet=quiet,
        release=release,
        live=live,
        cleanup=cleanup,
        increment=increment,
        templates=templates,
    )
    pipeline = BuildPipeline(flags, handle_signals=True)
    code = await pipeline.run()
    ctx.exit(code)


if __name__ == "__main__":
    main()
