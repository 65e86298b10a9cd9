"""Entry point for the CLI."""

from logging import getLogger
from logging.config import dictConfig

import click

from vidflut.cli._utils import AliasedGroup
from vidflut.cli.video_commands import video_group
from vidflut.config.settings import ConfigRepo

logger = getLogger(__name__)


@click.group(cls=AliasedGroup)
@click.version_option(package_name="vidflut")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Entry point for the CLI."""
    config = ConfigRepo().read()
    dictConfig(config.logging_config)
    ctx.obj = config


cli.add_command(video_group)
