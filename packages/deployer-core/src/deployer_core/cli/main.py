"""Main entry point for the deployer CLI.

Commands:
    deployer promote-images: Promote a build's container images

Example:
    $ deployer --help
    $ deployer promote-images --env prod --repo myapp --build-id 2a1b3c \\
        --s3-bucket build-artifacts --s3-key myapp/main/1.0.0/
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from deployer_core.cli.promote_images import promote_images_command


def _get_version() -> str:
    """Return the installed deployer-core version, or 'unknown'."""
    try:
        return get_version("deployer-core")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="deployer",
    help="deployer - Deployment pipeline steps.",
    epilog="Use 'deployer <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="deployer",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Root command group for the deployer CLI."""
    ctx.ensure_object(dict)


cli.add_command(promote_images_command)


def main(argv: list[str] | None = None) -> None:
    """Run the CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
