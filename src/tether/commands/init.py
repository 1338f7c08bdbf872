"""tether init — scaffold a tether.yaml in the current directory."""

from __future__ import annotations

from pathlib import Path

import click

CONFIG_FILENAME = "tether.yaml"
ENV_EXAMPLE_FILENAME = ".env.example"

TEMPLATE_YAML = """\
# tether configuration

# CLI executable to spawn (must be on PATH)
executable: claude

# Permission mode: default, acceptEdits, bypassPermissions, plan
permission_mode: acceptEdits

# Optional model settings (omitted ones are not passed to the CLI)
# model: claude-sonnet-4-5
# temperature: 0.2
# max_tokens: 4096
# allowed_tools: [Read, Grep, Glob]

# Env var holding your API key (set to null to use subscription auth)
credential_env: ANTHROPIC_API_KEY

# Display
icons: true

# Logging: DEBUG, INFO, WARNING, ERROR
log_level: WARNING
"""

TEMPLATE_ENV_EXAMPLE = """\
# API key passed to the CLI subprocess.
# Copy this file to .env and fill in your key.
#
# tether reads it automatically. No extra config is needed unless your
# env var is named differently (see `credential_env` in tether.yaml).

ANTHROPIC_API_KEY=
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing tether.yaml if it exists.",
)
def init(force: bool) -> None:
    """Scaffold a tether.yaml in the current directory."""
    cwd = Path.cwd()
    config_path = cwd / CONFIG_FILENAME
    env_example_path = cwd / ENV_EXAMPLE_FILENAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{CONFIG_FILENAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {CONFIG_FILENAME}: {exc}") from exc
    click.echo(f"  Created {CONFIG_FILENAME}")

    if not env_example_path.exists() or force:
        try:
            env_example_path.write_text(TEMPLATE_ENV_EXAMPLE, encoding="utf-8")
        except OSError as exc:
            raise click.ClickException(
                f"Cannot write {ENV_EXAMPLE_FILENAME}: {exc}"
            ) from exc
        click.echo(f"  Created {ENV_EXAMPLE_FILENAME}")
    else:
        click.echo(f"  Skipped {ENV_EXAMPLE_FILENAME} (already exists)")

    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Edit {CONFIG_FILENAME} to pick a model and permissions")
    click.echo("  2. Copy .env.example to .env and add your API key")
    click.echo("  3. Run `tether chat` to start a conversation")
