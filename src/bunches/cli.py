import os
import subprocess
from collections.abc import Sequence

import click
from click.formatting import term_len
from filelock import Timeout

from .errors import BunchError
from .report import Reporter
from .runtime import Settings, set_verbose_logging, verbose_from_env

COMMAND_GROUPS = (
    ("Bunch", ("init", "add", "remove")),
    ("Bunches", ("list", "sync", "clean")),
    ("Workspace", ("locate",)),
)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2


def _write_bold_section(
    formatter: click.HelpFormatter, title: str, records: list[tuple[str, str]]
) -> None:
    if not records:
        return
    formatter.write("\n")
    formatter.write(click.style(title, bold=True) + "\n")
    formatter.indent()
    formatter.write_dl(records, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
    formatter.dedent()


def _command_help_limit(formatter: click.HelpFormatter, names: Sequence[str]) -> int:
    if not names:
        return 45
    max_name = max(term_len(name) for name in names)
    first_col = min(max_name, HELP_COL_MAX) + HELP_COL_SPACING
    return max(formatter.width - first_col - 2, 10)


class OrderedGroup(click.Group):
    def __init__(
        self,
        *args,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._command_groups = [
            (title, list(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        ordered = [
            name
            for _, commands in self._command_groups
            for name in commands
            if name in self.commands
        ]
        remaining = [
            name for name in super().list_commands(ctx) if name not in ordered
        ]
        return ordered + remaining

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        grouped = {name for _, commands in self._command_groups for name in commands}
        sections = [
            (title, commands) for title, commands in self._command_groups
        ] + [("Other", [n for n in self.list_commands(ctx) if n not in grouped])]
        for title, commands in sections:
            entries = []
            for name in commands:
                cmd = self.get_command(ctx, name)
                if cmd is None or cmd.hidden:
                    continue
                entries.append((name, cmd))
            if not entries:
                continue
            limit = _command_help_limit(formatter, [name for name, _ in entries])
            rows = [(name, cmd.get_short_help_str(limit=limit)) for name, cmd in entries]
            _write_bold_section(formatter, title.upper(), rows)


def _run_action(reporter: Reporter, action, /, *args, **kwargs):
    try:
        return action(*args, **kwargs)
    except BunchError as exc:
        code, message = exc.code, str(exc)
        cause = exc
    except subprocess.CalledProcessError as exc:
        code = "GIT_FAILED"
        message = (exc.stderr or "").strip() or str(exc)
        cause = exc
    except subprocess.TimeoutExpired as exc:
        code = "GIT_TIMEOUT"
        message = f"git did not finish within {exc.timeout}s: {' '.join(exc.cmd)}"
        cause = exc
    except Timeout as exc:
        code = "LOCKED"
        message = f"Another bunches process is holding {exc.lock_file}"
        cause = exc
    except ValueError as exc:
        code, message = "INVALID_INPUT", str(exc)
        cause = exc
    if reporter.json_output:
        reporter.error(code, message)
    raise click.ClickException(message) from cause


@click.group(
    cls=OrderedGroup,
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Print git invocations and other diagnostics to stderr.",
)
@click.pass_context
def cli(ctx, verbose):
    """
    Bunches - git-hosted package collections shared across a workspace
    """
    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings.from_env()
    set_verbose_logging(verbose or verbose_from_env())


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


@cli.command("init")
@click.pass_context
def init_cmd(ctx):
    """
    Create an empty bunches declaration file in the current directory.
    """
    from .actions import init_bunch

    reporter = Reporter()
    _run_action(
        reporter, init_bunch, os.getcwd(), settings=_settings(ctx), reporter=reporter
    )


@cli.command("add")
@click.argument("spec")
@click.pass_context
def add_cmd(ctx, spec):
    """
    Clone a bunch and declare it in the project configuration.

    SPEC may be an owner/repo shorthand, a git URL or a local path, optionally
    followed by #branch, #tag or #commit:

    \b
      bunches add org/team-bunch
      bunches add org/team-bunch#experimental
      bunches add git@github.com:org/team-bunch.git
    """
    from .actions import add_bunch

    reporter = Reporter()
    _run_action(
        reporter,
        add_bunch,
        spec,
        os.getcwd(),
        settings=_settings(ctx),
        reporter=reporter,
    )


@cli.command("remove")
@click.argument("name")
@click.pass_context
def remove_cmd(ctx, name):
    """
    Delete a bunch from the shared folder and from the configuration.

    NAME is the bunch name as printed by `bunches list`.
    """
    from .actions import remove_bunch

    reporter = Reporter()
    _run_action(
        reporter,
        remove_bunch,
        name,
        os.getcwd(),
        settings=_settings(ctx),
        reporter=reporter,
    )


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit NDJSON records.")
@click.pass_context
def list_cmd(ctx, json_output):
    """
    List the active bunches, including nested ones.
    """
    from .actions import list_bunches

    reporter = Reporter(json_output=json_output)
    _run_action(
        reporter, list_bunches, os.getcwd(), settings=_settings(ctx), reporter=reporter
    )


@cli.command("sync")
@click.option("--json", "json_output", is_flag=True, help="Emit NDJSON records.")
@click.pass_context
def sync_cmd(ctx, json_output):
    """
    Pull every bunch, check out its pinned reference and link workspaces.

    Bunches pinned to a branch are fast-forwarded; tags and commits are
    checked out as-is.
    """
    from .actions import sync_bunches

    reporter = Reporter(json_output=json_output)
    _run_action(
        reporter, sync_bunches, os.getcwd(), settings=_settings(ctx), reporter=reporter
    )


@cli.command("clean")
@click.option("--full", is_flag=True, help="Remove the .bunches folder entirely.")
@click.pass_context
def clean_cmd(ctx, full):
    """
    Remove the .bunches links from every workspace.
    """
    from .actions import clean_bunches

    reporter = Reporter()
    _run_action(
        reporter,
        clean_bunches,
        os.getcwd(),
        full=full,
        settings=_settings(ctx),
        reporter=reporter,
    )


@cli.command("locate")
@click.argument("name")
def locate_cmd(name):
    """
    Print the absolute path of a workspace.
    """
    from .actions import locate_workspace

    workspace = _run_action(Reporter(), locate_workspace, name, os.getcwd())
    click.echo(str(workspace.cwd))


def main():
    cli()


if __name__ == "__main__":
    main()
