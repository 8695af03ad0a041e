"""CLI entry point for rip."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from rip import __version__


def _confirm(prompt: str) -> bool:
    return click.confirm(prompt, default=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("targets", nargs=-1)
@click.option(
    "--graveyard",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory where deleted files go to rest ($GRAVEYARD).",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: $RIP_CONFIG or ~/.config/rip/config.yaml).",
)
@click.option("-d", "--decompose", is_flag=True, help="Permanently delete the entire graveyard.")
@click.option(
    "-s",
    "--seance",
    "do_seance",
    is_flag=True,
    help="Print files that were sent under the current directory.",
)
@click.option(
    "--max-depth",
    type=click.IntRange(min=1),
    default=None,
    help="With --seance, only list or restore graves this many levels below the current directory.",
)
@click.option(
    "-u",
    "--unbury",
    "--resurrect",
    "unbury",
    is_flag=True,
    help=(
        "Undo the last removal by the current user, or restore the graves "
        "given as TARGETS. Combine with -s to restore everything -s prints."
    ),
)
@click.option("-i", "--inspect", is_flag=True, help="Print some info about TARGET before prompting.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.version_option(__version__, prog_name="rip")
@click.pass_context
def cli(
    ctx: click.Context,
    targets: tuple[str, ...],
    graveyard: str | None,
    config_file: str | None,
    decompose: bool,
    do_seance: bool,
    max_depth: int | None,
    unbury: bool,
    inspect: bool,
    verbose: bool,
) -> None:
    """Rm ImProved: send files to the graveyard instead of unlinking them.

    The graveyard is /tmp/graveyard-$USER unless --graveyard, $GRAVEYARD
    or the config file says otherwise.
    """
    from rip.config import ConfigError, get_actor, load_config, parse_mode, resolve_graveyard
    from rip.engine import BurialEngine
    from rip.journal import JournalError
    from rip.transfer import RollbackError

    _configure_logging(verbose)

    try:
        config = load_config(config_file)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    actor = get_actor()
    engine = BurialEngine(
        resolve_graveyard(graveyard, config, actor),
        actor,
        _confirm,
        big_file_threshold=config["big_file_threshold"],
        dir_mode=parse_mode(config["dir_mode"]),
        keep_history=config["keep_history"],
    )
    cwd = Path.cwd()

    try:
        if decompose:
            engine.decompose()
            return

        if unbury:
            _resurrect(engine, targets, cwd, do_seance, max_depth)
            return

        if do_seance:
            for record in engine.seance(cwd, max_depth):
                click.echo(record.grave)
            return

        if not targets:
            click.echo(ctx.get_usage())
            click.echo("rip -h for help")
            return

        _bury(engine, targets, cwd, config, inspect)
    except (JournalError, RollbackError) as exc:
        raise click.ClickException(str(exc)) from exc


def _resurrect(
    engine, graves: tuple[str, ...], cwd: Path, use_seance: bool, max_depth: int | None
) -> None:
    from rip.resolver import NothingToResurrect

    try:
        result = engine.resurrect(graves, cwd=cwd, use_seance=use_seance, max_depth=max_depth)
    except NothingToResurrect as exc:
        click.echo(str(exc))
        return

    for done in result.done:
        click.echo(f"Returned {done.grave} to {done.restored_to}")
    for failure in result.failures:
        click.echo(str(failure))
    if not result.ok:
        raise SystemExit(1)


def _bury(engine, targets: tuple[str, ...], cwd: Path, config: dict, inspect: bool) -> None:
    from rip.paths import symlink_exists
    from rip.preview import describe

    if inspect:
        chosen = []
        for target in targets:
            path = cwd / target
            if symlink_exists(path):
                for line in describe(
                    path,
                    target,
                    lines=config["inspect"]["lines"],
                    files=config["inspect"]["files"],
                ):
                    click.echo(line)
                if not _confirm(f"Send {target} to the graveyard?"):
                    continue
            chosen.append(target)
        targets = tuple(chosen)

    result = engine.bury_all(targets, cwd)
    for failure in result.failures:
        click.echo(str(failure))
    if not result.ok:
        raise SystemExit(1)
