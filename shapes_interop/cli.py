"""
Command-line entry point: ``shapes-interop``.

Run a publisher in one terminal::

    shapes-interop -P -t Square -c RED

and a subscriber in another::

    shapes-interop -S -t Square
"""

import logging

import click

from . import __version__
from .app import run_publisher, run_subscriber
from .endpoints import DomainParticipant
from .exceptions import ShapesError
from .log_setup import DEFAULT_CONFIG_FILE, init_logging
from .poll import StopSignal
from .qos import DURABILITY_CODES, qos_from_options

logger = logging.getLogger("shapes.cli")

EXIT_FAILURE = 1


def _exclusive(first: tuple[str, bool], second: tuple[str, bool]) -> None:
    if first[1] and second[1]:
        raise click.UsageError(f"{first[0]} cannot be used with {second[0]}")


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    help='Command-line "shapes" interoperability test.',
)
@click.option("-d", "domain_id", type=click.IntRange(0, 0xFFFF), default=0,
              metavar="id", help="Sets the domain id number")
@click.option("-t", "topic", required=True, metavar="name", help="Sets the topic name")
@click.option("-c", "color", metavar="color", help="Color to publish (or filter)")
@click.option("-D", "durability", type=click.Choice(sorted(DURABILITY_CODES)),
              help="Set durability")
@click.option("-P", "publisher", is_flag=True, help="Act as publisher")
@click.option("-S", "subscriber", is_flag=True, help="Act as subscriber")
@click.option("-b", "best_effort", is_flag=True, help="BEST_EFFORT reliability")
@click.option("-r", "reliable", is_flag=True, help="RELIABLE reliability")
@click.option("-k", "history_depth", metavar="depth", help="Keep history depth")
@click.option("-f", "deadline", metavar="interval",
              help="Set a 'deadline' with interval (seconds)")
@click.option("-p", "partition", metavar="partition", help="Set a 'partition' string")
@click.option("-i", "interval", metavar="interval",
              help="Apply 'time based filter' with interval (seconds)")
@click.option("-s", "ownership_strength", metavar="strength",
              help="Set ownership strength [-1: SHARED]")
@click.option("--logging-config", type=click.Path(dir_okay=False),
              default=DEFAULT_CONFIG_FILE, show_default=True,
              help="YAML logging configuration")
@click.version_option(__version__, prog_name="shapes-interop")
def main(
    domain_id: int,
    topic: str,
    color: str | None,
    durability: str | None,
    publisher: bool,
    subscriber: bool,
    best_effort: bool,
    reliable: bool,
    history_depth: str | None,
    deadline: str | None,
    partition: str | None,
    interval: str | None,
    ownership_strength: str | None,
    logging_config: str,
) -> None:
    _exclusive(("-P", publisher), ("-S", subscriber))
    _exclusive(("-b", best_effort), ("-r", reliable))
    if not (publisher or subscriber):
        raise click.UsageError("One of -P (publisher) or -S (subscriber) is required")

    try:
        init_logging(logging_config)
        qos = qos_from_options(
            reliable=reliable,
            durability=durability,
            history_depth=history_depth,
            deadline=deadline,
            partition=partition,
            time_based_filter=interval,
            ownership_strength=ownership_strength,
        )
        participant = DomainParticipant(domain_id)
        shapes_topic = participant.create_topic(topic, qos=qos)
        click.echo(f"Topic name is {shapes_topic.name}. Type is {shapes_topic.type_name}.")

        stop = StopSignal()
        stop.install()
        click.echo("Press Ctrl-C to quit.")

        if publisher:
            code = run_publisher(participant, shapes_topic, color or "BLUE", stop)
        else:
            code = run_subscriber(participant, shapes_topic, stop, content_filter=color)
    except ShapesError as exc:
        logger.error("Fatal: %s", exc)
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(EXIT_FAILURE) from exc
    raise SystemExit(code)
