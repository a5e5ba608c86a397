"""Typer CLI for inspecting and running embedded Kafka clusters."""

from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from embedded_kafka.config.loader import (
    load_launcher_config,
    load_spec,
    resolve_placeholders,
)
from embedded_kafka.config.models import EmbeddedKafkaSpec
from embedded_kafka.context import BROKER_NAME, BrokerContext
from embedded_kafka.customizer import EmbeddedKafkaCustomizer
from embedded_kafka.errors import EmbeddedKafkaError
from embedded_kafka.layering import resolve_broker_properties
from embedded_kafka.ports import plan_ports
from embedded_kafka.resources import ResourceLoader

console = Console()
app = typer.Typer(name="embedded-kafka", help="Embedded Kafka test cluster CLI")


def _load(spec_path: str) -> EmbeddedKafkaSpec:
    path = Path(spec_path)
    if not path.exists():
        console.print(f"[red]Spec file not found: {escape(str(path))}[/red]")
        raise typer.Exit(1)
    return load_spec(path)


@app.command()
def validate(
    spec_path: str = typer.Argument(..., help="Path to broker spec YAML"),
) -> None:
    """Resolve a broker spec and print the effective configuration."""
    try:
        spec = _load(spec_path)
        loader = ResourceLoader(Path(spec_path).resolve().parent)
        properties = resolve_broker_properties(spec, resolve_placeholders, loader)
        topics = [resolve_placeholders(t) for t in spec.topics]
    except (EmbeddedKafkaError, ValueError) as exc:
        console.print(f"[red]Validation error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    mode = "kraft" if spec.kraft else "zookeeper"
    console.print(f"[green]Valid[/green]: {spec.count} broker(s), mode={mode}")
    console.print(f"  ports:      {list(plan_ports(spec.ports, spec.count))}")
    console.print(f"  partitions: {spec.partitions}")
    console.print(f"  topics:     {escape(str(topics)) if topics else '(none)'}")
    if not spec.kraft:
        console.print(f"  zookeeper:  port={spec.zookeeper_port}")

    table = Table(title="Broker Properties")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in properties.items():
        table.add_row(escape(key), escape(value))
    console.print(table)


@app.command()
def up(
    spec_path: str = typer.Argument(..., help="Path to broker spec YAML"),
    launcher_config: str | None = typer.Option(
        None, "--launcher-config", help="Launcher YAML"
    ),
) -> None:
    """Start the cluster and keep it running until interrupted."""
    try:
        spec = _load(spec_path)
        launcher = load_launcher_config(
            Path(launcher_config) if launcher_config else None
        )
    except EmbeddedKafkaError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    context = BrokerContext(spec)
    customizer = EmbeddedKafkaCustomizer(spec)
    try:
        customizer.customize(
            context,
            loader=ResourceLoader(Path(spec_path).resolve().parent),
            launcher=launcher,
        )
        broker = context.get(BROKER_NAME)
        console.print(f"[green]Cluster up:[/green] {escape(broker.bootstrap_servers)}")
        console.print("[dim]Press Ctrl-C to stop[/dim]")
        while True:
            time.sleep(1)
    except EmbeddedKafkaError as exc:
        console.print(f"[red]Failed:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    except KeyboardInterrupt:
        console.print("[yellow]Stopping cluster[/yellow]")
    finally:
        context.close()
