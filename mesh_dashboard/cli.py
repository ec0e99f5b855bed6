"""Main CLI entry point for the mesh dashboard."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from mesh_dashboard.exceptions import (
    BrowserLaunchError,
    ClusterUnreachableError,
    ConfigurationError,
    ControlPlaneUnavailableError,
    DashboardError,
    HealthCheckTransportError,
)
from mesh_dashboard.health import install_hint
from mesh_dashboard.logging_config import get_logger, setup_logging
from mesh_dashboard.models.dashboard import DEFAULT_NAMESPACE, PresentationMode
from mesh_dashboard.session import DashboardSession

app = typer.Typer(
    name="meshctl",
    help="Service mesh command-line utility",
    add_completion=False,
)

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)
logger = get_logger(__name__)

SHOW_CHOICES = ", ".join(mode.value for mode in PresentationMode)


# Global callback to set up logging and cluster options
@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
    kubeconfig: str | None = typer.Option(
        None,
        "--kubeconfig",
        help="Path to the kubeconfig file (defaults to $KUBECONFIG or ~/.kube/config)",
    ),
    context: str | None = typer.Option(
        None, "--context", help="Kubeconfig context to use (defaults to the current context)"
    ),
    namespace: str = typer.Option(
        DEFAULT_NAMESPACE,
        "--namespace",
        "-n",
        help="Namespace in which the control plane is installed",
    ),
    api_addr: str | None = typer.Option(
        None,
        "--api-addr",
        help="Address of the control plane API, bypassing the Kubernetes API (host:port)",
    ),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")

    ctx.obj = {
        "kubeconfig": kubeconfig,
        "context": context,
        "namespace": namespace,
        "api_addr": api_addr,
    }


@app.command()
def version() -> None:
    """Show version information."""
    from mesh_dashboard import __version__

    typer.echo(f"meshctl version {__version__}")


@app.command()
def dashboard(
    ctx: typer.Context,
    port: int = typer.Option(
        0,
        "--port",
        "-p",
        help="The port on which to run the proxy (when set to 0, a random port will be used)",
    ),
    show: str = typer.Option(
        PresentationMode.PRIMARY_VIEW.value,
        "--show",
        help=f"Open a dashboard in a browser or show URLs in the CLI (one of: {SHOW_CHOICES})",
    ),
) -> None:
    """
    Open the mesh dashboard in a web browser.

    This command starts a local proxy to the Kubernetes API, checks that the
    control plane is healthy, prints the dashboard URLs and keeps the proxy
    running until interrupted.

    Examples:
        # Open the mesh dashboard
        meshctl dashboard

        # Only print the URLs, on a fixed port
        meshctl dashboard --show print-only --port 8001

        # Open Grafana for a control plane in another namespace
        meshctl --namespace my-mesh dashboard --show secondary-view
    """
    options = ctx.obj or {}
    namespace = options.get("namespace", DEFAULT_NAMESPACE)

    try:
        session = DashboardSession.from_options(port=port, show=show, console=console, **options)
        session.run()

    except ConfigurationError as e:
        _fail("Error", e)
    except ClusterUnreachableError as e:
        _fail(f"Cannot connect to Kubernetes ({e.subsystem})", e)
    except HealthCheckTransportError as e:
        logger.debug(f"Error checking dashboard availability: {e}")
        err_console.print(
            "[red]Error:[/red] The control plane is not running in the "
            f'"{escape(namespace)}" namespace'
        )
        err_console.print(escape(e.message))
        err_console.print(f"\nInstall with: {escape(install_hint(namespace))}")
        raise typer.Exit(code=1)
    except ControlPlaneUnavailableError as e:
        _fail(f"Control plane is not ready ({e.subsystem})", e)
    except BrowserLaunchError as e:
        _fail("Browser Error", e)
    except DashboardError as e:
        _fail("Error", e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Dashboard proxy stopped[/yellow]")
        raise typer.Exit(code=130)
    except Exception as e:
        logger.error(f"Unexpected error running the dashboard: {e}", exc_info=True)
        err_console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        err_console.print("\nRun with --verbose --log-file debug.log for more details")
        raise typer.Exit(code=1)


def _fail(label: str, error: DashboardError) -> None:
    logger.error(f"{label}: {error.message}")
    err_console.print(f"[red]{escape(label)}:[/red] {escape(error.message)}")
    if error.details:
        err_console.print(f"\n{escape(error.details)}")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
