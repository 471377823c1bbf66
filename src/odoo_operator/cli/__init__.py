import typer
from pathlib import Path
from typing import List, Optional
from typing_extensions import Annotated

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

app = typer.Typer(
    help="Odoo operator: deploys and maintains Odoo clusters on Kubernetes",
    add_completion=False,
)


@app.command("crd")
def crd():
    """Print the CustomResourceDefinitions of OdooCluster and OdooDB."""
    from odoo_operator.crd.generator import OdooCRDManager

    typer.echo(OdooCRDManager().render_yaml(), nl=False)


@app.command("run")
def run(
    watch_namespace: Annotated[
        Optional[str],
        typer.Option(
            "--watch-namespace",
            envvar="WATCH_NAMESPACE",
            help="Only watch this namespace (default: all namespaces)",
        ),
    ] = None,
    product_config: Annotated[
        Optional[List[Path]],
        typer.Option(
            "--product-config",
            help="Product config file, may be repeated; defaults to the standard search list",
        ),
    ] = None,
):
    """Run the operator (connects to the cluster)."""
    from odoo_operator.main import run as run_operator

    run_operator(
        watch_namespace=watch_namespace,
        product_config=[str(p) for p in product_config] if product_config else None,
    )
