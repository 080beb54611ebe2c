"""designflow CLI -- Typer application.

Usage::

    designflow validate plans/shop.yaml
    designflow run plans/shop.yaml --max-concurrency 4
    designflow run plans/shop.yaml --json
"""

from designflow.cli.app import app

__all__ = ["app"]
