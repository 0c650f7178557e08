from pathlib import Path

import click

from ordercore.infrastructure.cli.coupon_commands import (
    coupon_create,
    coupon_redeem,
    coupon_usage,
    coupon_validate,
)
from ordercore.infrastructure.cli.order_commands import (
    order_cancel,
    order_list,
    order_note,
    order_place,
    order_show,
    order_status,
    order_track,
)
from ordercore.infrastructure.cli.product_commands import product_add, product_list
from ordercore.infrastructure.config import Settings
from ordercore.infrastructure.logger import configure_logging


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file (defaults to config/default.yaml).",
)
@click.option("--data-dir", default=None, help="Directory holding store.json.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, data_dir: str | None) -> None:
    """ordercore — order placement and coupon redemption"""
    settings = Settings.from_yaml(config_path)
    if data_dir:
        settings.data_dir = Path(data_dir)
    configure_logging(settings.log_level)
    ctx.obj = settings


@cli.group()
def order() -> None:
    """Place and manage orders."""


@cli.group()
def coupon() -> None:
    """Manage coupons."""


@cli.group()
def product() -> None:
    """Manage the product catalog."""


# Register subcommands
order.add_command(order_cancel)
order.add_command(order_list)
order.add_command(order_note)
order.add_command(order_place)
order.add_command(order_show)
order.add_command(order_status)
order.add_command(order_track)
coupon.add_command(coupon_create)
coupon.add_command(coupon_redeem)
coupon.add_command(coupon_usage)
coupon.add_command(coupon_validate)
product.add_command(product_add)
product.add_command(product_list)
