"""CLI commands for the Product catalog."""

from __future__ import annotations

import click

from ordercore.domain.exceptions import DomainException
from ordercore.domain.model.product import Variant
from ordercore.domain.model.value_objects import Money
from ordercore.infrastructure.bootstrap import catalog_service
from ordercore.infrastructure.config import Settings


def _parse_variant(raw: str) -> Variant:
    """Parse 'id:sku:name:stock[:price]' into a Variant."""
    parts = [p.strip() for p in raw.split(":")]
    if len(parts) not in (4, 5):
        raise click.BadParameter(
            f"Invalid variant '{raw}'. Expected 'id:sku:name:stock[:price]'."
        )
    try:
        stock = int(parts[3])
    except ValueError:
        raise click.BadParameter(f"Invalid stock '{parts[3]}' for variant '{parts[0]}'.")
    try:
        price = Money.of(parts[4]) if len(parts) == 5 and parts[4] else None
    except DomainException as exc:
        raise click.BadParameter(str(exc))
    return Variant(id=parts[0], sku=parts[1], name=parts[2], stock=stock, price=price)


@click.command("add")
@click.option("--id", "product_id", required=True, help="Product id.")
@click.option("--name", required=True, help="Product name.")
@click.option("--price", required=True, help="Price (e.g. 15.00).")
@click.option("--stock", type=int, required=True, help="Units in stock.")
@click.option("--category", "category_id", default=None, help="Category id.")
@click.option("--variant", "variants", multiple=True,
              help="Variant as 'id:sku:name:stock[:price]' (repeatable).")
@click.option("--inactive", is_flag=True, default=False, help="Add the product as inactive.")
@click.pass_obj
def product_add(
    settings: Settings,
    product_id: str,
    name: str,
    price: str,
    stock: int,
    category_id: str | None,
    variants: tuple[str, ...],
    inactive: bool,
) -> None:
    """Add a new product to the catalog."""
    parsed = [_parse_variant(v) for v in variants]

    try:
        product = catalog_service(settings).add_product(
            product_id=product_id,
            name=name,
            price=price,
            stock=stock,
            variants=parsed,
            category_id=category_id,
            is_active=not inactive,
        )
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Product {product.id} '{product.name}' added at {product.price} (stock {product.stock_quantity})")


@click.command("list")
@click.pass_obj
def product_list(settings: Settings) -> None:
    """List all products in the catalog."""
    try:
        products = catalog_service(settings).list_products()
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<12} {'Name':<20} {'Price':>10} {'Stock':>7}")
    click.echo("-" * 52)
    for p in products:
        flag = "" if p.is_active else "  (inactive)"
        click.echo(f"{p.id:<12} {p.name:<20} {str(p.price):>10} {p.stock_quantity:>7}{flag}")
        for v in p.variants:
            click.echo(f"  - {v.id:<10} {v.name:<18} {str(p.unit_price(v)):>10} {v.stock:>7}")
