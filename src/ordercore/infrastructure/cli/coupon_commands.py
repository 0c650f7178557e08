"""CLI commands for coupons."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

import click

from ordercore.application.dto import CouponValidationRequest, Requester
from ordercore.domain.exceptions import DomainException
from ordercore.domain.model.coupon import DiscountType
from ordercore.domain.model.value_objects import Money
from ordercore.infrastructure.bootstrap import coupon_manager, order_service
from ordercore.infrastructure.config import Settings


def _decimal(raw: str, label: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise click.BadParameter(f"Invalid {label} '{raw}'.")


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@click.command("create")
@click.option("--code", required=True, help="Coupon code (A-Z, 0-9, - and _).")
@click.option("--description", required=True, help="Shown to the customer.")
@click.option("--type", "discount_type", required=True,
              type=click.Choice([t.value for t in DiscountType]), help="Discount type.")
@click.option("--value", "discount_value", default="0", help="Percentage or fixed amount.")
@click.option("--min-order", default=None, help="Minimum order amount.")
@click.option("--max-discount", default=None, help="Cap for percentage discounts.")
@click.option("--max-uses", type=int, default=None, help="Global usage limit.")
@click.option("--max-uses-per-user", type=int, default=None, help="Per-customer usage limit.")
@click.option("--starts", type=click.DateTime(), default=None, help="Start date (UTC).")
@click.option("--expires", type=click.DateTime(), default=None, help="Expiry date (UTC).")
@click.option("--category", "categories", multiple=True, help="Applicable category (repeatable).")
@click.option("--product", "products", multiple=True, help="Applicable product (repeatable).")
@click.pass_obj
def coupon_create(
    settings: Settings,
    code: str,
    description: str,
    discount_type: str,
    discount_value: str,
    min_order: str | None,
    max_discount: str | None,
    max_uses: int | None,
    max_uses_per_user: int | None,
    starts: datetime | None,
    expires: datetime | None,
    categories: tuple[str, ...],
    products: tuple[str, ...],
) -> None:
    """Create a new coupon."""
    try:
        coupon = coupon_manager(settings).create_coupon(
            code=code,
            description=description,
            discount_type=DiscountType(discount_type),
            discount_value=_decimal(discount_value, "discount value"),
            min_order_amount=Money.of(min_order) if min_order else None,
            max_discount_amount=Money.of(max_discount) if max_discount else None,
            max_uses=max_uses,
            max_uses_per_user=max_uses_per_user,
            start_date=_utc(starts),
            expiry_date=_utc(expires),
            applicable_categories=list(categories),
            applicable_products=list(products),
        )
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Coupon {coupon.code} created (id={coupon.id}).")


@click.command("validate")
@click.option("--code", required=True, help="Coupon code.")
@click.option("--total", "order_total", required=True, help="Order total to check against.")
@click.option("--user", "user_id", default=None, help="Customer id for per-user limits.")
@click.option("--category", "category_id", default=None, help="Cart category.")
@click.option("--product", "product_ids", multiple=True, help="Cart product id (repeatable).")
@click.pass_obj
def coupon_validate(
    settings: Settings,
    code: str,
    order_total: str,
    user_id: str | None,
    category_id: str | None,
    product_ids: tuple[str, ...],
) -> None:
    """Check whether a coupon applies, without using it."""
    request = CouponValidationRequest(
        code=code,
        order_total=order_total,
        user_id=user_id,
        category_id=category_id,
        product_ids=list(product_ids),
    )
    try:
        result = order_service(settings).validate_coupon(request)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Coupon {result.code} is valid: {result.description}")
    click.echo(f"Discount: {result.discount_amount}")
    if result.free_shipping:
        click.echo("Includes free shipping.")


@click.command("redeem")
@click.option("--coupon-id", required=True, help="Coupon id.")
@click.option("--order-id", required=True, help="Order the coupon was used on.")
@click.option("--discount", "discount_amount", required=True, help="Discount granted.")
@click.option("--user", "user_id", required=True, help="Redeeming customer id.")
@click.option("--email", default=None, help="Redeeming customer email.")
@click.pass_obj
def coupon_redeem(
    settings: Settings,
    coupon_id: str,
    order_id: str,
    discount_amount: str,
    user_id: str,
    email: str | None,
) -> None:
    """Record one use of a coupon."""
    try:
        usage = order_service(settings).redeem_coupon(
            coupon_id, order_id, discount_amount, Requester(user_id=user_id, email=email)
        )
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Coupon redeemed (usage id={usage.id}).")


@click.command("usage")
@click.option("--code", required=True, help="Coupon code.")
@click.pass_obj
def coupon_usage(settings: Settings, code: str) -> None:
    """Show every redemption of a coupon, newest first."""
    try:
        usages = coupon_manager(settings).usage_history(code)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    if not usages:
        click.echo("No usage recorded.")
        return

    click.echo(f"{'Order':<22} {'User':<24} {'Discount':>10}  Applied")
    click.echo("-" * 78)
    for usage in usages:
        click.echo(
            f"{usage.order_id:<22} {usage.user_id or '-':<24} "
            f"{str(usage.discount_amount):>10}  {usage.applied_at:%Y-%m-%d %H:%M}"
        )
