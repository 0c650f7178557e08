"""CLI commands for the Order aggregate.

Commands run as the store operator (an admin) unless ``--user`` names the
customer to act as.
"""

from __future__ import annotations

import click

from ordercore.application.dto import OrderDTO, OrderItemSpec, PlaceOrderCommand, Requester
from ordercore.domain.exceptions import DomainException
from ordercore.infrastructure.bootstrap import order_service
from ordercore.infrastructure.config import Settings

OPERATOR = Requester(user_id="operator", email=None, is_admin=True)


def _requester(user_id: str | None, email: str | None = None) -> Requester:
    if user_id:
        return Requester(user_id=user_id, email=email)
    return OPERATOR


def _parse_items(raw: str) -> list[OrderItemSpec]:
    """Parse 'prod-1:2,prod-2/var-1:1' into OrderItemSpec list."""
    specs: list[OrderItemSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId[/VariantId]:Quantity'."
            )
        ref, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{ref}'."
            )
        product_id, _, variant_id = ref.strip().partition("/")
        specs.append(
            OrderItemSpec(product_id=product_id, quantity=qty, variant_id=variant_id or None)
        )
    return specs


def _parse_address(pairs: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated 'key=value' options into an address dict."""
    address: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(
                f"Invalid address field '{pair}'. Expected 'key=value'."
            )
        key, value = pair.split("=", 1)
        address[key.strip()] = value.strip()
    return address


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (status={dto.status}, payment={dto.payment_status})")
    click.echo(f"Id:       {dto.id}")
    click.echo(f"Customer: {dto.customer_name} <{dto.customer_email}>")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'Product':<24} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*51}")
    for item in dto.items:
        name = f"{item.product_name} ({item.variant_name})" if item.variant_name else item.product_name
        click.echo(f"  {name:<24} {item.quantity:>5} {item.unit_price:>10} {item.line_total:>10}")
    click.echo(f"  {'-'*51}")
    click.echo(f"  {'Subtotal':<31} {dto.subtotal:>20}")
    if dto.coupon_code:
        click.echo(f"  {'Discount (' + dto.coupon_code + ')':<31} {'-' + dto.discount:>20}")
    click.echo(f"  {'Tax':<31} {dto.tax:>20}")
    click.echo(f"  {'Shipping':<31} {dto.shipping:>20}")
    click.echo(f"  {'Order Total':<31} {dto.total:>20}")

    if dto.tracking_number:
        click.echo(f"Tracking: {dto.tracking_number} ({dto.carrier or 'unknown carrier'})")
    if dto.cancellation_reason:
        click.echo(f"Cancelled: {dto.cancellation_reason} (by {dto.cancelled_by})")
    for note in dto.notes:
        click.echo(f"Note: {note}")


@click.command("place")
@click.option("--email", required=True, help="Customer email.")
@click.option("--name", required=True, help="Customer name.")
@click.option("--items", required=True, help="Items as 'ProductId[/VariantId]:Qty,...'.")
@click.option("--address", "address", multiple=True, required=True,
              help="Shipping address field as key=value (repeatable).")
@click.option("--coupon", "coupon_code", default=None, help="Coupon code to apply.")
@click.option("--notes", default=None, help="Order notes.")
@click.option("--user", "user_id", default=None, help="Authenticated user id (omit for guest).")
@click.pass_obj
def order_place(
    settings: Settings,
    email: str,
    name: str,
    items: str,
    address: tuple[str, ...],
    coupon_code: str | None,
    notes: str | None,
    user_id: str | None,
) -> None:
    """Place a new order."""
    command = PlaceOrderCommand(
        items=_parse_items(items),
        customer_email=email,
        customer_name=name,
        shipping_address=_parse_address(address),
        coupon_code=coupon_code,
        notes=notes,
    )
    requester = Requester(user_id=user_id, email=email) if user_id else None

    try:
        dto = order_service(settings).place_order(command, requester)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Order {dto.order_number} placed.")
    _display_order(dto)


@click.command("show")
@click.option("--number", "order_number", required=True, help="Order number (ORD-...).")
@click.option("--user", "user_id", default=None, help="Act as this customer.")
@click.pass_obj
def order_show(settings: Settings, order_number: str, user_id: str | None) -> None:
    """Show details of an existing order."""
    try:
        dto = order_service(settings).get_order(order_number, _requester(user_id))
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    _display_order(dto)


@click.command("list")
@click.option("--status", default=None, help="Filter by status (operator only).")
@click.option("--user", "user_id", default=None, help="List this customer's orders.")
@click.pass_obj
def order_list(settings: Settings, status: str | None, user_id: str | None) -> None:
    """List orders, newest first."""
    try:
        orders = order_service(settings).list_orders(_requester(user_id), status=status)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'Number':<26} {'Status':<11} {'Payment':<9} {'Total':>10}")
    click.echo("-" * 59)
    for dto in orders:
        click.echo(f"{dto.order_number:<26} {dto.status:<11} {dto.payment_status:<9} {dto.total:>10}")


@click.command("cancel")
@click.option("--id", "order_id", required=True, help="Order id to cancel.")
@click.option("--reason", default=None, help="Cancellation reason.")
@click.option("--user", "user_id", default=None, help="Act as this customer.")
@click.pass_obj
def order_cancel(settings: Settings, order_id: str, reason: str | None, user_id: str | None) -> None:
    """Cancel a pending or processing order (restores stock)."""
    try:
        dto = order_service(settings).cancel_order(order_id, _requester(user_id), reason)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Order {dto.order_number} cancelled.")


@click.command("status")
@click.option("--id", "order_id", required=True, help="Order id.")
@click.option("--status", required=True, help="New status.")
@click.option("--payment", "payment_status", default=None, help="New payment status.")
@click.pass_obj
def order_status(
    settings: Settings, order_id: str, status: str, payment_status: str | None
) -> None:
    """Update an order's status (operator only)."""
    try:
        dto = order_service(settings).update_status(
            order_id, status, OPERATOR, payment_status=payment_status
        )
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Order {dto.order_number} is now {dto.status} (payment={dto.payment_status}).")


@click.command("track")
@click.option("--id", "order_id", required=True, help="Order id.")
@click.option("--tracking", "tracking_number", required=True, help="Tracking number.")
@click.option("--carrier", default=None, help="Carrier name.")
@click.pass_obj
def order_track(
    settings: Settings, order_id: str, tracking_number: str, carrier: str | None
) -> None:
    """Attach tracking details and mark the order shipped."""
    try:
        dto = order_service(settings).update_tracking(
            order_id, tracking_number, OPERATOR, carrier=carrier
        )
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Order {dto.order_number} shipped — tracking {dto.tracking_number}.")


@click.command("note")
@click.option("--id", "order_id", required=True, help="Order id.")
@click.option("--note", required=True, help="Note text.")
@click.pass_obj
def order_note(settings: Settings, order_id: str, note: str) -> None:
    """Add an internal note to an order."""
    try:
        dto = order_service(settings).add_note(order_id, note, OPERATOR)
    except DomainException as exc:
        raise click.ClickException(f"[{exc.code}] {exc}")

    click.echo(f"Note added to order {dto.order_number}.")
