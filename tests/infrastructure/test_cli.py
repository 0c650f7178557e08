"""End-to-end tests for the click CLI against a temporary data directory."""

import re

import pytest
from click.testing import CliRunner

from ordercore.infrastructure.cli.main import cli


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.delenv("ORDERCORE_CONFIG", raising=False)
    monkeypatch.delenv("ORDERCORE_DATA_DIR", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, ["--data-dir", str(tmp_path), *args])

    return invoke


def _add_widget(run, stock: int = 5):
    result = run(
        "product", "add", "--id", "prod-1", "--name", "Widget",
        "--price", "25.00", "--stock", str(stock),
    )
    assert result.exit_code == 0, result.output
    return result


def _place(run, *extra):
    return run(
        "order", "place",
        "--email", "alice@example.com",
        "--name", "Alice",
        "--items", "prod-1:2",
        "--address", "line1=1 Main St",
        "--address", "city=Springfield",
        "--user", "user-1",
        *extra,
    )


def _order_id(output: str) -> str:
    return re.search(r"Id:\s+(\S+)", output).group(1)


class TestProductCommands:

    def test_add_and_list(self, run):
        result = _add_widget(run)
        assert "Product prod-1 'Widget' added at $25.00" in result.output

        listed = run("product", "list")
        assert listed.exit_code == 0
        assert "Widget" in listed.output

    def test_add_with_variant(self, run):
        result = run(
            "product", "add", "--id", "shirt", "--name", "Shirt", "--price", "20.00",
            "--stock", "10", "--variant", "var-l:SKU-L:Large:4:22.50",
        )
        assert result.exit_code == 0, result.output
        assert "$22.50" in run("product", "list").output

    def test_duplicate_product_fails(self, run):
        _add_widget(run)
        result = run(
            "product", "add", "--id", "prod-1", "--name", "Other", "--price", "1", "--stock", "1"
        )
        assert result.exit_code == 1
        assert "[VALIDATION_ERROR]" in result.output

    def test_empty_catalog(self, run):
        assert "No products found." in run("product", "list").output


class TestOrderCommands:

    def test_place_show_and_cancel(self, run):
        _add_widget(run)
        placed = _place(run)
        assert placed.exit_code == 0, placed.output
        assert "placed" in placed.output
        assert "64.99" in placed.output

        number = re.search(r"Order (ORD-\S+)", placed.output).group(1)
        shown = run("order", "show", "--number", number, "--user", "user-1")
        assert shown.exit_code == 0
        assert "status=pending" in shown.output

        order_id = _order_id(placed.output)
        cancelled = run("order", "cancel", "--id", order_id, "--user", "user-1")
        assert cancelled.exit_code == 0, cancelled.output
        assert "cancelled" in cancelled.output

        again = run("order", "cancel", "--id", order_id, "--user", "user-1")
        assert again.exit_code == 1
        assert "[INVALID_STATE_TRANSITION]" in again.output

    def test_insufficient_stock(self, run):
        _add_widget(run, stock=1)
        result = _place(run)
        assert result.exit_code == 1
        assert "[INSUFFICIENT_STOCK]" in result.output

    def test_bad_item_format(self, run):
        _add_widget(run)
        result = run(
            "order", "place", "--email", "a@example.com", "--name", "A",
            "--items", "prod-1", "--address", "city=X",
        )
        assert result.exit_code == 2

    def test_operator_workflow(self, run):
        _add_widget(run)
        order_id = _order_id(_place(run).output)

        status = run("order", "status", "--id", order_id, "--status", "processing", "--payment", "paid")
        assert status.exit_code == 0, status.output
        assert "processing" in status.output

        tracked = run("order", "track", "--id", order_id, "--tracking", "1Z999", "--carrier", "UPS")
        assert tracked.exit_code == 0, tracked.output
        assert "1Z999" in tracked.output

        noted = run("order", "note", "--id", order_id, "--note", "Fragile")
        assert noted.exit_code == 0

        listed = run("order", "list", "--status", "shipped")
        assert "shipped" in listed.output

    def test_customer_list(self, run):
        _add_widget(run)
        _place(run)
        assert "ORD-" in run("order", "list", "--user", "user-1").output
        assert "No orders found." in run("order", "list", "--user", "user-2").output


class TestCouponCommands:

    def test_create_validate_and_usage(self, run):
        created = run(
            "coupon", "create", "--code", "save10", "--description", "Ten percent",
            "--type", "percentage", "--value", "10",
        )
        assert created.exit_code == 0, created.output
        assert "Coupon SAVE10 created" in created.output

        validated = run("coupon", "validate", "--code", "SAVE10", "--total", "100")
        assert validated.exit_code == 0, validated.output
        assert "Discount: 10.00" in validated.output

        assert "No usage recorded." in run("coupon", "usage", "--code", "SAVE10").output

    def test_order_with_coupon_is_recorded(self, run):
        _add_widget(run)
        run("coupon", "create", "--code", "FIVE", "--description", "Five off",
            "--type", "fixed", "--value", "5")
        placed = _place(run, "--coupon", "FIVE")
        assert placed.exit_code == 0, placed.output
        assert "Discount (FIVE)" in placed.output

        usage = run("coupon", "usage", "--code", "FIVE")
        assert "user-1" in usage.output

    def test_unknown_coupon(self, run):
        result = run("coupon", "validate", "--code", "NOPE", "--total", "5")
        assert result.exit_code == 1
        assert "[INVALID_COUPON]" in result.output
