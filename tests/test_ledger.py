import asyncio
import math
from uuid import uuid4

import pytest

from conftest import make_product
from core.errors import ResultKind
from services.ledger import InventoryLedger


class TestUpsertBySku:
    async def test_new_sku_creates_product(self, ledger):
        result = await ledger.upsert_by_sku("ABC-001", "Widget", 0)

        assert result.success
        assert result.message == "Added new product: ABC-001"
        assert ledger.find_by_sku("ABC-001").quantity == 0

    async def test_existing_sku_adds_delta(self, ledger):
        await ledger.upsert_by_sku("ABC-001", "Widget", 0)

        first = await ledger.upsert_by_sku("ABC-001", "Widget", 10)
        second = await ledger.upsert_by_sku("ABC-001", "Widget", 5)

        assert first.message == "Updated ABC-001: added 10 units (total: 10)"
        assert second.message == "Updated ABC-001: added 5 units (total: 15)"
        assert ledger.find_by_sku("ABC-001").quantity == 15

    async def test_repeated_upserts_are_additive(self, ledger):
        await make_product(ledger, quantity=3)
        await ledger.upsert_by_sku("ABC-001", "Widget", 4)
        await ledger.upsert_by_sku("ABC-001", "Widget", 6)

        assert ledger.find_by_sku("ABC-001").quantity == 13

    async def test_sku_match_ignores_case_and_whitespace(self, ledger):
        await make_product(ledger, quantity=5)

        result = await ledger.upsert_by_sku("  abc-001 ", "Widget", 2)

        assert result.success
        assert len(ledger.products) == 1
        assert ledger.find_by_sku("ABC-001").quantity == 7

    async def test_non_ascii_sku_match_ignores_case(self, ledger):
        await ledger.upsert_by_sku("ÄBC-1", "Widget", 3)

        result = await ledger.upsert_by_sku("äbc-1", "Widget", 2)

        assert result.success
        assert len(ledger.products) == 1
        assert ledger.find_by_sku("äbc-1").quantity == 5
        assert ledger.find_by_sku("ÄBC-1").sku == "ÄBC-1"

    async def test_upsert_rewrites_name(self, ledger):
        await make_product(ledger, quantity=5)
        await ledger.upsert_by_sku("ABC-001", "Widget Pro", 1)

        assert ledger.find_by_sku("ABC-001").name == "Widget Pro"

    async def test_stale_projection_does_not_duplicate(self, ctx, ledger):
        other = InventoryLedger(ctx.gateway)
        await make_product(other, quantity=5)

        # ledger never saw the product, the database lookup still finds it
        result = await ledger.upsert_by_sku("ABC-001", "Widget", 1)

        assert result.message.startswith("Updated ABC-001")
        assert len(ledger.products) == 1
        assert ledger.find_by_sku("ABC-001").quantity == 6

    async def test_negative_delta_below_zero_is_rejected(self, ledger):
        await make_product(ledger, quantity=2)

        result = await ledger.upsert_by_sku("ABC-001", "Widget", -5)

        assert not result.success
        assert result.kind == ResultKind.INSUFFICIENT_STOCK
        assert ledger.find_by_sku("ABC-001").quantity == 2

    async def test_negative_initial_quantity_is_rejected(self, ledger):
        result = await ledger.upsert_by_sku("NEW-1", "New", -1)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert ledger.products == []

    @pytest.mark.parametrize("sku,name", [("", "Widget"), ("   ", "Widget"), ("ABC-001", ""), ("ABC-001", "  ")])
    async def test_blank_sku_or_name_is_rejected(self, ledger, sku, name):
        result = await ledger.upsert_by_sku(sku, name, 1)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert ledger.products == []

    @pytest.mark.parametrize("quantity", [None, "", "abc", "1.5", 2.5, math.nan, math.inf, -math.inf])
    async def test_malformed_quantity_is_rejected(self, ledger, quantity):
        await make_product(ledger, quantity=5)

        result = await ledger.upsert_by_sku("ABC-001", "Widget", quantity)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert ledger.find_by_sku("ABC-001").quantity == 5

    async def test_numeric_text_is_accepted(self, ledger):
        await make_product(ledger, quantity=5)

        result = await ledger.upsert_by_sku("ABC-001", "Widget", " 4 ")

        assert result.success
        assert ledger.find_by_sku("ABC-001").quantity == 9


class TestDecrease:
    async def test_decrease_within_stock(self, ledger):
        product = await make_product(ledger, quantity=5)

        result = await ledger.decrease(product.id, 3)

        assert result.success
        assert result.message == "Successfully dispatched 3 units of ABC-001"
        assert ledger.find(product.id).quantity == 2

    async def test_decrease_to_exactly_zero(self, ledger):
        product = await make_product(ledger, quantity=5)

        result = await ledger.decrease(product.id, 5)

        assert result.success
        assert ledger.find(product.id).quantity == 0

    async def test_insufficient_stock_leaves_quantity(self, ledger):
        product = await make_product(ledger, quantity=5)

        result = await ledger.decrease(product.id, 10)

        assert not result.success
        assert result.kind == ResultKind.INSUFFICIENT_STOCK
        assert "Insufficient stock" in result.message
        assert result.message == "Insufficient stock. Available: 5, Requested: 10"
        assert ledger.find(product.id).quantity == 5

    async def test_unknown_product(self, ledger):
        result = await ledger.decrease(uuid4(), 1)

        assert not result.success
        assert result.kind == ResultKind.NOT_FOUND

    @pytest.mark.parametrize("quantity", [0, -1, "x", None, 1.5])
    async def test_quantity_must_be_positive_whole_number(self, ledger, quantity):
        product = await make_product(ledger, quantity=5)

        result = await ledger.decrease(product.id, quantity)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert ledger.find(product.id).quantity == 5

    async def test_database_decides_when_projection_is_stale(self, ctx, ledger):
        product = await make_product(ledger, quantity=5)
        other = InventoryLedger(ctx.gateway)
        await other.refresh()
        assert (await other.decrease(product.id, 4)).success

        # ledger still believes 5 are available
        result = await ledger.decrease(product.id, 3)

        assert not result.success
        assert result.message == "Insufficient stock. Available: 1, Requested: 3"
        assert ledger.find(product.id).quantity == 1

    async def test_stale_low_projection_is_rechecked(self, ctx, ledger):
        product = await make_product(ledger, quantity=0)
        await InventoryLedger(ctx.gateway).upsert_by_sku("ABC-001", "Widget", 10)
        assert ledger.find(product.id).quantity == 0

        result = await ledger.decrease(product.id, 5)

        assert result.success
        assert ledger.find(product.id).quantity == 5


class TestProjection:
    async def test_total_units_is_sum_of_quantities(self, ledger):
        await make_product(ledger, "A-1", "A", 5)
        await make_product(ledger, "B-1", "B", 7)
        product = await make_product(ledger, "C-1", "C", 0)
        assert ledger.total_units == 12

        await ledger.decrease(ledger.find_by_sku("A-1").id, 2)
        await ledger.upsert_by_sku("C-1", "C", 4)
        assert ledger.total_units == sum(p.quantity for p in ledger.products) == 14

        await ledger.remove(product.id)
        assert ledger.total_units == 10

    async def test_products_ordered_by_creation(self, ledger):
        for sku in ("Z-1", "A-1", "M-1"):
            await make_product(ledger, sku, sku, 1)

        assert [p.sku for p in ledger.products] == ["Z-1", "A-1", "M-1"]

    async def test_refresh_failure_keeps_previous_projection(self, ledger, monkeypatch):
        from core.errors import BackendError

        await make_product(ledger, quantity=5)

        async def broken(*args, **kwargs):
            raise BackendError("connection refused")

        monkeypatch.setattr(ledger._gateway, "list_rows", broken)
        await ledger.refresh()

        assert ledger.total_units == 5
        assert not ledger.loading

    async def test_slow_refresh_does_not_overwrite_newer_one(self, ctx, ledger, monkeypatch):
        product = await make_product(ledger, quantity=5)
        real_list_rows = ledger._gateway.list_rows
        reached, release = asyncio.Event(), asyncio.Event()
        calls = []

        async def slow_first_read(*args, **kwargs):
            rows = await real_list_rows(*args, **kwargs)
            calls.append(rows)
            if len(calls) == 1:
                reached.set()
                await release.wait()
            return rows

        monkeypatch.setattr(ledger._gateway, "list_rows", slow_first_read)
        first = asyncio.create_task(ledger.refresh())
        await reached.wait()
        await ctx.gateway.increment_quantity(product.id, 4)
        await ledger.refresh()
        assert ledger.find(product.id).quantity == 9

        release.set()
        await first

        assert ledger.find(product.id).quantity == 9
        assert ledger.total_units == 9


class TestRemove:
    async def test_remove_product(self, ledger):
        product = await make_product(ledger)

        result = await ledger.remove(product.id)

        assert result.success
        assert result.message == "Product removed successfully"
        assert ledger.find(product.id) is None

    async def test_remove_unknown_product(self, ledger):
        result = await ledger.remove(uuid4())

        assert not result.success
        assert result.kind == ResultKind.NOT_FOUND

    async def test_remove_with_malformed_id(self, ledger):
        result = await ledger.remove("not-a-uuid")

        assert result.kind == ResultKind.NOT_FOUND

    async def test_clear_all(self, ledger):
        await make_product(ledger, "A-1", "A", 5)
        await make_product(ledger, "B-1", "B", 7)

        result = await ledger.clear_all()

        assert result.message == "All products cleared successfully"
        assert ledger.products == []
        assert ledger.total_units == 0


class TestRestock:
    async def test_restock_adds_units(self, ledger):
        product = await make_product(ledger, quantity=2)

        result = await ledger.restock(product.id, 3)

        assert result.success
        assert ledger.find(product.id).quantity == 5

    async def test_restock_unknown_product(self, ledger):
        result = await ledger.restock(uuid4(), 3)

        assert result.kind == ResultKind.NOT_FOUND
