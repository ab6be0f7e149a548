"""
Tests for CartService: cache-first loading, mutations, pending ids and totals.
"""

import asyncio
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError

from factories import item_payload, make_cart, rich_item_payload, settle
from table_client.events import CART_INVALIDATED, CART_UPDATED, PAYMENT_CONFIRMED
from table_client.exceptions import TransportError, ValidationError
from table_client.schemas.cart import Cart
from table_client.schemas.location import ProductDescriptor, TableSession
from table_client.services.cart_service import CartService


@pytest.fixture
def cart_service(context):
    service = CartService(context)
    yield service
    service.close()


@pytest.fixture
def loaded_cart():
    return make_cart([
        rich_item_payload(10, quantity=2, price="5.00"),
        rich_item_payload(11, quantity=1, price="3.50"),
    ])


def cached_cart(context):
    return context.persistence.load_cart()


def malformed_cart_error():
    with pytest.raises(SchemaValidationError) as exc_info:
        Cart.model_validate({"id": "not-a-number", "items": []})
    return exc_info.value


class TestTotals:

    def test_total_of_items(self, cart_service, loaded_cart):
        cart_service.cart = loaded_cart

        assert cart_service.total == Decimal("13.50")
        assert cart_service.total_minor == 1350

    def test_total_without_cart_is_zero(self, cart_service):
        assert cart_service.total == Decimal("0.00")


class TestActivation:

    @pytest.mark.asyncio
    async def test_cached_cart_is_merged_with_background_refresh(self, cart_service, context, mock_api, loaded_cart):
        context.persistence.save_cart(loaded_cart)
        mock_api.fetch_cart.return_value = make_cart([item_payload(10, quantity=2, price="5.00")])

        cart = await cart_service.activate()

        mock_api.fetch_cart.assert_awaited_once_with("session-test")
        assert [item.id for item in cart.items] == [10]
        assert cart.items[0].product.product_image == "https://img.test/10.jpg"
        assert cached_cart(context) == cart

    @pytest.mark.asyncio
    async def test_load_failure_without_cache_is_raised(self, cart_service, mock_api):
        mock_api.fetch_cart.side_effect = TransportError("API Error: 503 Service Unavailable", status_code=503)

        with pytest.raises(TransportError):
            await cart_service.activate()

        assert cart_service.cart is None
        assert cart_service.loading is False
        assert isinstance(cart_service.last_error, TransportError)

    @pytest.mark.asyncio
    async def test_background_refresh_failure_keeps_cached_cart(self, cart_service, context, mock_api, loaded_cart):
        context.persistence.save_cart(loaded_cart)
        mock_api.fetch_cart.side_effect = TransportError("offline")

        cart = await cart_service.activate()

        assert cart == loaded_cart
        assert cart_service.last_error is None

    @pytest.mark.asyncio
    async def test_malformed_background_refresh_keeps_cached_cart(self, cart_service, context, mock_api,
                                                                  loaded_cart):
        context.persistence.save_cart(loaded_cart)
        mock_api.fetch_cart.side_effect = malformed_cart_error()

        cart = await cart_service.activate()

        assert cart == loaded_cart
        assert cart_service.last_error is None
        assert cart_service.loading is False

    @pytest.mark.asyncio
    async def test_malformed_first_load_is_raised(self, cart_service, mock_api):
        mock_api.fetch_cart.side_effect = malformed_cart_error()

        with pytest.raises(SchemaValidationError):
            await cart_service.activate()

        assert isinstance(cart_service.last_error, SchemaValidationError)

    @pytest.mark.asyncio
    async def test_retry_after_failure_clears_error(self, cart_service, mock_api, loaded_cart):
        mock_api.fetch_cart.side_effect = [TransportError("offline"), loaded_cart]

        with pytest.raises(TransportError):
            await cart_service.refresh()
        cart = await cart_service.refresh()

        assert cart == loaded_cart
        assert cart_service.last_error is None

    @pytest.mark.asyncio
    async def test_loading_flag_set_while_first_fetch_runs(self, cart_service, mock_api, loaded_cart):
        seen = []

        async def fetch(session_id):
            seen.append(cart_service.loading)
            return loaded_cart

        mock_api.fetch_cart.side_effect = fetch

        await cart_service.refresh()

        assert seen == [True]
        assert cart_service.loading is False


class TestUpdateQuantity:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_quantity_below_one_is_noop(self, cart_service, mock_api, loaded_cart, quantity):
        cart_service.cart = loaded_cart

        result = await cart_service.update_quantity(10, quantity)

        assert result == loaded_cart
        mock_api.update_cart_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_merges_and_writes_through(self, cart_service, context, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        mock_api.update_cart_item.return_value = make_cart([
            item_payload(10, quantity=3, price="5.00"),
            item_payload(11, quantity=1, price="3.50"),
        ])

        cart = await cart_service.update_quantity(10, 3)

        mock_api.update_cart_item.assert_awaited_once_with("session-test", 10, 3)
        assert cart.find_item(10).quantity == 3
        assert cart.find_item(10).variant.fullName == "Dish 10 - Regular"
        assert cached_cart(context).find_item(10).quantity == 3
        assert cart_service.total == Decimal("18.50")

    @pytest.mark.asyncio
    async def test_item_is_pending_during_request(self, cart_service, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        seen = []

        async def update(session_id, item_id, quantity):
            seen.append(cart_service.pending_ids)
            return loaded_cart

        mock_api.update_cart_item.side_effect = update

        await cart_service.update_quantity(10, 2)

        assert seen == [frozenset({10})]
        assert cart_service.pending_ids == frozenset()

    @pytest.mark.asyncio
    async def test_failure_is_swallowed_and_commits_nothing(self, cart_service, context, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        context.persistence.save_cart(loaded_cart)
        mock_api.update_cart_item.side_effect = TransportError("Out of stock", status_code=422)

        result = await cart_service.update_quantity(10, 5)

        assert result == loaded_cart
        assert cached_cart(context).find_item(10).quantity == 2
        assert cart_service.pending_ids == frozenset()

    @pytest.mark.asyncio
    async def test_same_item_mutations_are_serialized(self, cart_service, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        gate = asyncio.Event()
        started = []

        async def update(session_id, item_id, quantity):
            started.append(quantity)
            if quantity == 3:
                await gate.wait()
            return make_cart([item_payload(10, quantity=quantity, price="5.00")])

        mock_api.update_cart_item.side_effect = update

        first = asyncio.create_task(cart_service.update_quantity(10, 3))
        second = asyncio.create_task(cart_service.update_quantity(10, 4))
        await settle()

        assert started == [3]
        assert cart_service.pending_ids == frozenset({10})

        gate.set()
        await asyncio.gather(first, second)

        assert started == [3, 4]
        assert cart_service.cart.find_item(10).quantity == 4
        assert cart_service.pending_ids == frozenset()

    @pytest.mark.asyncio
    async def test_different_items_update_concurrently(self, cart_service, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        gate = asyncio.Event()
        started = []

        async def update(session_id, item_id, quantity):
            started.append(item_id)
            await gate.wait()
            return loaded_cart

        mock_api.update_cart_item.side_effect = update

        tasks = [
            asyncio.create_task(cart_service.update_quantity(10, 3)),
            asyncio.create_task(cart_service.update_quantity(11, 2)),
        ]
        await settle()

        assert sorted(started) == [10, 11]
        assert cart_service.pending_ids == frozenset({10, 11})

        gate.set()
        await asyncio.gather(*tasks)
        assert cart_service.pending_ids == frozenset()


class TestRemove:

    @pytest.mark.asyncio
    async def test_remove_drops_item(self, cart_service, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        mock_api.remove_cart_item.return_value = make_cart([item_payload(11, quantity=1, price="3.50")])

        cart = await cart_service.remove(10)

        mock_api.remove_cart_item.assert_awaited_once_with("session-test", 10)
        assert [item.id for item in cart.items] == [11]
        assert cart_service.total == Decimal("3.50")

    @pytest.mark.asyncio
    async def test_remove_failure_is_swallowed(self, cart_service, mock_api, loaded_cart):
        cart_service.cart = loaded_cart
        mock_api.remove_cart_item.side_effect = TransportError("API Error: 500 Internal Server Error")

        cart = await cart_service.remove(10)

        assert cart == loaded_cart
        assert cart_service.pending_ids == frozenset()


class TestAdd:

    @pytest.mark.asyncio
    async def test_add_without_ids_is_rejected_before_request(self, cart_service, mock_api):
        product = ProductDescriptor(name="Mystery", price="9.00")

        with pytest.raises(ValidationError):
            await cart_service.add(product)

        mock_api.add_to_cart.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_falls_back_to_descriptor_id(self, cart_service, mock_api):
        mock_api.add_to_cart.return_value = make_cart([item_payload(1, price="10.00")])
        product = ProductDescriptor(id=7, name="Som Tam", price="10.00")

        await cart_service.add(product)

        payload = mock_api.add_to_cart.await_args.args[0]
        assert payload.session_id == "session-test"
        assert payload.product_id == 7
        assert payload.product_variant_id == 7
        assert payload.uom_id == 1
        assert payload.uom_price == Decimal("10.00")
        assert payload.quantity == 1

    @pytest.mark.asyncio
    async def test_add_does_not_track_pending(self, cart_service, mock_api):
        seen = []

        async def add(payload):
            seen.append(cart_service.pending_ids)
            return make_cart([item_payload(1)])

        mock_api.add_to_cart.side_effect = add

        await cart_service.add(ProductDescriptor(product_id=3, product_variant_id=4, price="1.00"))

        assert seen == [frozenset()]

    @pytest.mark.asyncio
    async def test_add_failure_propagates(self, cart_service, mock_api):
        mock_api.add_to_cart.side_effect = TransportError("Product unavailable", status_code=422)

        with pytest.raises(TransportError, match="Product unavailable"):
            await cart_service.add(ProductDescriptor(id=7, price="10.00"))


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_table_visit_creates_cart_for_table_session(self, cart_service, mock_api):
        mock_api.start_table_session.return_value = TableSession(session_id=55, table_id=4)
        mock_api.create_cart.return_value = make_cart([])

        cart = await cart_service.start_table_visit(4)

        mock_api.start_table_session.assert_awaited_once_with(4)
        mock_api.create_cart.assert_awaited_once_with("session-test", 55)
        assert isinstance(cart, Cart)

    @pytest.mark.asyncio
    async def test_confirmed_payment_invalidates_cart(self, cart_service, context, loaded_cart, recorded_events):
        cart_service.cart = loaded_cart
        context.persistence.save_cart(loaded_cart)

        await context.events.publish(PAYMENT_CONFIRMED, {"token": "tok-1"})

        assert cart_service.cart is None
        assert cached_cart(context) is None
        assert CART_INVALIDATED in [event_type for event_type, _ in recorded_events]

    @pytest.mark.asyncio
    async def test_updates_are_published(self, cart_service, mock_api, loaded_cart, recorded_events):
        mock_api.fetch_cart.return_value = loaded_cart

        await cart_service.refresh()

        assert recorded_events[-1] == (CART_UPDATED, {"cart_id": 1, "total_items": 3, "total_minor": 1350})


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_create_add_update_remove(self, cart_service, mock_api):
        product_a = ProductDescriptor(id=1, product_id=100, product_variant_id=101, name="A", price="10.00")

        mock_api.create_cart.return_value = make_cart([])
        await cart_service.create_cart(table_session_id=9)
        assert cart_service.cart.items == []

        mock_api.add_to_cart.return_value = make_cart([rich_item_payload(1, quantity=1, price="10.00")])
        await cart_service.add(product_a)

        mock_api.add_to_cart.return_value = make_cart([item_payload(1, quantity=2, price="10.00")])
        await cart_service.add(product_a)
        assert len(cart_service.cart.items) == 1
        assert cart_service.cart.items[0].quantity == 2

        mock_api.update_cart_item.return_value = make_cart([item_payload(1, quantity=3, price="10.00")])
        await cart_service.update_quantity(1, 3)
        assert cart_service.total == Decimal("30.00")
        assert cart_service.cart.items[0].product.product_image == "https://img.test/1.jpg"

        mock_api.remove_cart_item.return_value = make_cart([])
        await cart_service.remove(1)
        assert cart_service.cart.items == []
        assert cart_service.total == Decimal("0")
