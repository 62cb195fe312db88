"""End-to-end: server render hands state to the first client controller."""

import pytest

from duet.controller import Controller
from duet.hydration import HydrationChannel, serialize_state
from duet.location import Location


class ProductController(Controller):
    initial_state = {"product": None}
    actions = {"set_product": lambda state, product: {**state, "product": product}}

    fetched = 0

    async def component_will_create(self):
        type(self).fetched += 1
        self.store.actions["set_product"]({"id": 7, "name": "Mug"})


@pytest.mark.anyio
async def test_server_state_reused_on_client(server_env, client_env) -> None:
    ProductController.fetched = 0
    server = server_env()
    server_view = await ProductController(Location.from_url("/p/7", key="s"), server).init()
    payload = serialize_state(server.hydration.peek_and_clear())

    client = client_env(hydration=HydrationChannel.from_payload(payload))
    controller = ProductController(Location.from_url("/p/7", key="c"), client)
    client_view = await controller.init()

    assert ProductController.fetched == 1
    assert client_view.state == server_view.state
    assert client_view.state["product"] == {"id": 7, "name": "Mug"}
    assert len(controller.meta.unsubscribe_list) == 1

    # Client-side navigation to another product runs the data hook again.
    other = ProductController(Location.from_url("/p/8"), client)
    await other.init()
    assert ProductController.fetched == 2
