import asyncio


async def wait_for_state(controller, predicate, timeout=1.0):
    """Espera hasta que el estado del controlador cumpla la condición."""
    with controller.subscribe_state() as states:
        async def _wait():
            async for state in states:
                if predicate(state):
                    return state
        return await asyncio.wait_for(_wait(), timeout)


def drain(subscription):
    """Todo lo que hay pendiente en una suscripción, sin esperar."""
    items = []
    while True:
        try:
            items.append(subscription.get_nowait())
        except asyncio.QueueEmpty:
            return items
