"""In-process listener demo: dispatch, handler failure and reconnection.

    python examples/listen_memory.py
"""

import asyncio
import logging

from notilisten import BackoffConfig, Listener, ListenerConfig, MemoryBroker


async def on_price(notification, session, stop):
    print(f"price  {notification.payload}")


async def on_order(notification, session, stop):
    if notification.payload == "bad":
        raise ValueError("order payload rejected")
    print(f"order  {notification.payload}")


async def main():
    broker = MemoryBroker()
    listener = Listener(
        broker.connect,
        config=ListenerConfig(backoff=BackoffConfig(base_delay=0.2, max_delay=2.0)),
        on_state_change=lambda state: print(f"-- {state.value}"),
    )
    listener.handle("prices", on_price)
    listener.handle("orders", on_order)

    stop = asyncio.Event()
    task = asyncio.create_task(listener.listen(stop))

    await broker.wait_subscribed("orders", timeout=5)
    broker.publish("prices", "101.5")
    broker.publish("orders", "bad")
    broker.publish("orders", "A-1")
    await asyncio.sleep(0.1)

    broker.fail_sessions()
    await asyncio.sleep(0.5)
    await broker.wait_subscribed("orders", timeout=5)
    broker.publish("prices", "102.0")
    await asyncio.sleep(0.1)

    stop.set()
    await task
    print(listener.stats)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
