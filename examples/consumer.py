import asyncio
import logging
import random
import signal
from quelea.config import get_settings
from quelea.runtime import QueueRuntime


async def handle(payload: dict):
    print(f"Processing {payload.get('type')}: {payload.get('data')}")
    # Simulate processing work
    await asyncio.sleep(random.uniform(0.5, 2.0))


async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    settings = get_settings()
    async with QueueRuntime.from_settings(settings) as runtime:
        print("Consumer started. Long polling for messages...")
        cycles = await runtime.orchestrator.run_forever(
            handle,
            max_batch=settings.max_batch,
            wait_seconds=settings.wait_seconds,
            lease_seconds=settings.lease_seconds,
            stop=stop,
        )
        print(f"Stopped after {cycles} cycle(s)")


if __name__ == "__main__":
    asyncio.run(main())
