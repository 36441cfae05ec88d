import asyncio
import time
from quelea.client.producer import Producer
from quelea.client.transport import SqsTransport
from quelea.config import get_settings


async def main():
    # Reads AWS_QUEUE_URL / AWS_REGION / credentials from the environment
    settings = get_settings()
    transport = SqsTransport(settings.queue_url, **settings.client_kwargs())
    producer = Producer(transport)

    print("Sending messages to SQS...")
    for i in range(10):
        msg_id = await producer.send(
            {
                "id": int(time.time() * 1000),
                "type": "user_signup",
                "data": {"username": f"johndoe{i}", "email": f"john{i}@example.com"},
            }
        )
        print(f"Sent message {i} with ID: {msg_id}")

    await transport.close()


if __name__ == "__main__":
    asyncio.run(main())
