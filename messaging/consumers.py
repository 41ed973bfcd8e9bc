import asyncio
import aio_pika
import json
import logging

from messaging import config
from services.team_sync import sync_external_memberships
from shared.database import SessionLocal

logger = logging.getLogger(__name__)

TEAM_SYNC_EXCHANGE = "identity_events_exchange"
TEAM_SYNC_QUEUE = "teams_service.queue.team_sync"
TEAM_SYNC_ROUTING_KEY = "team.sync.requested"

RETRY_DELAY = 10


def process_team_sync_message(message_data: dict) -> dict:
    db = SessionLocal()
    try:
        return sync_external_memberships(db, message_data)
    finally:
        db.close()


async def on_message(message: aio_pika.IncomingMessage) -> None:
    # requeue=False: a message that failed once would fail again
    async with message.process(requeue=False):
        try:
            data = json.loads(message.body.decode())
            logger.info("Received team sync message (routing key '%s'): %s", message.routing_key, data)

            result = await asyncio.to_thread(process_team_sync_message, data)

            logger.info("Team sync result: %s", result)

        except json.JSONDecodeError as e:
            logger.error("Could not decode team sync message: %s. Rejecting it.", e)
            raise
        except Exception:
            logger.error("Unexpected error while processing team sync message", exc_info=True)
            raise


async def main_consumer():
    while True:
        connection = None
        try:
            logger.info("Team sync consumer: connecting to RabbitMQ at %s", config.RABBITMQ_URL)
            connection = await aio_pika.connect_robust(config.RABBITMQ_URL, timeout=15)

            async with connection:
                channel = await connection.channel()
                await channel.set_qos(prefetch_count=10)

                exchange = await channel.declare_exchange(
                    TEAM_SYNC_EXCHANGE,
                    aio_pika.ExchangeType.DIRECT,
                    durable=True
                )

                queue = await channel.declare_queue(TEAM_SYNC_QUEUE, durable=True)
                await queue.bind(exchange, routing_key=TEAM_SYNC_ROUTING_KEY)

                logger.info("Team sync consumer: '%s' waiting for '%s'", TEAM_SYNC_QUEUE, TEAM_SYNC_ROUTING_KEY)

                await queue.consume(on_message)

                await asyncio.Future()

        except aio_pika.exceptions.AMQPConnectionError as e:
            logger.warning("Team sync consumer: RabbitMQ connection failed: %s. Retrying in %ss", e, RETRY_DELAY)
        except ConnectionRefusedError as e:
            logger.warning("Team sync consumer: connection refused: %s. Retrying in %ss", e, RETRY_DELAY)
        except asyncio.CancelledError:
            logger.info("Team sync consumer: task cancelled, stopping")
            break
        except Exception:
            logger.error("Team sync consumer: unexpected error. Retrying in %ss", RETRY_DELAY, exc_info=True)
        finally:
            if connection and not connection.is_closed:
                await connection.close()

        await asyncio.sleep(RETRY_DELAY)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(main_consumer())
    except KeyboardInterrupt:
        logger.info("Team sync consumer stopped")
