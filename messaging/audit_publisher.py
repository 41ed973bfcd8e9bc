import asyncio
import aio_pika
import json
import logging
import uuid
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum

from anyio import from_thread

from messaging import config

logger = logging.getLogger(__name__)

AUDIT_EXCHANGE = "events_exchange"
SERVICE_ORIGIN = "teams_service"

# Strong references to in-flight publications; the loop only keeps weak ones.
_pending_tasks: set[asyncio.Task] = set()


def generate_log_payload(
    event_type: str,
    entity_type: str,
    entity_id,
    operation_type: str,
    org_id: int,
    user_id,
    request_object=None,
    old_data: dict | None = None,
    new_data: dict | None = None,
    service_origin: str = SERVICE_ORIGIN,
) -> dict:
    """
    Build a structured audit payload. ``old_data`` and ``new_data`` are
    converted to JSON-ready values.
    """
    ip = request_object.client.host if request_object and request_object.client else "127.0.0.1"

    correlation_id = None
    if request_object is not None:
        correlation_id = request_object.headers.get("X-Correlation-ID")

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "correlation_id": correlation_id or str(uuid.uuid4()),
        "org_id": org_id,
        "user_id": str(user_id),
        "service_origin": service_origin,
        "event_type": event_type,
        "operation_type": operation_type,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "old_data": convert_values(old_data),
        "new_data": convert_values(new_data),
        "ip_address": ip
    }


async def publish_audit_log(log_payload: dict):
    """
    Publish an audit log to the events exchange, routed by its event type.

    The body uses the Celery message layout expected by the audit worker.
    """
    try:
        connection = await aio_pika.connect_robust(config.RABBITMQ_URL)

        async with connection:
            channel = await connection.channel()

            exchange = await channel.declare_exchange(
                AUDIT_EXCHANGE,
                aio_pika.ExchangeType.TOPIC,
                durable=True
            )

            celery_body = (
                [log_payload],
                {},
                {"callbacks": None, "errbacks": None, "chain": None, "chord": None},
            )

            task_id = str(uuid.uuid4())
            celery_headers = {
                'lang': 'py',
                'task': 'process_audit_log',
                'id': task_id,
                'root_id': task_id,
                'parent_id': None,
                'group': None,
            }

            message = aio_pika.Message(
                body=json.dumps(celery_body).encode('utf-8'),
                headers=celery_headers,
                content_type='application/json',
                content_encoding='utf-8',
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT
            )

            routing_key = log_payload["event_type"]

            await exchange.publish(message, routing_key=routing_key)

            logger.info("Audit log sent to '%s' with routing key '%s'", AUDIT_EXCHANGE, routing_key)

    except aio_pika.exceptions.AMQPConnectionError as e:
        logger.error("RabbitMQ connection error while publishing audit log: %s", e)
    except Exception:
        logger.error("Failed to publish audit log", exc_info=True)


def model_to_dict(model_instance):
    if not model_instance:
        return {}
    if is_dataclass(model_instance):
        return asdict(model_instance)
    return {c.name: getattr(model_instance, c.name) for c in model_instance.__table__.columns}


def convert_values(obj):
    if isinstance(obj, dict):
        return {k: convert_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_values(i) for i in obj]
    elif isinstance(obj, uuid.UUID):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, Enum):
        return obj.value
    else:
        return obj


def _schedule_publication(log_payload: dict):
    task = asyncio.get_running_loop().create_task(publish_audit_log(log_payload))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


def run_async_audit(log_payload: dict):
    """
    Fire-and-forget publication. Never raises.

    Route handlers run in a worker thread, so the publication is handed over
    to the event loop that owns the request.
    """
    if not config.AUDIT_ENABLED:
        return

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        try:
            from_thread.run_sync(_schedule_publication, log_payload)
        except RuntimeError:
            logger.warning("No event loop to publish on, dropping audit log '%s'", log_payload.get("event_type"))
        return

    _schedule_publication(log_payload)
