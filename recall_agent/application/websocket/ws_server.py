from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from typing import Dict, Any
import structlog

from recall_agent.domain.models.agent_state import TurnRequest
from recall_agent.domain.models.errors import RecallAgentError, Unauthorized
from .connection_manager import ConnectionManager, user_room
from .schema.events import AssistantMessageEvent, ConnectionEvent, EventType, JoinEvent, UserMessage

logger = structlog.get_logger(__name__)

router = APIRouter()


def _fields(data: Dict[str, Any]) -> Dict[str, Any]:
    # The event class already fixes "type"
    return {key: value for key, value in data.items() if key != "type"}


@router.websocket("/ws")
async def agent_websocket(websocket: WebSocket):
    """Main WebSocket endpoint for agent interaction"""

    services = websocket.app.state.services
    connection_manager: ConnectionManager = services.connection_manager

    connection_id = await connection_manager.connect(websocket)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except (KeyError, ValueError) as e:
                # Binary frames have no "text"; undecodable text raises JSONDecodeError
                await connection_manager.send_error(connection_id, f"Malformed frame: {e}", "invalid_event")
                continue

            event_type = data.get("type") if isinstance(data, dict) else None

            try:
                if event_type == EventType.JOIN:
                    await handle_join(services, connection_id, JoinEvent(**_fields(data)))
                elif event_type == EventType.USER_MESSAGE:
                    await process_user_message(services, connection_id, UserMessage(**_fields(data)))
                else:
                    await connection_manager.send_error(
                        connection_id,
                        f"Unsupported event type: {event_type}",
                        "invalid_event"
                    )
            except ValidationError as e:
                await connection_manager.send_error(connection_id, f"Malformed event: {e}", "invalid_event")

    except WebSocketDisconnect:
        logger.info("Client disconnected", connection_id=connection_id)
    finally:
        await connection_manager.disconnect(connection_id)


async def handle_join(services, connection_id: str, event: JoinEvent):
    """Place a connection in its user's room after verifying the token"""

    connection_manager: ConnectionManager = services.connection_manager
    try:
        claims = services.token_validator.verify(event.token)
    except Unauthorized as e:
        await connection_manager.send_error(connection_id, e.message, e.error_code)
        return

    room = user_room(claims.user_id)
    await connection_manager.join(connection_id, room)
    await connection_manager.send_event(
        connection_id,
        ConnectionEvent(status="joined", connection_id=connection_id, room=room)
    )


async def process_user_message(services, connection_id: str, message: UserMessage):
    """Run one turn and deliver its output to the user's room, or an error to the sender"""

    connection_manager: ConnectionManager = services.connection_manager

    try:
        claims = services.token_validator.verify(message.token)
        if message.user_id is not None and message.user_id != claims.user_id:
            raise Unauthorized("Token does not match userId")

        room = user_room(claims.user_id)
        if not connection_manager.is_member(connection_id, room):
            await connection_manager.join(connection_id, room)

        result = await services.orchestrator.run_turn(
            TurnRequest(
                user_id=claims.user_id,
                conversation_id=message.conversation_id,
                text=message.text
            )
        )
    except RecallAgentError as e:
        logger.warning("Turn rejected", connection_id=connection_id, error_code=e.error_code)
        await connection_manager.send_error(connection_id, e.message, e.error_code)
        return

    await connection_manager.send_to_room(
        room,
        AssistantMessageEvent(text=result.output, conversation_id=result.conversation_id)
    )


def describe_connections(connection_manager: ConnectionManager) -> Dict[str, Any]:
    return {
        "active_connections": len(connection_manager.active_connections),
        "rooms": len(connection_manager.rooms),
    }
