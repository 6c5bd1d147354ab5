from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import relay_backend
from connection import Connection
from constants import LOG_LEVEL, LOG_FILE, WS_POLICY_VIOLATION
from lifecycle import ConnectionLifecycle
from message_router import MessageRouter
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

message_router = MessageRouter(relay_backend)

logger.info("FastAPI application initialized")


@app.websocket("/{target:path}")
async def relay_endpoint(websocket: WebSocket, target: str):
    """Signaling WebSocket. The first path segment names the room to join."""
    connection = Connection(websocket)
    lifecycle = ConnectionLifecycle(connection, f"/{target}", relay_backend, message_router)

    if lifecycle.room_id is None:
        lifecycle.reject()
        await websocket.close(code=WS_POLICY_VIOLATION, reason="Room ID not provided or invalid")
        return

    await websocket.accept()
    connection.start()
    lifecycle.activate()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket disconnected for client {lifecycle.client_id} (code {message.get('code')})")
                break
            text = message.get("text")
            lifecycle.receive(text if text is not None else message.get("bytes", b""))
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected for client {lifecycle.client_id}")
    except Exception as e:
        lifecycle.fail(e)
    finally:
        # Registry cleanup first: it must not depend on any further await
        lifecycle.close()
        connection.close()
        await connection.wait_closed()
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")
