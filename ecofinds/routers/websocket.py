from fastapi import APIRouter, WebSocket

from ecofinds.dependencies import db_dependency
from ecofinds.websocket.chat import chat_websocket_multi

router = APIRouter(prefix="/ws", tags=["ws"])


@router.websocket("/chat")
async def websocket_chat_endpoint(websocket: WebSocket, db: db_dependency):
    """Multi-room chat socket.

    Connect to: ws://host/ws/chat?token=your_token
    """
    await chat_websocket_multi(websocket, db)
