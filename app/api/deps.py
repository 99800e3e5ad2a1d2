from fastapi import Depends, Request

from app.realtime.hub import RealtimeHub
from app.services.chat_gateway import ChatGateway

def get_realtime_hub(request: Request) -> RealtimeHub:
    return request.app.state.realtime

def get_chat_gateway(hub: RealtimeHub = Depends(get_realtime_hub)) -> ChatGateway:
    return hub.gateway
