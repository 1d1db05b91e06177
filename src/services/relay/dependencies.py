# src/services/relay/dependencies.py
from fastapi import Request

from src.services.relay.protocol import BroadcastProtocol


def get_protocol(request: Request) -> BroadcastProtocol:
    return request.app.state.protocol
