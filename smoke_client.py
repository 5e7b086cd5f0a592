#!/usr/bin/env python3
"""Manual smoke test: join a hire's chat room and send one message

Usage: python smoke_client.py <user_id> <role> <hire_id> [message]
"""
import asyncio
import json
import sys

import websockets

from auth.tokens import create_access_token
from domain.constants import UserRole
from settings import get_settings


def build_uri(user_id: str, role: UserRole) -> str:
    settings = get_settings()
    token = create_access_token(user_id, role, settings)
    return f"ws://{settings.host}:{settings.port}/ws?token={token}"


async def smoke_chat(user_id: str, role: UserRole, hire_id: str, text: str) -> None:
    """Connect, join the room, send a message and print what comes back"""
    async with websockets.connect(build_uri(user_id, role)) as websocket:
        print(f"Connected: {await websocket.recv()}")

        await websocket.send(json.dumps({"type": "join", "hireId": hire_id}))
        print(f"Join: {await websocket.recv()}")

        print(f"\nSending {text!r}...")
        await websocket.send(json.dumps({"type": "send", "hireId": hire_id, "body": text}))

        for i in range(5):
            try:
                response = await asyncio.wait_for(websocket.recv(), timeout=3.0)
                print(f"Event {i+1}: {response}")
            except asyncio.TimeoutError:
                print("Timeout waiting for events")
                break


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)
    message = sys.argv[4] if len(sys.argv) > 4 else "Hello from the smoke client"
    asyncio.run(smoke_chat(sys.argv[1], UserRole(sys.argv[2].upper()), sys.argv[3], message))
