#!/usr/bin/env python3
"""Replay a participant session against a running StudySync server.

Usage:
    python3 simulate_session.py                      # http://localhost:8000, "Test Participant"
    python3 simulate_session.py --server https://study.example.org --name "Jane Doe"

Registers over the participant WebSocket, then posts every stage of two
videos to /qualtrics three times (as the survey platform does) and prints
the events relayed back. Each stage should be printed exactly once.
"""

import asyncio
import json
import sys

import httpx
import websockets

SERVER = "http://localhost:8000"
NAME = "Test Participant"
VIDEOS = ["video_1", "video_2"]
STAGES = ["start_video", "stop_video", "start_emotion", "stop_emotion", "start_quiz", "stop_quiz"]
REPEATS = 3

if "--server" in sys.argv:
    idx = sys.argv.index("--server")
    if idx + 1 < len(sys.argv):
        SERVER = sys.argv[idx + 1].rstrip("/")
if "--name" in sys.argv:
    idx = sys.argv.index("--name")
    if idx + 1 < len(sys.argv):
        NAME = sys.argv[idx + 1]


def ws_url(server: str) -> str:
    if server.startswith("https://"):
        return "wss://" + server[len("https://"):] + "/ws/participant"
    return "ws://" + server[len("http://"):] + "/ws/participant"


async def listen(ws, received: list):
    async for raw in ws:
        msg = json.loads(raw)
        received.append(msg)
        print(f"  <- {msg['type']:<14} {msg.get('data')}")


async def main():
    print("=" * 60)
    print("  StudySync - Session Simulator")
    print("=" * 60)
    print(f"  Server: {SERVER}")
    print(f"  Name:   {NAME}")
    print()

    async with websockets.connect(ws_url(SERVER)) as ws:
        await ws.send(json.dumps({"action": "register", "name": NAME}))
        reply = json.loads(await ws.recv())
        if reply["type"] != "uuid":
            print(f"  Registration failed: {reply}")
            return
        uuid = reply["data"]
        print(f"  Registered as {uuid}")

        received: list = []
        listener = asyncio.create_task(listen(ws, received))

        async with httpx.AsyncClient(base_url=SERVER, timeout=10) as client:
            lookup = await client.post("/get_uuid", json={"name": NAME})
            print(f"  /get_uuid -> {lookup.json()}")

            plan = [(video, stage) for video in VIDEOS for stage in STAGES]
            plan.append((VIDEOS[-1], "end_study"))
            for video, stage in plan:
                for _ in range(REPEATS):
                    resp = await client.post(
                        "/qualtrics",
                        json={"location": stage, "video_name": video, "uuid": uuid},
                    )
                    resp.raise_for_status()
                print(f"  -> {stage:<14} {video} (x{REPEATS})")

        await asyncio.sleep(1.0)
        listener.cancel()

    print()
    print(f"  Relayed {len(received)} events for {len(plan)} stages")
    if len(received) != len(plan):
        print("  WARNING: expected exactly one relay per stage")


if __name__ == "__main__":
    asyncio.run(main())
