import argparse
import asyncio
import json
import time

import websockets

from rxstream import StreamConnection

# this example runs a toy streaming server and a client that registers with it,
# prints every pushed message and survives server restarts.


async def push(ws, interval: float = 1.0):
    i = 0
    while True:
        await asyncio.sleep(interval)
        await ws.send(
            json.dumps({"channel": "serverMessage", "payload": {"text": f"Hello {i}"}})
        )
        i += 1


async def handle_client(ws, push_interval: float = 1.0):
    """Answer registration, then push messages while still reading the client."""
    pusher = None
    try:
        async for raw in ws:
            message = json.loads(raw)
            if message.get("channel") != "clientRegister":
                print("client says:", message)
                continue

            print("register:", message.get("payload", {}).get("userId"))
            await ws.send(json.dumps({"channel": "registerOk"}))
            if pusher is None:
                pusher = asyncio.create_task(push(ws, push_interval))
    finally:
        if pusher is not None:
            pusher.cancel()


# run this on the server side
def server(port: int):
    async def serve():
        async with websockets.serve(handle_client, "0.0.0.0", port):
            await asyncio.Future()

    try:
        asyncio.run(serve())

    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")


class PrintingDelegate:
    def on_connectivity_changed(self, connected: bool) -> None:
        print("connected" if connected else "disconnected")

    def on_message(self, payload: dict) -> None:
        print("message:", payload)

    def on_aggregation(self, payload: dict) -> None:
        print("aggregation:", payload)


# run this on the client side
def client(port: int, user_id: str, user_token: str, debug: bool):
    delegate = PrintingDelegate()
    with StreamConnection(
        f"ws://localhost:{port}",
        user_id,
        user_token,
        debug,
        delegate=delegate,
        path="/",
        force_websockets=True,
    ) as conn:
        conn.connection_state.subscribe(lambda state: print("state:", state.value))
        conn.start()
        i = 0
        try:
            while True:
                time.sleep(0.5)
                conn.send({"channel": "clientMessage", "payload": {"text": f"Ping {i}"}})
                i += 1
        except KeyboardInterrupt:
            print("\nKeyboard Interrupt.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="rxstream example")
    parser.add_argument("role", choices=["server", "client"])
    parser.add_argument("--port", type=int, default=8888)
    parser.add_argument("--user-id", type=str, default="demo")
    parser.add_argument("--user-token", type=str, default="demo-token")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    if args.role == "server":
        server(args.port)
    else:
        client(args.port, args.user_id, args.user_token, args.debug)
