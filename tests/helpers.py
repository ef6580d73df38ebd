import re
import json

SSE_PATTERN = re.compile(r'event: (\w+)\ndata: (.*?)\n\n', re.DOTALL)


def parse_sse(body):
    """Split an SSE body into (event_type, data) pairs, in order."""
    return [(match.group(1), json.loads(match.group(2))) for match in SSE_PATTERN.finditer(body)]


def assert_sse_event(body, event_type, **expected_data):
    """
    Assert that an SSE event with the given type and expected data exists in the body.
    Checks all occurrences of the event type.
    """
    for ev_type, data in parse_sse(body):
        if ev_type != event_type:
            continue
        if all(key in data and data[key] == value for key, value in expected_data.items()):
            return data

    assert False, f"No '{event_type}' event found with all expected data: {expected_data} in SSE body:\n{body}"


def events_of_type(body, event_type):
    return [data for ev_type, data in parse_sse(body) if ev_type == event_type]


async def collect_updates(generator):
    """Drain a turn generator into a list."""
    return [update async for update in generator]


def receive_until(websocket, event_type, limit=20):
    """Read JSON frames until one of the given type arrives; returns every frame read."""
    received = []
    for _ in range(limit):
        event = websocket.receive_json()
        received.append(event)
        if event["type"] == event_type:
            return received
    assert False, f"No '{event_type}' event within {limit} frames: {received}"
