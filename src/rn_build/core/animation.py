import asyncio
import threading
import time
import sys
from typing import IO, Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


async def run(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    text: str = "Working",
    interval: float = 0.1,
    stream: Optional[IO[str]] = None,
    succeeded: Optional[Callable[[T], bool]] = None,
    **kwargs: Any,
) -> T:
    """
    Awaits func while a spinner turns in a SEPARATE thread.

    succeeded decides whether a returned result counts as a success,
    an exception always counts as a failure.
    """
    out = stream or sys.stdout
    spinner_chars = "|/-\\"
    stop_event = threading.Event()

    def spinner():
        i = 0
        while not stop_event.is_set():
            frame = spinner_chars[i % len(spinner_chars)]
            out.write(f"\r{text} {frame}")
            out.flush()
            i += 1
            time.sleep(interval)

    thread = threading.Thread(target=spinner, daemon=True)
    thread.start()

    success = False

    try:
        result = await func(*args, **kwargs)
        success = succeeded(result) if succeeded is not None else True
        return result
    finally:
        stop_event.set()
        await asyncio.to_thread(thread.join)

        out.write("\r" + " " * (len(text) + 2) + "\r")
        if success:
            out.write(f"{text} - done\n")
        else:
            out.write(f"{text} - failed\n")
        out.flush()
