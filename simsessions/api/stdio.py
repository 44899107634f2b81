"""
Stdio Transport
===============

The line protocol over stdin/stdout, for clients that spawn the server as a
child process.

stdout carries only response lines; logs go to stderr. End of input,
SIGTERM or SIGINT triggers the shutdown sweep before the process exits.
"""

import asyncio
import signal
import sys
from typing import Optional, TextIO

from simsessions.api.dispatcher import handle_line
from simsessions.services import Services
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

# Upper bound for one request line
LINE_LIMIT = 16 * 1024 * 1024

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


async def open_stdin_reader() -> asyncio.StreamReader:
    """Wrap stdin in a StreamReader so reads never park a worker thread."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=LINE_LIMIT)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


class StdioServer:
    """Reads request lines, dispatches them concurrently, writes responses."""

    def __init__(
        self,
        services: Services,
        reader: asyncio.StreamReader,
        writer: Optional[TextIO] = None,
    ) -> None:
        self.services = services
        self.reader = reader
        self.writer = writer or sys.stdout
        self._write_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    async def _write(self, line: str) -> None:
        async with self._write_lock:
            self.writer.write(line + "\n")
            self.writer.flush()

    async def _respond(self, line: str) -> None:
        await self._write(await handle_line(self.services, line))

    def stop(self, reason: str = "stop requested") -> None:
        """Stop reading input; ``serve`` returns once in-flight requests finish."""
        if not self._stopped.is_set():
            logger.info("Stopping stdio transport", reason=reason)
            self._stopped.set()

    async def _next_line(self) -> bytes:
        """The next input line, or ``b""`` at end of input or after ``stop``."""
        if self._stopped.is_set():
            return b""
        read = asyncio.ensure_future(self.reader.readline())
        stopped = asyncio.ensure_future(self._stopped.wait())
        done, pending = await asyncio.wait({read, stopped}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        if read in done:
            return read.result()
        return b""

    async def serve(self) -> None:
        """Serve until end of input or ``stop``, then wait for in-flight requests."""
        logger.info("Stdio transport ready")
        try:
            while True:
                raw = await self._next_line()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace")
                if not line.strip():
                    continue
                task = asyncio.create_task(self._respond(line))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Stdio input closed")


async def run_stdio(
    services: Services,
    reader: Optional[asyncio.StreamReader] = None,
    writer: Optional[TextIO] = None,
) -> None:
    """Serve the stdio protocol until end of input or a stop signal, then release every session."""
    loop = asyncio.get_running_loop()
    installed = []
    try:
        if reader is None:
            reader = await open_stdin_reader()
        server = StdioServer(services, reader, writer)
        for sig in STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, server.stop, sig.name)
            except NotImplementedError:
                logger.warning("Signal handlers unavailable on this platform", signal=sig.name)
            else:
                installed.append(sig)
        await server.serve()
    finally:
        report = await services.shutdown()
        logger.info("Shutdown complete", **report.summary())
        for sig in installed:
            loop.remove_signal_handler(sig)
