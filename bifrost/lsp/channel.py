"""JSON-RPC channel over a child process's standard streams.

Frames use ``Content-Length`` headers like LSP. The channel owns a single
reader task that correlates responses with pending requests, answers
requests the engine sends back, and hands notifications to per-method
subscriptions.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

import structlog

from bifrost.core.errors import (
    ChannelClosedError,
    MalformedFrameError,
    RequestTimeoutError,
    ResponseError,
)
from bifrost.lsp.protocol import (
    ErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MessageId,
)

log = structlog.get_logger()

NotificationHandler = Callable[[Any], Union[None, Awaitable[None]]]
RequestHandler = Callable[[Any], Any]
ErrorObserver = Callable[[BaseException], None]
CloseObserver = Callable[[], None]

_STOP = object()


class FrameWriter(Protocol):
    """The writable half of the channel (``asyncio.StreamWriter`` shaped)."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    id: MessageId
    method: str
    future: asyncio.Future
    deadline: Optional[float] = None


class NotificationSubscription:
    """Ordered delivery of one method's notifications to one handler.

    Notifications are queued as they arrive and a single consumer task runs
    the handler, so deliveries never overlap and keep arrival order.
    """

    def __init__(self, method: str, handler: NotificationHandler):
        self.method = method
        self._handler = handler
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self.delivered = 0

    @property
    def active(self) -> bool:
        return not self._stopped

    def push(self, params: Any) -> None:
        """Queue one notification payload."""
        if self._stopped:
            return
        self._ensure_started()
        self._queue.put_nowait(params)

    def stop(self) -> None:
        """Stop after delivering what is already queued."""
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None:
            self._queue.put_nowait(_STOP)

    def _ensure_started(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"notification:{self.method}"
            )

    async def _run(self) -> None:
        while True:
            params = await self._queue.get()
            try:
                if params is _STOP:
                    return
                await self._deliver(params)
            finally:
                self._queue.task_done()

    async def _deliver(self, params: Any) -> None:
        try:
            result = self._handler(params)
            if inspect.isawaitable(result):
                await result
            self.delivered += 1
        except Exception as e:
            log.error("notification_handler_error", method=self.method, error=str(e))


class JsonRpcChannel:
    """Duplex JSON-RPC message channel to a single engine process."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: FrameWriter,
        name: str = "engine",
    ):
        """Initialize the channel.

        Args:
            reader: Stream of cleaned, framed bytes from the engine
            writer: Raw byte sink connected to the engine's stdin
            name: Label used in log events
        """
        self.name = name
        self._reader = reader
        self._writer = writer
        self._next_id = 0
        self._pending: dict[MessageId, PendingRequest] = {}
        self._subscriptions: dict[str, list[NotificationSubscription]] = {}
        self._request_handlers: dict[str, RequestHandler] = {}
        self._error_observers: list[ErrorObserver] = []
        self._close_observers: list[CloseObserver] = []
        self._reader_task: Optional[asyncio.Task] = None
        self._answer_tasks: set[asyncio.Task] = set()
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def listen(self) -> None:
        """Start reading frames from the engine."""
        if self._closed:
            raise ChannelClosedError(f"Channel {self.name} is closed")
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._read_loop(), name=f"jsonrpc-reader:{self.name}"
            )
            log.debug("channel_listening", channel=self.name)

    # Outbound

    async def send_request(
        self,
        method: str,
        params: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a request and wait for its result.

        Args:
            method: JSON-RPC method name
            params: Request parameters
            timeout: Seconds to wait for the response; None waits forever

        Returns:
            The ``result`` member of the response

        Raises:
            ResponseError: The engine answered with an error
            RequestTimeoutError: No response within ``timeout``
            ChannelClosedError: The channel closed before the response
        """
        if self._closed:
            raise ChannelClosedError(f"Cannot send '{method}': channel {self.name} is closed")

        loop = asyncio.get_running_loop()
        request_id = self._allocate_id()
        pending = PendingRequest(
            id=request_id,
            method=method,
            future=loop.create_future(),
            deadline=loop.time() + timeout if timeout is not None else None,
        )
        self._pending[request_id] = pending

        try:
            await self._write(JsonRpcRequest(method, params, request_id).to_dict())
            log.debug("request_sent", method=method, id=request_id)
            if timeout is None:
                return await pending.future
            try:
                return await asyncio.wait_for(pending.future, timeout)
            except asyncio.TimeoutError:
                log.warning("request_timeout", method=method, id=request_id, timeout=timeout)
                raise RequestTimeoutError(method, timeout) from None
        finally:
            self._pending.pop(request_id, None)

    async def send_notification(self, method: str, params: Any = None) -> None:
        """Send a notification; no response is expected."""
        if self._closed:
            raise ChannelClosedError(f"Cannot send '{method}': channel {self.name} is closed")
        await self._write(JsonRpcNotification(method, params).to_dict())
        log.debug("notification_sent", method=method)

    # Registration

    def on_notification(
        self, method: str, handler: NotificationHandler
    ) -> NotificationSubscription:
        """Subscribe ``handler`` to inbound notifications for ``method``."""
        subscription = NotificationSubscription(method, handler)
        self._subscriptions.setdefault(method, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: NotificationSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.method, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        subscription.stop()

    def on_request(self, method: str, handler: RequestHandler) -> None:
        """Answer engine-initiated requests for ``method`` with ``handler``."""
        self._request_handlers[method] = handler

    def on_error(self, observer: ErrorObserver) -> None:
        self._error_observers.append(observer)

    def on_close(self, observer: CloseObserver) -> None:
        self._close_observers.append(observer)

    # Lifecycle

    async def close(self, reason: str = "closed by client") -> None:
        """Stop reading and fail every outstanding request."""
        self._shutdown(reason)
        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    def _shutdown(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True

        failed = 0
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.set_exception(
                    ChannelClosedError(
                        f"Channel closed ({reason}) while waiting for '{pending.method}'"
                    )
                )
                failed += 1
        self._pending.clear()

        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.stop()

        log.info("channel_closed", channel=self.name, reason=reason, failed_requests=failed)
        self._closed_event.set()

        for observer in list(self._close_observers):
            try:
                observer()
            except Exception as e:
                log.error("close_observer_error", channel=self.name, error=str(e))

    def _report_error(self, error: BaseException) -> None:
        log.error("channel_error", channel=self.name, error=str(error))
        for observer in list(self._error_observers):
            try:
                observer(error)
            except Exception as e:
                log.error("error_observer_error", channel=self.name, error=str(e))

    def _allocate_id(self) -> int:
        self._next_id += 1
        while self._next_id in self._pending:
            self._next_id += 1
        return self._next_id

    # Wire format

    async def _write(self, message: dict[str, Any]) -> None:
        """Write one message using Content-Length framing."""
        content = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
        content_bytes = content.encode("utf-8")
        header = f"Content-Length: {len(content_bytes)}\r\n\r\n".encode("ascii")

        try:
            self._writer.write(header + content_bytes)
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            self._report_error(e)
            raise ChannelClosedError(f"Failed to write to {self.name}: {e}") from e

    async def _read_message(self) -> Optional[dict[str, Any]]:
        """Read one framed message; None at end of stream."""
        while True:
            headers: dict[str, str] = {}
            while True:
                try:
                    line = await self._reader.readline()
                except ValueError as e:
                    raise MalformedFrameError(f"Oversized header line: {e}") from e
                if not line:
                    return None
                line_str = line.decode("utf-8", "replace").strip()
                if not line_str:
                    if headers:
                        break
                    continue
                if ":" in line_str:
                    key, value = line_str.split(":", 1)
                    headers[key.strip().lower()] = value.strip()
                else:
                    log.debug("frame_header_skipped", line=line_str[:200])

            raw_length = headers.get("content-length")
            if raw_length is None:
                log.debug("frame_without_length", headers=headers)
                continue

            try:
                content_length = int(raw_length)
                if content_length < 0:
                    raise ValueError(raw_length)
            except ValueError:
                raise MalformedFrameError(f"Invalid Content-Length header: {raw_length!r}")

            try:
                content = await self._reader.readexactly(content_length)
            except asyncio.IncompleteReadError:
                log.warning("frame_truncated", expected=content_length)
                return None

            try:
                message = json.loads(content.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedFrameError(f"Invalid JSON payload: {e}") from e

            if not isinstance(message, dict):
                raise MalformedFrameError("JSON-RPC payload is not an object")
            return message

    async def _read_loop(self) -> None:
        reason = "end of stream"
        try:
            while True:
                try:
                    message = await self._read_message()
                except MalformedFrameError as e:
                    self._report_error(e)
                    continue
                if message is None:
                    break
                self._dispatch(message)
        except asyncio.CancelledError:
            reason = "reader cancelled"
            raise
        except Exception as e:
            reason = f"reader failed: {e}"
            self._report_error(e)
        finally:
            self._shutdown(reason)

    # Inbound dispatch

    def _dispatch(self, message: dict[str, Any]) -> None:
        if "method" in message:
            if message.get("id") is not None:
                self._handle_engine_request(JsonRpcRequest.from_dict(message))
            else:
                self._handle_notification(JsonRpcNotification.from_dict(message))
            return

        if "id" in message:
            self._handle_response(JsonRpcResponse.from_dict(message))
            return

        self._report_error(
            MalformedFrameError("Frame is neither a request, a response nor a notification")
        )

    def _handle_response(self, response: JsonRpcResponse) -> None:
        pending = self._pending.get(response.id) if response.id is not None else None
        if pending is None or pending.future.done():
            log.warning("response_unmatched", channel=self.name, id=response.id)
            return

        if response.is_error:
            error = response.error_data or {}
            pending.future.set_exception(
                ResponseError(
                    error.get("code", ErrorCode.INTERNAL_ERROR),
                    error.get("message", "Unknown error"),
                    error.get("data"),
                )
            )
        else:
            pending.future.set_result(response.result)
        log.debug("response_received", method=pending.method, id=response.id)

    def _handle_notification(self, notification: JsonRpcNotification) -> None:
        subscriptions = [
            s for s in self._subscriptions.get(notification.method, []) if s.active
        ]
        if not subscriptions:
            log.debug("notification_unhandled", method=notification.method)
            return
        for subscription in subscriptions:
            subscription.push(notification.params)

    def _handle_engine_request(self, request: JsonRpcRequest) -> None:
        task = asyncio.create_task(self._answer(request))
        self._answer_tasks.add(task)
        task.add_done_callback(self._answer_tasks.discard)

    async def _answer(self, request: JsonRpcRequest) -> None:
        handler = self._request_handlers.get(request.method)
        if handler is None:
            log.debug("engine_request_unhandled", method=request.method)
            response = JsonRpcResponse.error(
                request.id,
                ErrorCode.METHOD_NOT_FOUND,
                f"Unhandled method {request.method}",
            )
        else:
            try:
                result = handler(request.params)
                if inspect.isawaitable(result):
                    result = await result
                response = JsonRpcResponse.success(request.id, result)
            except Exception as e:
                log.error("engine_request_handler_error", method=request.method, error=str(e))
                response = JsonRpcResponse.error(request.id, ErrorCode.INTERNAL_ERROR, str(e))

        if self._closed:
            return
        try:
            await self._write(response.to_dict())
        except ChannelClosedError as e:
            log.debug("engine_request_answer_dropped", method=request.method, error=str(e))
