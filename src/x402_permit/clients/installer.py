"""
Fetch Installer

Reference-counted substitution of a process-wide attribute, used to route
``httpx.AsyncClient.send`` through the payment flow while at least one caller
needs it. Streaming SDK calls that build their own httpx clients pick up the
substitution without being handed a client.

    0 -> 1 acquisitions: capture the original, install the replacement
    1 -> 0 acquisitions: restore the original, unless someone else has
                         replaced the attribute in the meantime
"""

import contextlib
import functools
import inspect
import logging
import threading
from typing import Any, AsyncIterator, Callable, Iterator, Optional

import httpx

from .http_client import PaymentFetch

logger = logging.getLogger(__name__)

Release = Callable[[], None]

_MISSING = object()


class FetchInstaller:
    """
    Installs ``wrap(original)`` as ``owner.attribute`` while acquired.

    Args:
        owner: Object holding the attribute (class or module).
        attribute: Attribute name, e.g. ``"send"``.
        wrap: Builds the replacement from the captured original.

    Example:
        installer = FetchInstaller(httpx.AsyncClient, "send", wrap)
        release = installer.acquire()
        try:
            ...
        finally:
            release()
    """

    def __init__(self, owner: Any, attribute: str, wrap: Callable[[Any], Any]):
        self._owner = owner
        self._attribute = attribute
        self._wrap = wrap
        self._lock = threading.Lock()
        self._active = 0
        self._original: Any = None
        self._own_value: Any = _MISSING
        self._installed: Any = None

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def is_installed(self) -> bool:
        return self._active > 0

    def acquire(self) -> Release:
        """
        Register one user of the substitution.

        Returns:
            Release: Call once when done; further calls are no-ops.
        """
        with self._lock:
            if self._active == 0:
                self._install()
            self._active += 1

        released = False

        def release() -> None:
            nonlocal released
            with self._lock:
                if released:
                    return
                released = True
                self._active -= 1
                if self._active == 0:
                    self._restore()

        return release

    def _install(self) -> None:
        # value defined directly on owner, or _MISSING when inherited
        self._own_value = vars(self._owner).get(self._attribute, _MISSING)
        self._original = getattr(self._owner, self._attribute)
        self._installed = self._wrap(self._original)
        setattr(self._owner, self._attribute, self._installed)
        logger.debug("Installed payment fetch on %s.%s", _qualname(self._owner), self._attribute)

    def _restore(self) -> None:
        current = getattr(self._owner, self._attribute, None)
        if current is not self._installed:
            logger.warning(
                "%s.%s was replaced while installed; leaving the new value in place",
                _qualname(self._owner), self._attribute,
            )
        elif self._own_value is _MISSING:
            delattr(self._owner, self._attribute)
        else:
            setattr(self._owner, self._attribute, self._own_value)
        logger.debug("Released payment fetch on %s.%s", _qualname(self._owner), self._attribute)
        self._original = None
        self._own_value = _MISSING
        self._installed = None

    @contextlib.contextmanager
    def installed(self) -> Iterator[None]:
        """Hold the substitution for the duration of a ``with`` block."""
        release = self.acquire()
        try:
            yield
        finally:
            release()

    async def stream(self, open_stream: Callable[[], Any]) -> AsyncIterator[Any]:
        """
        Hold the substitution from opening a stream until it is exhausted or closed.

        Args:
            open_stream: Zero-argument callable returning an async iterable,
                or an awaitable resolving to one (e.g. an SDK ``create(stream=True)``).

        Example:
            async for chunk in installer.stream(
                lambda: client.chat.completions.create(model=m, messages=msgs, stream=True)
            ):
                ...
        """
        release = self.acquire()
        try:
            source = open_stream()
            if inspect.isawaitable(source):
                source = await source
            async for item in source:
                yield item
        finally:
            release()


def _qualname(owner: Any) -> str:
    return getattr(owner, "__qualname__", None) or getattr(owner, "__name__", repr(owner))


def httpx_send_installer(
    payment_fetch: PaymentFetch,
    owner: Optional[type] = None,
) -> FetchInstaller:
    """
    Installer that routes ``httpx.AsyncClient.send`` through ``payment_fetch``.

    Each patched call still goes through the calling client's own original
    ``send``, so its transport and settings are kept.

    Args:
        payment_fetch: Payment flow to install.
        owner: Class to patch, ``httpx.AsyncClient`` by default.
    """
    owner = owner or httpx.AsyncClient

    def wrap(original):
        @functools.wraps(original)
        async def send(client, request, **kwargs):
            return await payment_fetch.send_with(
                functools.partial(original, client), request, **kwargs
            )
        return send

    return FetchInstaller(owner, "send", wrap)
