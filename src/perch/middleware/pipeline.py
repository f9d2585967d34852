"""Middleware pipeline: run a resolved chain around a destination.

One ``Pipeline`` is created per dispatch. It instantiates class
middleware through the container, runs the chain-of-responsibility, and
remembers which middleware actually ran so their ``terminate`` hooks can
be called once the response has been delivered.

Exceptions raised by middleware or the destination propagate unchanged;
rendering them is the kernel's job.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from perch._internal.invoke import invoke
from perch.container import Container
from perch.middleware.spec import MiddlewareSpec
from perch.request import Request
from perch.response import Response, to_response

logger = logging.getLogger("perch.middleware")

type Destination = Callable[[Request], Awaitable[Any]]


def _name(obj: Any) -> str:
    return getattr(obj, "__qualname__", None) or type(obj).__qualname__


class Pipeline:
    """Ordered middleware around a terminal destination.

    Usage::

        pipeline = Pipeline(specs, container)
        response = await pipeline.run(request, call_handler)
        # ... transport sends response ...
        await pipeline.terminate(request, response)
    """

    __slots__ = ("_container", "_entered", "_specs")

    def __init__(self, specs: Sequence[MiddlewareSpec], container: Container) -> None:
        self._specs = tuple(specs)
        self._container = container
        self._entered: list[Any] = []

    @property
    def specs(self) -> tuple[MiddlewareSpec, ...]:
        return self._specs

    @property
    def entered(self) -> list[Any]:
        """Middleware instances that ran, in execution order."""
        return list(self._entered)

    def _instantiate(self, spec: MiddlewareSpec) -> Any:
        ref = spec.ref
        if isinstance(ref, str):
            msg = f"Middleware alias {ref!r} was not resolved before the pipeline ran"
            raise TypeError(msg)
        if isinstance(ref, type):
            return self._container.make(ref)
        return ref

    async def run(self, request: Request, destination: Destination) -> Response:
        """Send *request* through the chain and return the final response.

        A middleware may return without calling ``next``; later middleware
        and the destination then never run, while earlier middleware still
        see the early response come back from their ``next`` call.
        """
        stages = [(self._instantiate(spec), spec.args) for spec in self._specs]

        async def call(index: int, req: Request) -> Response:
            if index == len(stages):
                return to_response(await destination(req))

            middleware, args = stages[index]
            self._entered.append(middleware)

            async def next_(next_request: Request) -> Response:
                return await call(index + 1, next_request)

            return to_response(await invoke(middleware, req, next_, *args))

        return await call(0, request)

    async def terminate(self, request: Request, response: Response) -> None:
        """Call ``terminate(request, response)`` on every middleware that ran.

        Failures are logged and never re-enter the request.
        """
        for middleware in self._entered:
            hook = getattr(middleware, "terminate", None)
            if hook is None:
                continue
            try:
                await invoke(hook, request, response)
            except Exception:
                logger.exception("terminate() failed in %s", _name(middleware))
