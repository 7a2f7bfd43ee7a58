"""
Motor de estado unidireccional

Cada funcionalidad interactiva (login, registro, catálogo, reserva) se
construye sobre ``StateController``: los eventos de la interfaz entran por
``dispatch``, el manejador de la funcionalidad hace su trabajo asíncrono y
publica instantáneas de estado inmutables y efectos de un solo uso
(navegación, mensajes).

Reglas:

* ``update_state`` aplica la transformación sobre el estado *más reciente*
  en el momento de aplicarla, nunca sobre una copia tomada antes de un
  ``await``. Todas las llamadas ocurren en el hilo del event loop, así que
  quedan serializadas aunque vengan de tareas concurrentes.
* El flujo de estado es "caliente": cada suscriptor recibe la última
  instantánea y luego cada instantánea distinta posterior. Un suscriptor
  lento sólo ve la más reciente.
* Los efectos se entregan a cada suscriptor activo como máximo una vez y en
  orden de emisión. No se repiten a suscriptores que llegan tarde; si nadie
  escucha, el efecto se descarta.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Callable, Coroutine, Generic, List, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S")
E = TypeVar("E")
F = TypeVar("F")

_CLOSED = object()


class Subscription(Generic[T]):
    """
    Cola de un suscriptor. Se registra en cuanto se crea, así que no pierde
    nada de lo publicado después de ``subscribe()``.

    Se usa como iterador asíncrono (``async for item in sub``) o con
    ``await sub.get()``; ``close()`` la da de baja y termina la iteración.
    """

    def __init__(self, maxsize: int, conflate: bool, on_close: Callable[["Subscription"], None]):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._conflate = conflate
        self._on_close = on_close
        self.closed = False

    def offer(self, item) -> bool:
        if self.closed:
            return False
        if self._conflate:
            self._drain()
            self._queue.put_nowait(item)
            return True
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    def _drain(self):
        while not self._queue.empty():
            self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def get_nowait(self) -> T:
        item = self._queue.get_nowait()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise asyncio.QueueEmpty
        return item

    async def get(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._on_close(self)
        self._drain()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        return await self.get()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class StateFlow(Generic[T]):
    """Contenedor de un valor actual observable."""

    def __init__(self, initial: T):
        self._value = initial
        self._subscriptions: List[Subscription[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        if value == self._value:
            return False
        self._value = value
        for subscription in list(self._subscriptions):
            subscription.offer(value)
        return True

    def update(self, transform: Callable[[T], T]) -> T:
        self.set(transform(self._value))
        return self._value

    def subscribe(self) -> Subscription[T]:
        subscription = Subscription(maxsize=1, conflate=True, on_close=self._subscriptions.remove)
        subscription.offer(self._value)
        self._subscriptions.append(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def close(self):
        for subscription in list(self._subscriptions):
            subscription.close()


class EffectChannel(Generic[T]):
    """Canal de efectos de un solo uso, acotado por suscriptor."""

    def __init__(self, maxsize: int = 64):
        self._maxsize = maxsize
        self._subscriptions: List[Subscription[T]] = []

    def subscribe(self) -> Subscription[T]:
        subscription = Subscription(maxsize=self._maxsize, conflate=False, on_close=self._subscriptions.remove)
        self._subscriptions.append(subscription)
        return subscription

    def emit(self, effect: T) -> int:
        if not self._subscriptions:
            logger.debug(f"Effect dropped, no subscribers: {effect!r}")
            return 0
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.offer(effect):
                delivered += 1
            else:
                logger.warning(f"Effect buffer full, dropping {effect!r}")
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def close(self):
        for subscription in list(self._subscriptions):
            subscription.close()


class StateController(ABC, Generic[S, E, F]):
    """
    Base de todas las funcionalidades interactivas.

    Las subclases definen ``create_initial_state`` y ``handle_event``. Dentro
    del manejador usan ``update_state``/``set_state`` y ``emit_effect``.
    """

    effect_buffer_size = 64

    def __init__(self):
        self._state: StateFlow[S] = StateFlow(self.create_initial_state())
        self._effects: EffectChannel[F] = EffectChannel(self.effect_buffer_size)
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @abstractmethod
    def create_initial_state(self) -> S:
        """Estado inicial de la funcionalidad."""

    @abstractmethod
    async def handle_event(self, event: E) -> None:
        """Traduce un evento en transiciones de estado y efectos."""

    @property
    def state(self) -> S:
        return self._state.value

    def current_state(self) -> S:
        return self._state.value

    def subscribe_state(self) -> Subscription[S]:
        return self._state.subscribe()

    def subscribe_effects(self) -> Subscription[F]:
        return self._effects.subscribe()

    def dispatch(self, event: E) -> asyncio.Task:
        """Programa el manejo del evento y devuelve la tarea."""
        if self._closed:
            raise RuntimeError(f"{type(self).__name__} is closed")
        logger.debug(f"{type(self).__name__} <- {type(event).__name__}")
        return self.launch(self.handle_event(event), name=f"{type(self).__name__}:{type(event).__name__}")

    def launch(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Unhandled error in {task.get_name()}: {exc}", exc_info=exc)

    def update_state(self, transform: Callable[[S], S]) -> S:
        return self._state.update(transform)

    def set_state(self, **changes) -> S:
        return self._state.update(lambda state: replace(state, **changes))

    def emit_effect(self, effect: F) -> int:
        return self._effects.emit(effect)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def join(self):
        """Espera a que terminen todas las tareas en curso (incluidas las que éstas lancen)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._state.close()
        self._effects.close()
