"""
Agendador cooperativo usado pela sincronização PIX e pelo cronômetro.

Tudo roda em uma única thread: os callbacks são executados em sequência,
nunca em paralelo. Os testes usam um agendador falso com relógio manual.
"""

import sched
import time
from typing import Callable, Protocol


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]): ...

    def cancel(self, handle) -> None: ...

    def sleep(self, seconds: float) -> None: ...


class CooperativeScheduler:
    """Implementação sobre `sched.scheduler` (relógio monotônico)."""

    def __init__(self, timefunc=time.monotonic, delayfunc=time.sleep):
        self._scheduler = sched.scheduler(timefunc, delayfunc)
        self._delayfunc = delayfunc

    def call_later(self, delay: float, callback: Callable[[], None]):
        return self._scheduler.enter(max(delay, 0), 0, callback)

    def cancel(self, handle) -> None:
        try:
            self._scheduler.cancel(handle)
        except ValueError:
            # Evento já executado
            pass

    def sleep(self, seconds: float) -> None:
        self._delayfunc(seconds)

    @property
    def is_empty(self) -> bool:
        return self._scheduler.empty()

    def run(self, until: Callable[[], bool] | None = None) -> None:
        """
        Executa os eventos agendados até a fila esvaziar ou `until()` ser verdadeiro.
        """
        while not self._scheduler.empty():
            if until and until():
                return
            wait = self._scheduler.run(blocking=False)
            if until and until():
                return
            if wait is not None:
                self._delayfunc(wait)
