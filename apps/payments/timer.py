"""
Cronômetro regressivo do PIX (3 minutos por padrão).
"""

from typing import Callable

from apps.payments.constants import PIX_COUNTDOWN_SECONDS


class PaymentTimer:
    """
    Conta segundos enquanto ativo e chama `on_expired` uma única vez ao chegar a zero.
    O cronômetro não para a sincronização: quem usa decide o que fazer na expiração.
    """

    TICK_SECONDS = 1

    def __init__(
        self,
        scheduler,
        on_expired: Callable[[], None] | None = None,
        initial_seconds: int = PIX_COUNTDOWN_SECONDS,
    ):
        self.scheduler = scheduler
        self.on_expired = on_expired
        self.initial_seconds = initial_seconds

        self.seconds_remaining = initial_seconds
        self.is_expired = False
        self.is_active = False
        self._expired_notified = False
        self._handle = None

    def start(self, seconds: int | None = None) -> None:
        self.reset(seconds)
        self.set_active(True)

    def set_active(self, active: bool) -> None:
        self.is_active = active
        self._clear()
        if active:
            self._arm()

    def reset(self, seconds: int | None = None) -> None:
        """Volta ao valor inicial e permite uma nova notificação de expiração."""
        self._clear()
        self.seconds_remaining = self.initial_seconds if seconds is None else seconds
        self.is_expired = False
        self._expired_notified = False
        if self.is_active:
            self._arm()

    def stop(self) -> None:
        self.set_active(False)

    def format_time(self) -> str:
        """Ex.: 2:05"""
        minutes, seconds = divmod(max(self.seconds_remaining, 0), 60)
        return f"{minutes}:{seconds:02d}"

    def _arm(self) -> None:
        if self.is_expired or self.seconds_remaining <= 0:
            return
        self._handle = self.scheduler.call_later(self.TICK_SECONDS, self._tick)

    def _clear(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if not self.is_active or self.is_expired:
            return

        self.seconds_remaining -= 1
        if self.seconds_remaining <= 0:
            self.seconds_remaining = 0
            self.is_expired = True
            self._notify_expired()
            return

        self._arm()

    def _notify_expired(self) -> None:
        if self._expired_notified:
            return
        self._expired_notified = True
        if self.on_expired:
            self.on_expired()
