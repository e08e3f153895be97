"""
Acompanha uma transação PIX no terminal até a confirmação ou expiração.

    python manage.py acompanhar_pix <transaction_id>
    python manage.py acompanhar_pix <transaction_id> --http --segundos 120
    python manage.py acompanhar_pix <transaction_id> --manual
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.payments.providers import DatabaseStatusProvider, HttpStatusProvider
from apps.payments.scheduling import CooperativeScheduler
from apps.payments.sync import ManualCheckResult, PaymentCheckError, PaymentSync, SyncStatus
from apps.payments.timer import PaymentTimer


class Command(BaseCommand):
    help = "Acompanha o status de uma transação PIX (consulta com backoff e cronômetro de 3 minutos)."

    def add_arguments(self, parser):
        parser.add_argument("transaction_id")
        parser.add_argument(
            "--http",
            action="store_true",
            help="Consulta o endpoint de status (PAYMENT_STATUS_API_URL) em vez do banco.",
        )
        parser.add_argument(
            "--manual",
            action="store_true",
            help='Faz apenas a verificação manual ("Já paguei") e sai.',
        )
        parser.add_argument("--segundos", type=int, default=None, help="Duração do cronômetro.")

    def handle(self, *args, **options):
        if options["http"]:
            provider = HttpStatusProvider(settings.PAYMENT_STATUS_API_URL)
        else:
            provider = DatabaseStatusProvider()

        scheduler = CooperativeScheduler()
        sync = PaymentSync(
            provider,
            scheduler,
            on_success=lambda: self.stdout.write(self.style.SUCCESS("Pagamento confirmado!")),
            on_error=lambda message: self.stderr.write(message),
        )
        sync.start(options["transaction_id"])

        if options["manual"]:
            try:
                result = sync.check_manually()
            except PaymentCheckError as e:
                raise CommandError(str(e)) from e
            finally:
                sync.stop()
            if result == ManualCheckResult.PENDING:
                self.stdout.write("Pagamento ainda não identificado. Aguarde alguns instantes.")
            return

        def on_expired():
            sync.expire()
            if sync.status == SyncStatus.EXPIRED:
                self.stdout.write(self.style.WARNING("PIX expirado. Gere um novo código."))

        timer = PaymentTimer(scheduler, on_expired=on_expired)
        timer.start(options["segundos"])
        self.stdout.write(
            f"Acompanhando {sync.transaction_id} por {timer.format_time()} minuto(s)..."
        )

        try:
            scheduler.run(until=lambda: sync.status != SyncStatus.PENDING)
        except KeyboardInterrupt:
            raise CommandError("Acompanhamento interrompido.")
        finally:
            timer.stop()
            final_status = sync.status
            attempts = sync.attempt_count
            sync.stop()

        self.stdout.write(f"Status final: {final_status} ({attempts} consulta(s))")
