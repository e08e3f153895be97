"""
Constantes da sincronização PIX.
Atrasos em milissegundos.
"""

PIX_COUNTDOWN_SECONDS = 180  # 3 minutos
PIX_MAX_ATTEMPTS = 25
PIX_INITIAL_DELAY = 10_000
PIX_MIN_DELAY = 8_000
PIX_MAX_DELAY = 15_000
PIX_BACKOFF_STEP = 2_000
PIX_ERROR_DELAY = 12_000
PIX_ERROR_MAX_DELAY = 20_000
PIX_ERROR_BACKOFF_STEP = 3_000

# Verificação manual ("Já paguei")
PIX_MANUAL_MAX_ATTEMPTS = 3
PIX_MANUAL_INTERVAL = 2_000

# Transações PIX pendentes além desse prazo são recusadas pelo job periódico
PIX_STALE_AFTER_MINUTES = 15
