"""
Configuração principal do Celery.
Não tenta conectar se CELERY_BROKER_URL não estiver definido.
"""

import os

from celery import Celery
from decouple import config

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("dizimo")

broker_url = config("CELERY_BROKER_URL", default="")
if broker_url:
    app.config_from_object("django.conf:settings", namespace="CELERY")
    app.autodiscover_tasks()
else:
    # Sem broker - o produtor de notificações fica desabilitado
    app.conf.update(
        broker_url=None,
        result_backend=None,
        task_always_eager=False,
    )
