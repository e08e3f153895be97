"""
Cache de configurações por empresa.

Configurações de canais (SMTP, SES, WhatsApp) mudam raramente e são lidas a cada
envio. O cache guarda o resultado por 5 minutos e é invalidado quando as
configurações da empresa são salvas.
"""

import logging

from django.core.cache import caches

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60


class ConfigCache:
    """Cache com TTL sobre o backend de cache do Django."""

    KEY_PREFIX = "config"

    def __init__(self, alias: str = "default", ttl: int = DEFAULT_TTL):
        self.alias = alias
        self.ttl = ttl

    @property
    def _backend(self):
        return caches[self.alias]

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    def get(self, key: str):
        return self._backend.get(self._key(key))

    def set(self, key: str, value) -> None:
        self._backend.set(self._key(key), value, timeout=self.ttl)

    def invalidate(self, key: str) -> None:
        self._backend.delete(self._key(key))

    def get_or_set(self, key: str, loader):
        value = self.get(key)
        if value is None:
            value = loader()
            if value is not None:
                self.set(key, value)
        return value

    def invalidate_company(self, company_id) -> None:
        """Remove todas as chaves conhecidas de uma empresa."""
        for build in CACHE_KEYS.values():
            self.invalidate(build(company_id))
        logger.info("[ConfigCache] Configurações invalidadas para empresa %s", company_id)


CACHE_KEYS = {
    "smtp": lambda company_id: f"smtp:config:{company_id}",
    "whatsapp": lambda company_id: f"whatsapp:config:{company_id}",
}

# Instância do processo
config_cache = ConfigCache()
