from __future__ import annotations

import httpx
import structlog

from ..config import settings
from ..utils import retry_call

log = structlog.get_logger()

# transport errors, non-2xx statuses and non-JSON bodies
RETRYABLE = (httpx.HTTPError, ValueError)


class DefiLlamaAdapter:
    """Read-only client for the three DeFi Llama endpoints the tracker uses."""

    def __init__(
        self,
        base_url: str | None = None,
        stablecoins_url: str | None = None,
        yields_url: str | None = None,
        timeout: float | None = None,
        attempts: int | None = None,
        backoff: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = (base_url or settings.defillama_base_url).rstrip("/")
        self.stablecoins_url = (stablecoins_url or settings.stablecoins_base_url).rstrip("/")
        self.yields_url = yields_url or settings.yields_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.attempts = attempts or settings.http_retry_attempts
        self.backoff = backoff if backoff is not None else settings.http_retry_backoff_seconds
        self._client = client

    def _get_json(self, url: str, params: dict | None = None, deadline: float | None = None):
        def _do():
            if self._client is not None:
                r = self._client.get(url, params=params, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    r = client.get(url, params=params)
            r.raise_for_status()
            return r.json()

        try:
            return retry_call(
                _do,
                attempts=self.attempts,
                base_delay=self.backoff,
                deadline=deadline,
                retry_on=RETRYABLE,
            )
        except RETRYABLE as e:
            log.error("defillama_fetch_failed", url=url, err=str(e))
            raise

    def pools(self, deadline: float | None = None) -> list[dict]:
        data = self._get_json(self.yields_url, deadline=deadline)
        pools = data.get("data") if isinstance(data, dict) else None
        pools = pools or []
        log.info("defillama_pools_fetched", count=len(pools))
        return pools

    def stablecoins(self, deadline: float | None = None) -> list[dict]:
        data = self._get_json(f"{self.stablecoins_url}/stablecoins", params={"includePrices": "false"}, deadline=deadline)
        assets = data.get("peggedAssets") if isinstance(data, dict) else None
        assets = assets or []
        log.info("defillama_stablecoins_fetched", count=len(assets))
        return assets

    def chains(self, deadline: float | None = None) -> list[dict]:
        data = self._get_json(f"{self.base_url}/chains", deadline=deadline)
        chains = data if isinstance(data, list) else []
        log.info("defillama_chains_fetched", count=len(chains))
        return chains
