"""
HTTP verification: probe a domain's live website to catch parked and
for-sale pages that registry data cannot reveal.

Per domain: blocked host -> unknown; otherwise try https://, and only if
that ends in `unknown` try http://. Redirects are followed by hand, one
validated hop at a time, and a redirect straight to a broker ends the
probe without fetching the broker's page.

A failed probe is always `unknown`, never `available`: not being able to
connect says nothing authoritative about registration.
"""

import asyncio
import logging

import httpx

from .classifier import classify, classify_url
from .errors import BlockedTarget, NetworkFailure, RedirectPolicyViolation
from .fetcher import DEFAULT_TIMEOUT, MAX_REDIRECTS, BoundedFetcher, RawProbeResult, is_blocked_host
from .httpclient import client_scope
from .models import ParkingEvidence, VerificationOutcome, VerificationStatus

logger = logging.getLogger(__name__)

GROUP_SIZE = 5
GROUP_PAUSE = 0.2  # seconds between bulk groups


def _parking_status(evidence: ParkingEvidence) -> VerificationStatus:
    return VerificationStatus.FOR_SALE if evidence.broker else VerificationStatus.PARKED


def _chunk(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class HttpVerificationService:
    """
    Probes domains over HTTP(S) and maps what it sees to a VerificationOutcome.

    Args:
        timeout: Per-hop deadline in seconds. A redirect chain of n hops can
                 take up to n times this.
        client: Optional shared AsyncClient. If omitted, one is created per
                call and closed afterwards.
        group_size: Concurrent probes per bulk group.
        group_pause: Pause between bulk groups, in seconds.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        group_size: int = GROUP_SIZE,
        group_pause: float = GROUP_PAUSE,
    ) -> None:
        self._timeout = timeout
        self._client = client
        self._group_size = group_size
        self._group_pause = group_pause

    async def verify_domain(self, domain: str) -> VerificationOutcome:
        """Probe a single domain."""
        if is_blocked_host(domain):
            logger.info("Refusing to probe blocked host %s", domain)
            return VerificationOutcome.unknown()

        async with client_scope(self._client, self._timeout) as client:
            return await self._verify(BoundedFetcher(client, timeout=self._timeout), domain)

    async def verify_bulk(self, domains: list[str]) -> dict[str, VerificationOutcome]:
        """
        Probe many domains, `group_size` at a time.

        Each group runs concurrently and must finish entirely before the
        next one starts. Returns exactly one outcome per distinct input.
        """
        unique = list(dict.fromkeys(domains))
        results: dict[str, VerificationOutcome] = {}

        async with client_scope(self._client, self._timeout) as client:
            fetcher = BoundedFetcher(client, timeout=self._timeout)

            for index, group in enumerate(_chunk(unique, self._group_size)):
                if index > 0:
                    await asyncio.sleep(self._group_pause)

                outcomes = await asyncio.gather(*(self._verify_safe(fetcher, d) for d in group))
                results.update(zip(group, outcomes))

        return results

    async def _verify_safe(self, fetcher: BoundedFetcher, domain: str) -> VerificationOutcome:
        if is_blocked_host(domain):
            logger.info("Refusing to probe blocked host %s", domain)
            return VerificationOutcome.unknown()
        return await self._verify(fetcher, domain)

    async def _verify(self, fetcher: BoundedFetcher, domain: str) -> VerificationOutcome:
        outcome = await self._probe(fetcher, f"https://{domain}")
        if outcome.status is VerificationStatus.UNKNOWN:
            logger.debug("HTTPS probe of %s inconclusive, trying HTTP", domain)
            outcome = await self._probe(fetcher, f"http://{domain}")
        return outcome

    async def _probe(self, fetcher: BoundedFetcher, start_url: str) -> VerificationOutcome:
        """Fetch `start_url`, following at most MAX_REDIRECTS validated redirects."""
        current = start_url

        for _ in range(MAX_REDIRECTS + 1):
            try:
                raw = await fetcher.fetch(current)
                if not raw.is_redirect:
                    return self._classify_response(raw, None if current == start_url else current)

                destination = fetcher.resolve_redirect(raw)
            except BlockedTarget as e:
                logger.info("Blocked probe target %s (via %s)", e.host, start_url)
                return VerificationOutcome.unknown()
            except (NetworkFailure, RedirectPolicyViolation) as e:
                logger.debug("Probe of %s failed: %s", current, e)
                return VerificationOutcome.unknown()

            evidence = classify_url(destination)
            if evidence.is_parked:
                return VerificationOutcome(
                    status=_parking_status(evidence),
                    parking_evidence=evidence,
                    http_status=raw.status_code,
                    final_url=destination,
                )

            current = destination

        logger.debug("Too many redirects starting from %s", start_url)
        return VerificationOutcome.unknown()

    def _classify_response(self, raw: RawProbeResult, final_url: str | None) -> VerificationOutcome:
        if raw.is_success and raw.is_html and raw.body is not None:
            evidence = classify(raw.text(), raw.url)
            if evidence.is_parked:
                return VerificationOutcome(
                    status=_parking_status(evidence),
                    parking_evidence=evidence,
                    http_status=raw.status_code,
                    final_url=final_url,
                )

        # Something answered with content that is not a parking page.
        return VerificationOutcome(
            status=VerificationStatus.TAKEN,
            http_status=raw.status_code,
            final_url=final_url,
        )
