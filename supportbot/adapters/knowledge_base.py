"""Knowledge-base retrieval collaborators."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import List, Optional, Protocol, Sequence

from ..formatting import extract_keywords
from ..logger import LOGGER
from ..models import SearchFilters, Source, UserRole, parse_timestamp

# Space readable by every role; other spaces are admin-only
PUBLIC_SPACE = "ITKB"
MAX_RESULTS = 5


class SourceRetriever(Protocol):
    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Source]:
        ...


def _page(title: str, space: str, slug: str, snippet: str, updated_at: str, anchor: Optional[str] = None) -> Source:
    return Source(
        title=title,
        space=space,
        url=f"https://confluence.local/display/{space}/{slug}",
        anchor=anchor,
        snippet=snippet,
        updated_at=parse_timestamp(updated_at),
        accessible=space == PUBLIC_SPACE,
    )


DEFAULT_PAGES: Sequence[Source] = (
    _page(
        "VPN client setup",
        "ITKB",
        "vpn-client-setup",
        "To connect to the VPN from home use server vpn.company.com, protocol IKEv2 and certificate authentication.",
        "2025-08-01T14:20:00Z",
        anchor="setup-windows",
    ),
    _page(
        "Troubleshooting the Active Directory domain",
        "ITKB",
        "ad-troubleshooting",
        "After an AD outage check connectivity to the domain controller and the Netlogon and DNS Client services.",
        "2025-07-15T10:30:00Z",
        anchor="netlogon-service",
    ),
    _page(
        "Diagnosing VPN connections",
        "ITKB",
        "vpn-diagnostics",
        "For VPN problems check service status, connection logs and network reachability of the VPN server.",
        "2025-07-28T09:15:00Z",
    ),
    _page(
        "Configuring Zabbix agents",
        "MON",
        "zabbix-agents",
        "Set Server=zabbix.company.com and ServerActive=zabbix.company.com in /etc/zabbix/zabbix_agentd.conf.",
        "2025-06-20T16:45:00Z",
        anchor="agent-config",
    ),
    _page(
        "Infrastructure monitoring",
        "MON",
        "infrastructure-monitoring",
        "Monitoring covers server availability, resource usage and the state of services.",
        "2025-06-15T11:30:00Z",
    ),
    _page(
        "Resetting a password in Active Directory",
        "ITKB",
        "ad-password-reset",
        "Use the PowerShell command Set-ADAccountPassword to reset a user's domain password.",
        "2025-07-10T13:25:00Z",
        anchor="powershell-reset",
    ),
)


class MockKnowledgeBaseRetriever:
    """Keyword search over a fixed page catalogue with role-based access flags.

    ``admin`` may open every page; other roles only pages in the public space.
    Pages are still returned when inaccessible so the client can show them greyed out.
    """

    def __init__(
        self,
        pages: Sequence[Source] = DEFAULT_PAGES,
        simulate_latency: bool = True,
        latency_ms: int = 200,
    ) -> None:
        self.pages = tuple(pages)
        self.simulate_latency = simulate_latency
        self.latency_ms = latency_ms

    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Source]:
        if self.simulate_latency and self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)

        filters = filters or SearchFilters()
        keywords = extract_keywords(query)
        results = [
            page for page in self.pages
            if any(keyword in f"{page.title} {page.snippet}".lower() for keyword in keywords)
        ]

        if filters.role is not None:
            role = UserRole(filters.role)
            results = [
                replace(page, accessible=role is UserRole.ADMIN or page.space == PUBLIC_SPACE)
                for page in results
            ]

        if filters.spaces:
            results = [page for page in results if page.space in filters.spaces]

        LOGGER.debug("Knowledge base search '%s': %d hit(s)", query[:60], len(results))
        return results[:MAX_RESULTS]


__all__ = ["SourceRetriever", "MockKnowledgeBaseRetriever", "DEFAULT_PAGES", "PUBLIC_SPACE", "MAX_RESULTS"]
