# npm_wildcard/adapters/resolver.py
import ipaddress

import dns.exception
import dns.resolver


def nameserver_address(nameserver: str) -> str:
    """Accept an IP or a hostname (e.g. ns.udag.de) and return an IP to query."""
    try:
        ipaddress.ip_address(nameserver)
        return nameserver
    except ValueError:
        answer = dns.resolver.resolve(nameserver, "A")
        return answer[0].to_text()


def query_txt(hostname: str, nameserver: str, timeout: float = 10.0) -> list[str]:
    """
    TXT values for `hostname` as seen by one nameserver, queried directly.
    An absent record yields []; transport or server failures raise.
    """
    r = dns.resolver.Resolver(configure=False)
    r.nameservers = [nameserver_address(nameserver)]
    r.lifetime = timeout
    try:
        answer = r.resolve(hostname, "TXT")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    return [b"".join(rdata.strings).decode("utf-8") for rdata in answer]
