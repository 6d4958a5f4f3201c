# npm_wildcard/adapters/dns_publisher.py
import logging
import re
from typing import Protocol

logger = logging.getLogger(__name__)

UD_LOGIN_URL = "https://www.uniteddomains.com/login"


class DnsRecordPublisher(Protocol):
    """publish(hostname, token) writes a TXT record and returns once the write is confirmed."""
    def publish(self, hostname: str, token: str) -> None: ...


def zone_entry(hostname: str, zone: str) -> str:
    """
    Zone-relative record name as the registrar's editor wants it:
      _acme-challenge.example.com      (zone example.com) -> _acme-challenge
      _acme-challenge.home.example.com (zone example.com) -> _acme-challenge.home
    """
    host = hostname.rstrip(".").lower()
    zone = zone.rstrip(".").lower()
    if host == zone:
        return "@"
    suffix = f".{zone}"
    return host[: -len(suffix)] if host.endswith(suffix) else host


class UnitedDomainsPublisher:
    """
    Publishes TXT records through the United Domains web portal (there is no API),
    driving a headless Chromium with Playwright:
      - log in, open the zone's DNS page
      - edit the existing TXT row for the entry, or add a new one
      - wait for the "saved successfully" banner as write confirmation
    """
    def __init__(self, username: str, password: str, zone: str,
                 headless: bool = True, timeout_ms: int = 10_000):
        self.username = username
        self.password = password
        self.zone = zone
        self.headless = headless
        self.timeout_ms = timeout_ms

    def publish(self, hostname: str, token: str) -> None:
        from playwright.sync_api import sync_playwright

        entry = zone_entry(hostname, self.zone)
        logger.info("United Domains: setting TXT %s in zone %s", entry, self.zone)
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=self.headless)
            try:
                page = browser.new_context().new_page()
                page.goto(UD_LOGIN_URL)
                page.get_by_role("textbox", name="Email Address").fill(self.username)
                page.get_by_role("textbox", name="Password").fill(self.password)
                page.get_by_role("button", name="Log In").click()
                page.wait_for_url("**/portfolio")

                page.get_by_role("link", name="DNS").click()
                page.wait_for_url(f"**/portfolio/dns/{self.zone}")
                page.wait_for_selector("text=Custom Resource Records", timeout=self.timeout_ms)

                existing = page.get_by_role("row", name=re.compile(rf"^{re.escape(entry)} TXT"))
                if existing.count() > 0:
                    existing.get_by_role("button", name="edit").click()
                    page.get_by_role("textbox", name="Text").fill(token)
                    page.get_by_role("cell", name="Save").get_by_role("button").click()
                else:
                    page.get_by_role("textbox", name="@").fill(entry)
                    page.get_by_role("combobox").select_option("TXT")
                    page.get_by_role("textbox", name="Text").fill(token)
                    page.get_by_role("button", name="Add").click()

                page.wait_for_selector("text=DNS Records saved successfully", timeout=self.timeout_ms)
            finally:
                browser.close()
        logger.info("United Domains: TXT %s saved", entry)
