from datetime import timedelta

from conftest import NOW, cert

from npm_wildcard.decision import Action, RenewReason, decide, partition
from npm_wildcard.models import Certificate


def certs(*raw):
    return [Certificate.model_validate(c) for c in raw]


def test_single_valid_certificate_is_reused():
    d = decide("*.example.com", certs(cert(7)), 30, NOW)
    assert d.action == Action.REUSE
    assert d.cert_id == 7


def test_longest_lived_valid_certificate_wins():
    d = decide("*.example.com", certs(
        cert(1, expires_in=timedelta(days=40)),
        cert(2, expires_in=timedelta(days=85)),
        cert(3, expires_in=timedelta(days=60)),
    ), 30, NOW)
    assert d.cert_id == 2


def test_expiring_soon_triggers_preemptive_renewal():
    d = decide("*.example.com", certs(
        cert(1, expires_in=timedelta(days=10)),
        cert(2, expires_in=timedelta(days=20)),
        cert(3, expires_in=-timedelta(days=2)),
    ), 30, NOW)
    assert d.action == Action.RENEW
    assert d.reason == RenewReason.PREEMPTIVE
    assert d.expiring_cert_id == 2
    assert d.cert_id is None


def test_only_expired_means_missing():
    d = decide("*.example.com", certs(cert(1, expires_in=-timedelta(days=1))), 30, NOW)
    assert d.action == Action.RENEW
    assert d.reason == RenewReason.MISSING


def test_match_is_exact_domain_membership():
    d = decide("*.example.com", certs(
        cert(1, domains=["*.other.com"]),
        cert(2, domains=["example.com"]),
        cert(3, domains=["*.home.example.com"]),
    ), 30, NOW)
    assert d.reason == RenewReason.MISSING


def test_multi_domain_certificate_counts():
    d = decide("*.example.com", certs(cert(4, domains=["example.com", "*.example.com"])), 30, NOW)
    assert d.cert_id == 4


def test_partition_buckets():
    p = partition(certs(
        cert(1, expires_in=-timedelta(days=1)),
        cert(2, expires_in=timedelta(days=29)),
        cert(3, expires_in=timedelta(days=31)),
        cert(4, expires_in=None),
    ), 30, NOW)
    assert [c.id for c in p.expired] == [1, 4]
    assert [c.id for c in p.expiring_soon] == [2]
    assert [c.id for c in p.valid] == [3]
