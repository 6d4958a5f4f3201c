# npm_wildcard/orchestrator.py
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

from npm_wildcard.adapters.inventory import Inventory
from npm_wildcard.adapters.issuance import CertbotIssuer
from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.cleanup import CleanupSweeper, Deletion
from npm_wildcard.config import Config
from npm_wildcard.decision import Action, RenewReason, decide
from npm_wildcard.errors import AuthenticationError, NpmWildcardError
from npm_wildcard.hosts import HostReassigner
from npm_wildcard.models import utcnow
from npm_wildcard.uploader import CertificateUploader

logger = logging.getLogger(__name__)

# stands in for the not-yet-issued certificate when a dry run previews host moves
PENDING_CERT = "<new certificate>"


class JobStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DRY_RUN = "dry-run"


@dataclass
class RenewalJob:
    wildcard: str
    action: Action | None = None
    reason: RenewReason | None = None
    cert_id: int | str | None = None
    created: bool = False
    hosts_changed: int = 0
    status: JobStatus | None = None
    error: str | None = None

    def fail(self, error: Exception):
        self.status = JobStatus.FAILED
        self.error = str(error)

    def as_dict(self) -> dict:
        d = asdict(self)
        for k in ("action", "reason", "status"):
            d[k] = d[k].value if d[k] is not None else None
        return d


@dataclass
class RunReport:
    started_at: datetime
    dry_run: bool
    jobs: list[RenewalJob] = field(default_factory=list)
    deletions: list[Deletion] = field(default_factory=list)
    finished_at: datetime | None = None

    @property
    def failed(self) -> list[RenewalJob]:
        return [j for j in self.jobs if j.status == JobStatus.FAILED]

    def as_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "dry_run": self.dry_run,
            "jobs": [j.as_dict() for j in self.jobs],
            "deletions": [asdict(d) for d in self.deletions],
        }


class Orchestrator:
    """
    Runs the per-wildcard pipeline, strictly one wildcard after another:
      decide -> (issue -> upload) -> reassign hosts
    followed by an optional cleanup sweep over all target wildcards.
    """
    def __init__(self, client: NpmClient, inventory: Inventory, issuer: CertbotIssuer,
                 uploader: CertificateUploader, reassigner: HostReassigner,
                 sweeper: CleanupSweeper | None = None, warn_days: int = 30,
                 dry_run: bool = False, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.inventory = inventory
        self.issuer = issuer
        self.uploader = uploader
        self.reassigner = reassigner
        self.sweeper = sweeper
        self.warn_days = warn_days
        self.dry_run = dry_run
        self.clock = clock

    @classmethod
    def from_config(cls, cfg: Config, dry_run: bool | None = None) -> "Orchestrator":
        client = NpmClient(cfg.base_url, cfg.identity, cfg.secret,
                           timeout=cfg.npm_timeout, verify=cfg.npm_verify_tls)
        inventory = Inventory(client)
        issuer = CertbotIssuer(
            cfg.state_dir, certbot_bin=cfg.certbot_bin, email=cfg.certbot_email,
            auth_hook=cfg.auth_hook, cleanup_hook=cfg.cleanup_hook,
            hook_env=cfg.hook_environment(),
        )
        return cls(
            client=client,
            inventory=inventory,
            issuer=issuer,
            uploader=CertificateUploader(client, inventory),
            reassigner=HostReassigner(client, cfg.include_redirection_hosts),
            sweeper=CleanupSweeper(client, inventory, cfg.cleanup_grace_minutes) if cfg.cleanup else None,
            warn_days=cfg.warn_days,
            dry_run=cfg.dry_run if dry_run is None else dry_run,
        )

    # ------------------ single wildcard ------------------
    def ensure_certificate(self, job: RenewalJob) -> None:
        """Fill job.cert_id with a usable certificate, issuing one if needed."""
        logger.info("Checking certificates for %s", job.wildcard)
        decision = decide(job.wildcard, self.inventory.all(), self.warn_days, self.clock())
        job.action = decision.action
        job.reason = decision.reason

        if decision.action == Action.REUSE:
            job.cert_id = decision.cert_id
            return

        if self.dry_run:
            logger.info("Dry-run: would run certbot for %s and upload the result (%s)",
                        job.wildcard, decision.reason.value)
            return

        issued = self.issuer.issue(job.wildcard)
        created = self.uploader.upload(issued, self.clock().date())
        job.cert_id = created.id
        job.created = True

    def process(self, wildcard: str) -> RenewalJob:
        job = RenewalJob(wildcard)
        try:
            self.ensure_certificate(job)
            target = job.cert_id if job.cert_id is not None else PENDING_CERT
            job.hosts_changed = self.reassigner.reassign(wildcard, target, dry_run=self.dry_run)
        except AuthenticationError:
            raise
        except NpmWildcardError as e:
            logger.error("Error handling %s: %s", wildcard, e)
            logger.debug("Error details for %s", wildcard, exc_info=True)
            job.fail(e)
            return job
        except Exception as e:
            logger.exception("Unexpected error handling %s", wildcard)
            job.fail(e)
            return job

        if self.dry_run and job.action == Action.RENEW:
            job.status = JobStatus.DRY_RUN
        else:
            job.status = JobStatus.SUCCEEDED
        if job.hosts_changed > 0:
            logger.info("Updated %d host(s) for %s.", job.hosts_changed, wildcard)
        else:
            logger.info("No host updates needed for %s.", wildcard)
        return job

    # ------------------ whole run ------------------
    def run(self, wildcards: Iterable[str]) -> RunReport:
        wildcards = list(wildcards)
        report = RunReport(started_at=self.clock(), dry_run=self.dry_run)

        logger.info("Authenticating to Nginx Proxy Manager")
        self.client.login()
        logger.info("Authenticated.")

        for wildcard in wildcards:
            report.jobs.append(self.process(wildcard))

        if self.sweeper is not None:
            created = [j.cert_id for j in report.jobs if j.created]
            try:
                report.deletions = self.sweeper.sweep(wildcards, dry_run=self.dry_run,
                                                      now=self.clock(), created_this_run=created)
            except AuthenticationError:
                raise
            except NpmWildcardError as e:
                logger.error("Cleanup failed: %s", e)

        report.finished_at = self.clock()
        for job in report.jobs:
            logger.info("%s: %s action=%s cert=%s hosts=%d%s", job.wildcard,
                        job.status.value if job.status else "?",
                        job.action.value if job.action else "-", job.cert_id,
                        job.hosts_changed, f" error={job.error}" if job.error else "")
        logger.info("Done.")
        return report
