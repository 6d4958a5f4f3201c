# npm_wildcard/uploader.py
"""Validate -> create -> upload a certificate pair, then resolve its record by name."""

import logging
from datetime import date

from npm_wildcard.adapters.inventory import Inventory
from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.errors import UploadConsistencyError
from npm_wildcard.models import Certificate, IssuedCertificate

logger = logging.getLogger(__name__)


def nice_name_for(wildcard: str, today: date | None = None) -> str:
    return f"{wildcard} - {(today or date.today()).isoformat()}"


class CertificateUploader:
    def __init__(self, client: NpmClient, inventory: Inventory):
        self.client = client
        self.inventory = inventory

    def upload(self, issued: IssuedCertificate, today: date | None = None) -> Certificate:
        """
        Phases are fail-fast. ValidationRejected is raised before anything is
        created. The create response is not trusted for the final id; the
        record is looked up again by its nice name after the upload.
        """
        certificate = issued.fullchain.strip()
        certificate_key = issued.privkey.strip()
        nice_name = nice_name_for(issued.domain, today)
        logger.debug("Certificate length: %d, private key length: %d",
                     len(certificate), len(certificate_key))

        logger.info("Validating certificate for %s", issued.domain)
        self.client.validate_certificate(certificate, certificate_key)

        logger.info("Creating certificate record '%s'", nice_name)
        created = self.client.create_certificate(nice_name)
        created_id = created.get("id") if isinstance(created, dict) else None
        if created_id is None:
            raise UploadConsistencyError(nice_name, None)

        logger.info("Uploading certificate files to id=%s", created_id)
        self.client.upload_certificate(created_id, certificate, certificate_key)

        resolved = self.inventory.find_by_nice_name(nice_name, prefer_id=created_id)
        if resolved is None:
            raise UploadConsistencyError(nice_name, created_id)
        logger.info("New certificate id=%s ready (%s)", resolved.id, nice_name)
        return resolved
