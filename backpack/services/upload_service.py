"""The badge upload pipeline.

    file bytes, capped at UPLOAD_MAX_BYTES
      → image_extractor.extract      assertion URL        (pure)
      → AssertionFetcher.fetch       Assertion            (network)
      → recipient_matcher            verified email       (pure)
      → AwardEngine.award_badge      Badge                (storage)

Any failure before the award aborts without writing.  Every failure is
counted by outcome; a recipient mismatch is additionally written to the
audit log, without the list of identities that were tried.
"""

from __future__ import annotations

import logging

from backpack.core.errors import BackpackError, OversizedUpload, RecipientMismatch
from backpack.core.logging import get_audit_logger
from backpack.core.metrics import BADGE_UPLOADS, SECURITY_REJECTIONS
from backpack.models.principal import Principal
from backpack.services import image_extractor, recipient_matcher
from backpack.services.assertion_fetcher import AssertionFetcher
from backpack.services.award_service import AwardEngine, AwardResult

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


async def upload_badge(
    file_bytes: bytes,
    principal: Principal,
    *,
    fetcher: AssertionFetcher,
    engine: AwardEngine,
    max_bytes: int | None = None,
) -> AwardResult:
    try:
        if max_bytes is not None and len(file_bytes) > max_bytes:
            raise OversizedUpload(f"upload exceeds {max_bytes} bytes")
        result = await _run(file_bytes, principal, fetcher=fetcher, engine=engine)
    except BackpackError as e:
        BADGE_UPLOADS.labels(outcome=type(e).__name__).inc()
        if not e.security_relevant:
            logger.warning("There was an error uploading a badge: %s", type(e).__name__)
            logger.debug("Upload failure detail: %s", e)
        raise

    BADGE_UPLOADS.labels(outcome="created" if result.created else "existing").inc()
    return result


async def _run(
    file_bytes: bytes,
    principal: Principal,
    *,
    fetcher: AssertionFetcher,
    engine: AwardEngine,
) -> AwardResult:
    extracted = image_extractor.extract(file_bytes)
    assertion = await fetcher.fetch(extracted.assertion_url)

    recipient_email = recipient_matcher.matching_identity(assertion, principal.emails)
    if recipient_email is None:
        SECURITY_REJECTIONS.labels(reason="recipient_mismatch").inc()
        audit_logger.warning(
            "Upload rejected: assertion recipient does not match session identity",
            extra={
                "recipient": principal.primary_email,
                "audit_event": "recipient_mismatch",
            },
        )
        raise RecipientMismatch(f"assertion at {extracted.assertion_url} not issued to caller")

    return await engine.award_badge(
        assertion, extracted.assertion_url, extracted.image_bytes, recipient_email
    )
