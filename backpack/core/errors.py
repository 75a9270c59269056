"""Failure taxonomy for the badge upload pipeline.

Every failure a caller can see is a BackpackError subclass carrying:

  user_message       the single sentence shown to the uploader
  status_code        HTTP status used by the API exception handler
  security_relevant  True when the failure must go to the audit log

The exception's own message (str(exc)) is the detailed, log-only
description.  It may name URLs, chunk contents or HTTP statuses and is
never sent back to the client.
"""

from __future__ import annotations


class BackpackError(Exception):
    user_message = "Something went wrong with your badge."
    status_code = 500
    security_relevant = False

    def __init__(self, detail: str = "", *, user_message: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class EmptyUpload(BackpackError):
    user_message = "You must choose a badge to upload."
    status_code = 400


class MalformedImage(BackpackError):
    user_message = "Could not find badge data in the uploaded image."
    status_code = 422


class OversizedUpload(BackpackError):
    user_message = "That badge image is too large."
    status_code = 413


class UnreachableIssuer(BackpackError):
    user_message = "Could not reach the badge issuer. Try again later."
    status_code = 502


class InvalidAssertionFormat(BackpackError):
    user_message = "The badge issuer returned data that is not a badge assertion."
    status_code = 502


class RecipientMismatch(BackpackError):
    user_message = "This badge was not issued to you! Contact your issuer."
    status_code = 403
    security_relevant = True


class InvalidAssertion(BackpackError):
    user_message = "The badge assertion is missing required information."
    status_code = 422


class StorageError(BackpackError):
    user_message = "There was a problem saving your badge!"
    status_code = 500


class Forbidden(BackpackError):
    user_message = "Cannot delete a badge you don't own"
    status_code = 403
    security_relevant = True


class DuplicateBadgeError(Exception):
    """Raised by a BadgeRepo when (body_hash, email) already exists."""


class IdentityVerificationError(Exception):
    """The identity verifier refused or could not be asked.

    type: connection | status | parse | rejected
    body: raw verifier response text (may be empty), for debug logging only
    """

    def __init__(self, type: str, body: str = "") -> None:
        super().__init__(f"identity verification failed: {type}")
        self.type = type
        self.body = body
