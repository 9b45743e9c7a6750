import re
from typing import Optional, Union

import gidgethub
from gidgethub import sansio

from mergeguard.errors import VerificationError, VerificationFailure

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="

_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


def verify_signature(
    header: Optional[str], secret: Optional[str], body: Union[str, bytes]
) -> None:
    """
    Check a ``X-Hub-Signature-256`` header against the body.

    Without a configured secret every request is accepted. Raises
    ``VerificationError`` carrying the reason of the rejection.
    """
    if not secret:
        return

    if header is None or header == "":
        raise VerificationError(VerificationFailure.missing_header)

    if not header.startswith(SIGNATURE_PREFIX):
        raise VerificationError(VerificationFailure.malformed_header)

    digest = header[len(SIGNATURE_PREFIX) :]
    if _DIGEST.fullmatch(digest) is None:
        raise VerificationError(VerificationFailure.malformed_header)

    if isinstance(body, str):
        body = body.encode()

    try:
        sansio.validate_event(
            body, signature=SIGNATURE_PREFIX + digest.lower(), secret=secret
        )
    except gidgethub.ValidationFailure as e:
        raise VerificationError(VerificationFailure.signature_mismatch) from e
