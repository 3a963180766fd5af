"""Per-file SHA-1 checksums stored in the PAX records of apk data tarballs."""

from __future__ import annotations

import base64
import binascii
import tarfile

PAX_RECORDS_CHECKSUM_KEY = "APK-TOOLS.checksum.SHA1"

_BASE64_PREFIX = "Q1"


def checksum_from_header(member: tarfile.TarInfo) -> bytes | None:
    """Return the SHA-1 checksum recorded for ``member``, or None if it has none.

    The checksum is normally hex encoded. A value starting with ``Q1`` holds
    the checksum base64 encoded instead. Raises ValueError when the recorded
    value cannot be decoded.
    """
    pax = member.pax_headers
    if not pax:
        return None
    recorded = pax.get(PAX_RECORDS_CHECKSUM_KEY)
    if recorded is None:
        return None

    if recorded.startswith(_BASE64_PREFIX):
        encoded = recorded[len(_BASE64_PREFIX):]
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(
                f"decoding base64 checksum from header for {member.name!r}: {exc}"
            ) from exc

    try:
        return binascii.unhexlify(recorded)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(
            f"decoding hex checksum from header for {member.name!r}: {exc}"
        ) from exc