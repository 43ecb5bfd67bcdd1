from __future__ import annotations

import re
from dataclasses import dataclass

from fingerprint_grouping.datasets.profiles import LIBRARY_ID_PATTERN, SUBJECT_ID_PATTERN


@dataclass(frozen=True)
class NamingConvention:
    """Derives subject and library identities from item keys by pattern matching."""

    subject_pattern: re.Pattern[str]
    library_pattern: re.Pattern[str]

    @classmethod
    def from_patterns(cls, subject_pattern: str, library_pattern: str) -> "NamingConvention":
        return cls(
            subject_pattern=re.compile(subject_pattern),
            library_pattern=re.compile(library_pattern),
        )

    def subject_id(self, key: str) -> str | None:
        return _last_match(self.subject_pattern, key)

    def library_id(self, key: str) -> str | None:
        return _last_match(self.library_pattern, key)


UMCCR_CONVENTION = NamingConvention.from_patterns(SUBJECT_ID_PATTERN, LIBRARY_ID_PATTERN)


def basename(key: str) -> str:
    return key.rstrip("/").rsplit("/", maxsplit=1)[-1]


def bucket_key_to_url(key: str, sites_checksum: str) -> str:
    """Decode a fingerprint object key of the form ``<checksum>/<hex url>``.

    Raises ``ValueError`` for keys outside the checksum folder or with a non-hex name.
    """
    prefix = f"{sites_checksum}/"
    if not key.startswith(prefix):
        raise ValueError(f"key {key!r} is not under the sites checksum folder {sites_checksum!r}")
    return bytes.fromhex(key[len(prefix) :]).decode("utf-8")


def url_to_bucket_key(url: str, sites_checksum: str) -> str:
    return f"{sites_checksum}/{url.encode('utf-8').hex()}"


def _last_match(pattern: re.Pattern[str], key: str) -> str | None:
    # the file name overrides the folders above it
    matches = list(pattern.finditer(key))
    if not matches:
        return None
    match = matches[-1]
    return match.group(1) if match.groups() else match.group(0)
