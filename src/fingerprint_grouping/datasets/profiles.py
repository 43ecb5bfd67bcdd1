from __future__ import annotations

# UMCCR file naming conventions, e.g. ".../SBJ00123/wgs/L2100456_tumor.bam".
SUBJECT_ID_PATTERN = r"(SBJ\d{5})"
LIBRARY_ID_PATTERN = r"(L\d{7})"

# Positive and negative template controls are not people and never take part in grouping.
CONTROL_MARKERS = ("PTC_", "NTC_")
DEFAULT_EXCLUDE_PATTERN = ".*(NTC_|PTC_).*"

DEFAULT_BUCKET = "umccr-fingerprint-prod"
DEFAULT_SITES_CHECKSUM = "ad0e523b19164b9af4dda86c90462f6a"  # pragma: allowlist secret

DISCOVERY_NAMESPACE = "umccr"
DISCOVERY_SERVICE = "fingerprint"
CHECK_ADDRESS_ATTRIBUTE = "checkStepsArn"

REPORTING_SECRET_ID = "SlackApps"
REPORTING_SECRET_FIELD = "HolmesBotUserOAuthToken"  # pragma: allowlist secret
