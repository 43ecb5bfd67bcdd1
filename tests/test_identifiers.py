import pytest

from fingerprint_grouping.identifiers import (
    UMCCR_CONVENTION,
    NamingConvention,
    basename,
    bucket_key_to_url,
    url_to_bucket_key,
)


def test_subject_and_library_are_extracted_from_key() -> None:
    key = "gds://production/analysis/2023/SBJ00123/WGS/SBJ00123__L2100456-tumor.bam"

    assert UMCCR_CONVENTION.subject_id(key) == "SBJ00123"
    assert UMCCR_CONVENTION.library_id(key) == "L2100456"


def test_missing_identities_are_none() -> None:
    key = "s3://bucket/unsorted/sample_7.bam"

    assert UMCCR_CONVENTION.subject_id(key) is None
    assert UMCCR_CONVENTION.library_id(key) is None


def test_short_ids_do_not_match() -> None:
    assert UMCCR_CONVENTION.subject_id("s3://bucket/SBJ0012/L210045.bam") is None
    assert UMCCR_CONVENTION.library_id("s3://bucket/SBJ0012/L210045.bam") is None


def test_custom_convention() -> None:
    convention = NamingConvention.from_patterns(r"(PAT-\d+)", r"LIB(\d+)")

    assert convention.subject_id("/data/PAT-42/LIB0007.cram") == "PAT-42"
    assert convention.library_id("/data/PAT-42/LIB0007.cram") == "0007"


def test_basename() -> None:
    assert basename("gds://production/analysis/SBJ00001/sample.bam") == "sample.bam"
    assert basename("sample.bam") == "sample.bam"


def test_bucket_key_decoding() -> None:
    url = "gds://production/analysis/SBJ00001/sample.bam"
    key = url_to_bucket_key(url, "abc123")

    assert key.startswith("abc123/")
    assert bucket_key_to_url(key, "abc123") == url
    assert bucket_key_to_url("abc123/", "abc123") == ""


def test_bucket_key_outside_checksum_folder_is_rejected() -> None:
    with pytest.raises(ValueError):
        bucket_key_to_url("other/6162", "abc123")


def test_file_name_identities_win_over_folder() -> None:
    key = "gds://production/analysis/2023/SBJ00001/WGS/SBJ00002__L2100001_L2100002-tumor.bam"

    assert UMCCR_CONVENTION.subject_id(key) == "SBJ00002"
    assert UMCCR_CONVENTION.library_id(key) == "L2100002"
