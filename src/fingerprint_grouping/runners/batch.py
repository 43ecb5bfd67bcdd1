from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from fingerprint_grouping import report as messages
from fingerprint_grouping.datasets.profiles import (
    CHECK_ADDRESS_ATTRIBUTE,
    CONTROL_MARKERS,
    DISCOVERY_NAMESPACE,
    DISCOVERY_SERVICE,
    REPORTING_SECRET_FIELD,
    REPORTING_SECRET_ID,
)
from fingerprint_grouping.errors import GroupingError, SecretNotFoundError, ServiceNotFoundError
from fingerprint_grouping.identifiers import bucket_key_to_url
from fingerprint_grouping.interfaces import (
    ComparisonService,
    ItemEnumerator,
    ReportingSink,
    SecretProvider,
    ServiceLocator,
)
from fingerprint_grouping.models import FingerprintObject, GroupingReport
from fingerprint_grouping.runners.local import resolve_groups
from fingerprint_grouping.settings import GroupingSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FingerprintBatch:
    """Fingerprints that arrived on one calendar day."""

    batch_date: date
    urls: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


async def iter_fingerprint_objects(
    enumerator: ItemEnumerator,
    bucket: str,
    prefix: str,
) -> AsyncIterator[FingerprintObject]:
    token: str | None = None
    while True:
        page = await enumerator.list_page(bucket, prefix, token)
        for item in page.objects:
            yield item
        token = page.next_token
        if not token:
            return


def select_batch(
    objects: Sequence[FingerprintObject],
    sites_checksum: str,
    days: int | None = None,
    now: datetime | None = None,
) -> FingerprintBatch:
    """Pick the fingerprints from ``days`` ago, or from the most recent day seen."""
    if days is not None:
        target = ((now or datetime.now(timezone.utc)) - timedelta(days=days)).date()
        logger.info("Going back %d days, processing %s as a batch", days, target)
    else:
        if not objects:
            raise ValueError("There are no fingerprints to pick a latest batch from")
        target = max(item.last_modified for item in objects).date()
        logger.info("The latest fingerprint arrived on %s, processing that day as a batch", target)

    batch = FingerprintBatch(batch_date=target)
    for item in objects:
        if item.last_modified.date() != target:
            continue
        url = bucket_key_to_url(item.key, sites_checksum)
        # folder entries
        if not url.strip():
            continue
        if any(marker in url for marker in CONTROL_MARKERS):
            logger.info("Skipping control sample %s", url)
            batch.skipped.append(url)
            continue
        batch.urls.append(url)
    return batch


async def locate_comparison_service(
    locator: ServiceLocator,
    namespace: str = DISCOVERY_NAMESPACE,
    service: str = DISCOVERY_SERVICE,
) -> str:
    instances = await locator.discover(namespace, service)
    if not instances:
        raise ServiceNotFoundError(f"Found no {service} instance in the {namespace} namespace")
    address = instances[0].get(CHECK_ADDRESS_ATTRIBUTE)
    if not address:
        raise ServiceNotFoundError(f"The {service} instance has no {CHECK_ADDRESS_ATTRIBUTE} to invoke")
    return address


async def reporting_token(
    provider: SecretProvider,
    secret_id: str = REPORTING_SECRET_ID,
    secret_field: str = REPORTING_SECRET_FIELD,
) -> str:
    raw = await provider.get_secret(secret_id)
    if not raw:
        raise SecretNotFoundError(f"There needs to be a {secret_id!r} secret holding the reporting tokens")
    try:
        secrets = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SecretNotFoundError(f"The {secret_id!r} secret is not a JSON document") from exc
    if not isinstance(secrets, dict) or not secrets.get(secret_field):
        raise SecretNotFoundError(f"The {secret_id!r} secret needs a {secret_field!r} field")
    return secrets[secret_field]


async def run_grouping_command(
    settings: GroupingSettings,
    *,
    secrets: SecretProvider,
    sink_factory: Callable[[str], ReportingSink],
    locator: ServiceLocator,
    service_factory: Callable[[str], ComparisonService],
    enumerator: ItemEnumerator,
    now: datetime | None = None,
) -> GroupingReport | None:
    """Group the latest batch of fingerprints and post the outcome to the channel.

    The sink is set up before any work is done; if that fails there is nowhere to
    report to and the error propagates. Grouping failures after that point are
    posted to the channel instead of raised.
    """
    sink = sink_factory(await reporting_token(secrets))

    try:
        address = await locate_comparison_service(locator)
        objects = [
            item async for item in iter_fingerprint_objects(enumerator, settings.bucket, settings.sites_checksum)
        ]
        batch = select_batch(objects, settings.sites_checksum, days=settings.days, now=now)

        if not batch.urls:
            await sink.post_message(settings.channel, messages.empty_batch_message(settings.bucket, batch.batch_date))
            return None

        report = await resolve_groups(
            batch.urls,
            settings.concurrency,
            settings.relatedness,
            settings.exclude_pattern,
            service=service_factory(address),
            poll_interval=settings.poll_interval,
            deadline=settings.deadline,
        )
    except (GroupingError, ValueError) as exc:
        logger.exception("Fingerprint grouping failed")
        await sink.post_message(settings.channel, str(exc))
        return None

    await sink.post_message(
        settings.channel,
        messages.header_message(settings.bucket, batch.batch_date, len(batch.urls), settings.relatedness),
    )
    for text in messages.render_messages(report):
        await sink.post_message(settings.channel, text)
    return report
