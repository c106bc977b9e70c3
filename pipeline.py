"""Incremental fetch -> filter -> extract -> summarize -> save pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace

import httpx

from arxiv_ids import normalize_arxiv_id, to_abs_url
from batch_runner import TaskFailure, run_concurrent
from config import Settings
from detail_pages import write_detail_page
from extractor import build_http_client, extract_content, fetch_abs_metadata, fetch_pdf_text
from listing_feed import fetch_listing
from llm_client import CompletionClient, build_completion_client
from models import ExtractedContent, ListingItem, PaperRecord
from relevance_filter import filter_by_relevance
from store import PaperStore, RelevanceCache, utc_now
from summarizer import NO_PREVIEW_SENTINEL, generate_long_summary, generate_short_summary, summarize_paper

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    total: int = 0
    cached: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class _WorkItem:
    identifier: str
    item: ListingItem
    previous: PaperRecord | None


_Enriched = tuple[PaperRecord, ExtractedContent]


def refresh_from_listing(record: PaperRecord, item: ListingItem, now: str) -> PaperRecord:
    """Listing metadata wins; enrichment fields are kept.

    ``last_updated`` only moves when a listing field actually changed.
    """
    refreshed = replace(
        record,
        title=item.title,
        publication_date=item.date,
        authors=item.authors,
        category=item.category,
    )
    if refreshed != record:
        refreshed.last_updated = now
    return refreshed


def dedupe_listing(items: Sequence[ListingItem]) -> list[tuple[str, ListingItem]]:
    """Pair items with their canonical id, dropping unrecognized and repeated ids."""
    unique: list[tuple[str, ListingItem]] = []
    seen: set[str] = set()
    for item in items:
        identifier = normalize_arxiv_id(item.url)
        if identifier is None:
            LOGGER.warning("Skipping unrecognized paper reference: %s", item.url)
            continue
        if identifier in seen:
            continue
        seen.add(identifier)
        unique.append((identifier, item))
    return unique


async def enrich_item(
    http: httpx.AsyncClient,
    llm: CompletionClient | None,
    work: _WorkItem,
    now: str,
) -> _Enriched:
    item, previous = work.item, work.previous
    content = await extract_content(http, work.identifier)
    short, long = await summarize_paper(llm, item.title, content, previous)

    if previous is not None and previous.tags:
        tags = list(previous.tags)
    else:
        tags = [item.category] if item.category else []

    record = PaperRecord(
        identifier=work.identifier,
        source_url=item.url,
        title=item.title,
        authors=item.authors,
        publication_date=item.date,
        category=item.category,
        short_summary=short,
        long_summary=long,
        image_urls=list(content.image_urls),
        tags=tags,
        last_updated=now,
    )
    return record, content


async def enrich_and_save(
    work_items: Sequence[_WorkItem],
    store: PaperStore,
    settings: Settings,
    http: httpx.AsyncClient,
    llm: CompletionClient | None,
    now: str,
    label: str = "Summary",
    prepare: Callable[[_WorkItem], Awaitable[_WorkItem | None]] | None = None,
) -> RunSummary:
    """Enrich ``work_items`` concurrently, saving after every completed item.

    ``prepare`` runs inside each item's task before enrichment; returning
    None skips the item.
    """
    summary = RunSummary(total=len(work_items))
    if not work_items:
        return summary

    total = len(work_items)
    done = 0

    def make_task(work: _WorkItem) -> Callable[[], Awaitable[_Enriched | None]]:
        async def task() -> _Enriched | None:
            ready = await prepare(work) if prepare is not None else work
            if ready is None:
                return None
            return await enrich_item(http, llm, ready, now)
        return task

    def on_complete(index: int, outcome: _Enriched | TaskFailure | None) -> None:
        nonlocal done
        done += 1
        pct = done * 100 // total
        work = work_items[index]
        if isinstance(outcome, TaskFailure):
            summary.failed += 1
            LOGGER.error("  [%s %s/%s %s%%] %s failed: %s", label, done, total, pct, work.item.title, outcome.error)
            return
        if outcome is None:
            summary.skipped += 1
            LOGGER.warning("  [%s %s/%s %s%%] %s skipped", label, done, total, pct, work.item.url)
            return

        record, content = outcome
        store.upsert(record)
        store.save()
        write_detail_page(settings.pages_dir, record, settings.source_url)
        summary.processed += 1
        LOGGER.info(
            "  [%s %s/%s %s%%] %s  (text:%s imgs:%s) saved",
            label, done, total, pct, record.title, len(content.text), len(content.image_urls),
        )

    LOGGER.info("Starting %s summaries with concurrency=%s...", total, settings.summary_concurrency)
    tasks = [make_task(work) for work in work_items]
    await run_concurrent(tasks, settings.summary_concurrency, on_complete=on_complete)
    return summary


async def process_listing(
    items: Sequence[ListingItem],
    settings: Settings,
    *,
    http: httpx.AsyncClient | None = None,
    llm: CompletionClient | None = None,
    store: PaperStore | None = None,
    cache: RelevanceCache | None = None,
) -> RunSummary:
    """Run filter, enrichment and persistence over already-fetched listing items."""
    if store is None:
        store = PaperStore.load(settings.output_path, settings.index_path, settings.source_url)
    if cache is None:
        cache = RelevanceCache.load(settings.cache_path)

    candidates = dedupe_listing(items)
    LOGGER.info("Parsed %s unique papers from the listing", len(candidates))

    known = [(ident, item) for ident, item in candidates if ident in store]
    unknown = [(ident, item) for ident, item in candidates if ident not in store]
    LOGGER.info("Already stored: %s, to filter: %s", len(known), len(unknown))

    filtered = await filter_by_relevance(
        [item for _, item in unknown],
        llm,
        cache,
        batch_size=settings.filter_batch_size,
        concurrency=settings.filter_concurrency,
    )
    kept_urls = {item.url for item in filtered.kept}
    LOGGER.info("%s / %s unstored papers passed the filter", len(kept_urls), len(unknown))
    cache.save()

    relevant = [(ident, item) for ident, item in candidates if ident in store or item.url in kept_urls]
    now = utc_now()
    summary = RunSummary()
    work_items: list[_WorkItem] = []
    for identifier, item in relevant:
        previous = store.get(identifier)
        if previous is not None and previous.enriched:
            store.upsert(refresh_from_listing(previous, item, now))
            summary.cached += 1
        else:
            work_items.append(_WorkItem(identifier, item, previous))

    LOGGER.info("Cached (skip): %s, need LLM: %s", summary.cached, len(work_items))
    listing_order = [identifier for identifier, _ in relevant]
    store.reorder(listing_order)
    store.save()

    own_http = http is None
    http = http or build_http_client()
    try:
        enriched = await enrich_and_save(work_items, store, settings, http, llm, now)
    finally:
        if own_http:
            await http.aclose()

    store.reorder(listing_order)
    store.save()

    summary.total = len(relevant)
    summary.processed = enriched.processed
    summary.failed = enriched.failed
    summary.skipped = len(candidates) - len(relevant)
    return summary


def run_daily(settings: Settings) -> RunSummary:
    """Fetch the listing and run one incremental pipeline cycle."""
    items = fetch_listing(settings.source_url, settings.max_items)
    llm = build_completion_client(settings)
    return asyncio.run(process_listing(items, settings, llm=llm))


async def force_add_async(
    settings: Settings,
    value: str,
    *,
    http: httpx.AsyncClient | None = None,
    llm: CompletionClient | None = None,
    store: PaperStore | None = None,
) -> RunSummary:
    """Add one paper by id or URL, bypassing the listing and the filter.

    Raises ValueError for unrecognized input and RuntimeError when the
    abstract page metadata cannot be fetched.
    """
    identifier = normalize_arxiv_id(value)
    if identifier is None:
        raise ValueError(f"Invalid FORCE_ARXIV_INPUT: {value}")

    if store is None:
        store = PaperStore.load(settings.output_path, settings.index_path, settings.source_url)
    if identifier in store:
        LOGGER.info("Paper %s already stored, nothing to add", identifier)
        return RunSummary(total=1, cached=1)

    abs_url = to_abs_url(identifier)
    own_http = http is None
    http = http or build_http_client()
    try:
        item = await fetch_abs_metadata(http, abs_url)
        if item is None:
            raise RuntimeError(f"Failed to fetch metadata from {abs_url}")
        LOGGER.info("Force adding paper: %s", item.title)
        summary = await enrich_and_save(
            [_WorkItem(identifier, item, None)], store, settings, http, llm, utc_now()
        )
    finally:
        if own_http:
            await http.aclose()

    store.reorder([identifier])
    store.save()
    return summary


def force_add(settings: Settings, value: str) -> RunSummary:
    llm = build_completion_client(settings)
    return asyncio.run(force_add_async(settings, value, llm=llm))


async def backfill_async(
    settings: Settings,
    *,
    http: httpx.AsyncClient | None = None,
    llm: CompletionClient | None = None,
    store: PaperStore | None = None,
    cache: RelevanceCache | None = None,
) -> RunSummary:
    """Enrich papers the filter kept earlier but that never reached the store."""
    if store is None:
        store = PaperStore.load(settings.output_path, settings.index_path, "backfill")
    if cache is None:
        cache = RelevanceCache.load(settings.cache_path)

    missing: list[tuple[str, str]] = []
    seen: set[str] = set()
    for url in cache.kept:
        identifier = normalize_arxiv_id(url)
        if identifier is None or identifier in store or identifier in seen:
            continue
        seen.add(identifier)
        missing.append((identifier, url))

    todo = missing[: settings.batch_size] if settings.batch_size else missing
    LOGGER.info("Stored: %s, cache kept: %s, missing: %s, this run: %s",
                len(store), len(cache.kept), len(missing), len(todo))
    if not todo:
        LOGGER.info("Nothing to backfill")
        return RunSummary()

    own_http = http is None
    http = http or build_http_client()

    async def with_metadata(work: _WorkItem) -> _WorkItem | None:
        meta = await fetch_abs_metadata(http, to_abs_url(work.identifier))
        if meta is None:
            LOGGER.warning("  [SKIP] Could not fetch metadata for %s", work.item.url)
            return None
        return replace(work, item=replace(meta, url=work.item.url))

    work_items = [_WorkItem(identifier, ListingItem(url=url, title=url), None) for identifier, url in todo]
    try:
        summary = await enrich_and_save(
            work_items, store, settings, http, llm, utc_now(), label="Backfill", prepare=with_metadata
        )
    finally:
        if own_http:
            await http.aclose()

    store.save()
    return summary


def backfill(settings: Settings) -> RunSummary:
    llm = build_completion_client(settings)
    return asyncio.run(backfill_async(settings, llm=llm))


def needs_regeneration(record: PaperRecord) -> bool:
    return not record.image_urls or record.short_summary == NO_PREVIEW_SENTINEL


async def regen_empty_async(
    settings: Settings,
    *,
    http: httpx.AsyncClient | None = None,
    llm: CompletionClient | None = None,
    store: PaperStore | None = None,
) -> RunSummary:
    """Re-summarize papers that never had an HTML preview, using PDF text."""
    if store is None:
        store = PaperStore.load(settings.output_path, settings.index_path, settings.source_url)
    candidates = [record for record in store.records() if needs_regeneration(record)]
    todo = candidates[: settings.batch_size] if settings.batch_size else candidates
    LOGGER.info("Stored: %s, without preview: %s, this run: %s", len(store), len(candidates), len(todo))

    summary = RunSummary(total=len(todo))
    if not todo:
        LOGGER.info("Nothing to regenerate")
        return summary

    now = utc_now()
    done = 0

    def make_task(record: PaperRecord) -> Callable[[], Awaitable[PaperRecord | None]]:
        async def task() -> PaperRecord | None:
            text = await fetch_pdf_text(http, record.identifier)
            if not text:
                return None
            short = await generate_short_summary(llm, record.title, text)
            long = await generate_long_summary(llm, record.title, text)
            return replace(
                record,
                short_summary=short or record.short_summary,
                long_summary=long or record.long_summary,
                last_updated=now,
            )
        return task

    def on_complete(index: int, outcome: PaperRecord | TaskFailure | None) -> None:
        nonlocal done
        done += 1
        record = todo[index]
        if isinstance(outcome, TaskFailure):
            summary.failed += 1
            return
        if outcome is None:
            LOGGER.warning("  [SKIP] No PDF text for %s", record.identifier)
            summary.skipped += 1
            return
        store.upsert(outcome)
        store.save()
        write_detail_page(settings.pages_dir, outcome, settings.source_url)
        summary.processed += 1
        LOGGER.info("  [Regen %s/%s %s%%] %s", done, len(todo), done * 100 // len(todo), record.title[:60])

    own_http = http is None
    http = http or build_http_client()
    try:
        await run_concurrent([make_task(r) for r in todo], settings.summary_concurrency, on_complete=on_complete)
    finally:
        if own_http:
            await http.aclose()

    store.save()
    return summary


def regen_empty(settings: Settings) -> RunSummary:
    llm = build_completion_client(settings)
    return asyncio.run(regen_empty_async(settings, llm=llm))
