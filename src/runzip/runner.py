from __future__ import annotations

"""Per-archive pipeline: scan, plan, rewrite, summarize."""

import concurrent.futures
from pathlib import Path
from typing import Iterable, Protocol

from loguru import logger

from .archive.rewriter import atomic_rewrite
from .archive.scanner import scan_archive
from .codec.converter import ConversionPlan, EntryStatus, convert_comment, convert_entry
from .config import RunConfig
from .errors import ArchiveIOError, ProcessingError
from .model import ArchiveSummary, ContainerModel


class SummarySink(Protocol):
    def report(self, summary: ArchiveSummary) -> None: ...


def plan_archive(model: ContainerModel, config: RunConfig) -> tuple[list[ConversionPlan], bytes]:
    """Build one plan per entry plus the converted archive comment."""
    target = config.effective_target
    plans = [
        convert_entry(
            index,
            entry,
            target,
            forced=config.source_encoding,
            min_confidence=config.min_confidence,
        )
        for index, entry in enumerate(model.entries)
    ]
    comment = convert_comment(
        model.comment,
        target,
        forced=config.source_encoding,
        min_confidence=config.min_confidence,
    )
    return plans, comment


def summarize(
    path: str,
    model: ContainerModel,
    plans: list[ConversionPlan],
    comment: bytes,
    config: RunConfig,
) -> ArchiveSummary:
    summary = ArchiveSummary(
        archive=path,
        entry_count=len(model.entries),
        plans=plans,
        comment_changed=comment != model.comment,
        dry_run=config.dry_run,
        target=config.effective_target.name,
    )
    for plan in plans:
        summary.encodings[plan.source or plan.status.value] += 1
        if plan.changed:
            summary.renamed += 1
        if plan.status is EntryStatus.UNDECODABLE:
            summary.undecodable.append(plan.display_name)
        elif plan.status is EntryStatus.UNKNOWN or plan.ambiguous:
            summary.ambiguous.append(plan.display_name)
    return summary


def process(path: str | Path, config: RunConfig) -> ArchiveSummary:
    """Convert the names inside one archive.

    Raises a ProcessingError subclass when the archive cannot be handled;
    the file is left untouched in that case.
    """
    archive = Path(path)
    name = str(archive)
    logger.info(f"Processing {name}")
    try:
        with open(archive, "rb") as stream:
            model = scan_archive(stream, config.size_ceiling)
    except OSError as exc:
        raise ArchiveIOError(f"Failed to open {name}: {exc.strerror or exc}", path=name) from exc
    except ProcessingError as exc:
        raise exc.with_path(name)

    plans, comment = plan_archive(model, config)
    summary = summarize(name, model, plans, comment, config)

    if config.dry_run:
        logger.info(f"{name}: dry run, {summary.renamed} of {summary.entry_count} entries would change")
        return summary

    try:
        atomic_rewrite(archive, model, plans, comment)
    except ProcessingError as exc:
        raise exc.with_path(name)
    logger.info(f"{name}: {summary.renamed} of {summary.entry_count} entries changed")
    return summary


def process_many(
    paths: Iterable[str | Path],
    config: RunConfig,
    sink: SummarySink | None = None,
) -> list[ArchiveSummary]:
    """Process archives concurrently; one failure never stops the others.

    Failed archives come back as summaries with ``error`` set. Results keep
    the order of ``paths``.
    """
    targets = list(dict.fromkeys(str(p) for p in paths))
    results: dict[str, ArchiveSummary] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=config.jobs) as ex:
        futures = {ex.submit(process, p, config): p for p in targets}
        for fut in concurrent.futures.as_completed(futures):
            path = futures[fut]
            try:
                summary = fut.result()
            except ProcessingError as exc:
                error = f"{exc.kind}: {exc.message}"
                logger.error(f"Error processing {path}: {error}")
                summary = ArchiveSummary(archive=path, dry_run=config.dry_run, error=error)
            except Exception as exc:  # noqa: BLE001
                logger.exception(f"Unexpected failure processing {path}")
                summary = ArchiveSummary(
                    archive=path, dry_run=config.dry_run, error=f"{type(exc).__name__}: {exc}"
                )
            results[path] = summary
            if sink is not None:
                sink.report(summary)
    return [results[p] for p in targets]
