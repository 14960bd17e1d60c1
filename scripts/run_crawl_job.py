"""
Run one crawl from the CLI.

  --job-id UUID        execute a stored job once (versioning included)
  --url URL            one-off crawl without persistence, printing a summary
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import uuid

from app.config import get_credential_settings, get_crawl_settings
from app.crawling.auth.crypto import CredentialCipher
from app.crawling.engine import CrawlEngine
from app.scheduler.planning import AUTO_TEMPLATE_ID, build_crawl_plan


def _run_job(job_id: uuid.UUID) -> dict:
    from app.scheduler.orchestrator import CrawlOrchestrator
    from app.services.embedding_service import build_document_embedder
    from db.session import get_session_factory

    key = get_credential_settings().encryption_key
    orchestrator = CrawlOrchestrator(
        session_factory=get_session_factory(),
        cipher=CredentialCipher(key) if key else None,
        embedder=build_document_embedder(),
    )
    outcome = orchestrator.execute_job(job_id)
    if outcome is None:
        return {"job_id": str(job_id), "status": "skipped", "reason": "job is inactive"}
    return {
        "job_id": str(outcome.job_id),
        "run_id": str(outcome.run_id),
        "status": outcome.status,
        "error": outcome.error_message,
        "next_run_at": outcome.next_run_at.isoformat() if outcome.next_run_at else None,
        "urls_processed": outcome.tallies.urls_processed,
        "urls_successful": outcome.tallies.urls_successful,
        "urls_failed": outcome.tallies.urls_failed,
        "documents_created": outcome.tallies.documents_created,
        "documents_updated": outcome.tallies.documents_updated,
        "changes_detected": outcome.tallies.changes_detected,
    }


def _run_url(args: argparse.Namespace) -> dict:
    settings = get_crawl_settings()
    plan = build_crawl_plan(
        settings=settings,
        base_url=args.url,
        template_id=args.template or None,
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        include_patterns=args.include,
        exclude_patterns=args.exclude,
    )
    result = CrawlEngine(settings=settings).crawl(plan.base_url, plan.options, plan.template)
    summary = result.summary
    return {
        "base_url": summary.base_url,
        "template_id": plan.template_id,
        "content_type": summary.content_type,
        "total_pages": summary.total_pages,
        "successful_pages": summary.successful_pages,
        "failed_pages": summary.failed_pages,
        "total_words": summary.total_words,
        "average_words_per_page": summary.average_words_per_page,
        "duration_seconds": round(summary.duration_seconds, 3),
        "pages": [
            {"url": page.url, "title": page.title, "depth": page.depth, "content_hash": page.content_hash}
            for page in result.pages
        ],
        "errors": [entry.to_log() for entry in result.errors],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a crawl job or a one-off crawl.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--job-id", dest="job_id", type=uuid.UUID, help="Stored crawl job id.")
    target.add_argument("--url", dest="url", help="Seed URL for a one-off crawl.")
    parser.add_argument(
        "--template",
        dest="template",
        default=AUTO_TEMPLATE_ID,
        help="Template id for --url crawls ('auto' suggests one, '' uses defaults).",
    )
    parser.add_argument("--max-depth", dest="max_depth", type=int, default=None)
    parser.add_argument("--max-pages", dest="max_pages", type=int, default=None)
    parser.add_argument("--include", dest="include", action="append", default=[])
    parser.add_argument("--exclude", dest="exclude", action="append", default=[])
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    payload = _run_job(args.job_id) if args.job_id else _run_url(args)
    print(json.dumps(payload, indent=2, default=str))
    return 0 if payload.get("status") in {None, "completed", "skipped"} else 1


if __name__ == "__main__":
    raise SystemExit(main())
