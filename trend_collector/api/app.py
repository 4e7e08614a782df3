"""HTTP 엔드포인트 - 크론 트리거, 상태, 트렌딩/목록 조회"""

import asyncio
import hmac
import os
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from trend_collector.models.job_run import JobStatus
from trend_collector.pipeline import Pipeline
from trend_collector.utils.errors import (
    NotFoundError,
    PipelineError,
    UnauthorizedError,
    ValidationError,
    http_status_for,
)
from trend_collector.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

CRON_JOBS = {
    "scrape-designs": "designs",
    "scrape-competitions": "competitions",
}
CLEANUP_JOB = "cleanup"


def _envelope(data: Any = None, error: Optional[dict] = None, status: int = 200):
    body = {
        "success": error is None,
        "data": data,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return jsonify(body), status


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("true", "1", "yes")


def create_app(pipeline: Optional[Pipeline] = None, cron_secret: Optional[str] = None) -> Flask:
    """
    Flask 앱 생성.

    Args:
        pipeline: 조립된 파이프라인. None이면 기본 설정으로 생성.
        cron_secret: 크론 호출 인증 토큰. None이면 CRON_SECRET 환경변수.
            비어 있으면 인증하지 않는다.
    """
    app = Flask(__name__)
    pipeline = pipeline or Pipeline()
    secret = cron_secret if cron_secret is not None else os.environ.get("CRON_SECRET", "")
    app.config["PIPELINE"] = pipeline

    def check_cron_auth() -> None:
        if not secret:
            return
        header = request.headers.get("Authorization", "")
        if not hmac.compare_digest(header, f"Bearer {secret}"):
            raise UnauthorizedError("Invalid cron secret")

    def domain_or_404(domain: str) -> str:
        if domain not in pipeline.schedulers:
            raise NotFoundError("Domain", domain)
        return domain

    @app.errorhandler(PipelineError)
    def handle_pipeline_error(error: PipelineError):
        status = http_status_for(error.kind)
        if status >= 500:
            logger.error("요청 처리 실패: %s %s - %s", request.method, request.path, error)
        return _envelope(error=error.to_dict(), status=status)

    @app.route("/api/cron")
    def cron():
        check_cron_auth()
        job = request.args.get("job", "")
        force = _is_true(request.args.get("force"))

        if job == CLEANUP_JOB:
            return _envelope(pipeline.cleaner.run())

        domain = CRON_JOBS.get(job)
        if domain is None:
            raise ValidationError("Invalid job", {"job": f"must be one of {', '.join(list(CRON_JOBS) + [CLEANUP_JOB])}"})

        category = request.args.get("category") or None
        logger.info("크론 트리거: %s (force=%s, category=%s)", job, force, category)
        run = asyncio.run(pipeline.scheduler(domain).trigger(category=category, force=force))

        if run.status == JobStatus.FAILED and not run.skipped:
            error = {"message": run.message, "code": "job_failed", "details": {"errors": run.errors}}
            return _envelope(run.to_dict(), error=error, status=500)
        return _envelope(run.to_dict())

    @app.route("/api/cron/status")
    def cron_status():
        check_cron_auth()
        return _envelope(pipeline.get_status())

    @app.route("/api/<domain>/trending")
    def trending(domain: str):
        view = pipeline.trending_views[domain_or_404(domain)]
        return _envelope(view.get(
            category=request.args.get("category"),
            timeframe=request.args.get("timeframe"),
            limit=request.args.get("limit"),
        ))

    @app.route("/api/<domain>")
    def listing(domain: str):
        view = pipeline.listing_views[domain_or_404(domain)]
        return _envelope(view.get(
            category=request.args.get("category"),
            query=request.args.get("q", ""),
            sort=request.args.get("sort", "latest"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        ))

    return app


if __name__ == "__main__":
    load_dotenv()
    setup_logging()
    app = create_app()
    port = int(os.environ.get("PORT", 9001))
    print("\n" + "=" * 60)
    print("  TrendCollector API")
    print("=" * 60)
    print(f"\n  http://localhost:{port}/api/cron/status")
    print("\n  종료: Ctrl+C\n")
    app.run(host="0.0.0.0", port=port, debug=False)
