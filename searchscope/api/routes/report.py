from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from searchscope.api.deps import Services, client_key, get_services
from searchscope.api.requests import DownloadRequest, ReportRequest
from searchscope.exceptions import ValidationError
from searchscope.models.schemas import Article, Report, SearchResult
from searchscope.services.exporter import export_filename, render_txt
from searchscope.services.rate_limiter import enforce

router = APIRouter(prefix="/api", tags=["report"])


@router.post("/report")
async def generate_report(body: ReportRequest, request: Request, services: Services = Depends(get_services)):
    """Report from a manual selection whose content the client already fetched."""
    await enforce(services.limiters.report, client_key(request), what="report generation")

    selected = [SearchResult.from_dict(item) for item in body.selected_results]
    if not selected:
        raise ValidationError("Select at least one result first")
    sources = [SearchResult.from_dict(item) for item in body.sources] if body.sources else selected
    articles = [
        Article(url=r.url, title=r.name, content=r.content or r.snippet)
        for r in selected
    ]
    report = await services.reporter.generate(articles, sources, body.prompt, body.platform_model)
    return report.model_dump(by_alias=True)


@router.post("/download")
async def download(body: DownloadRequest):
    if body.format.lower() != "txt":
        raise ValidationError(f"Unsupported export format: {body.format}")
    report = Report.model_validate(body.report)
    return PlainTextResponse(
        render_txt(report),
        headers={"Content-Disposition": f'attachment; filename="{export_filename(report)}"'},
    )
