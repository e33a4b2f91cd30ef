from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from .database import get_db
from .errors import Forbidden
from .report import SECTIONS, build_management_report, operations_summary
from .scope import Caller, get_caller

router = APIRouter(prefix="/api/management-report", tags=["Reports"])


def _report_area(caller: Caller, business_area: Optional[str]) -> str:
    caller.require()
    if not business_area:
        return caller.primary_area
    if not caller.owns(business_area):
        raise Forbidden("No access to this business area")
    return business_area


@router.get("")
def management_report(
    business_area: Optional[str] = Query(default=None, alias="businessArea"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    area = _report_area(caller, business_area)
    return {"success": True, "data": build_management_report(db, area)}


@router.get("/pdf")
def management_report_pdf(
    business_area: Optional[str] = Query(default=None, alias="businessArea"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    area = _report_area(caller, business_area)
    report = build_management_report(db, area)

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4
    y = h - 50

    def line(text: str, font: str = "Helvetica", size: int = 10, step: int = 14):
        nonlocal y
        if y < 60:
            c.showPage()
            y = h - 50
        c.setFont(font, size)
        c.drawString(50, y, text[:110])
        y -= step

    line("QMS Management Report", "Helvetica-Bold", 16, 20)
    line(f"Business area: {area}", size=11, step=16)
    line(f"Generated: {report['generated_at']}", size=11, step=16)
    line(
        f"Overall health score: {report['overall_health_score']:.2f} ({report['risk_level']})",
        "Helvetica-Bold", 12, 24,
    )

    trend = report["trend_analysis"]
    if trend:
        line(f"Trend: {trend['trend']} (current {trend['current_month']}, previous {trend['previous_month']})")
    y -= 10

    line("Section scores", "Helvetica-Bold", 12, 16)
    for name in SECTIONS:
        score = report["section_scores"].get(name)
        label = name.replace("_", " ").title()
        line(f"{label}: {'unavailable' if score is None else f'{score:.2f}'}")
    y -= 10

    for title, key in (("Top achievements", "top_achievements"), ("Areas needing attention", "areas_needing_attention")):
        line(title, "Helvetica-Bold", 12, 16)
        for item in report[key] or ["None"]:
            line(f"- {item}")
        y -= 10

    line("Critical actions", "Helvetica-Bold", 12, 16)
    for a in report["critical_actions"]:
        line(f"[{a['priority']}] {a['title']} | due {a['deadline']} | {a['responsible_person']}")

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="management_report_{area}.pdf"'},
    )


summary_router = APIRouter(prefix="/api/operations-summary", tags=["Reports"])


@summary_router.get("")
def operations_summary_report(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Progress roll-up for every business area the caller can see."""
    areas = caller.require()
    return {"success": True, "data": operations_summary(db, areas)}
