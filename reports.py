"""
Visit reports.

A report is written to the flat `reports` collection and a `{reportId, date}`
pointer is pushed into the family's `meetings`. `approved` (admin) and
`familyApproved` (family) are independent flags.
"""
import logging
from datetime import date, timedelta
from io import BytesIO
from typing import Any, Dict, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

import config
from database import create_document, get_documents, now, serialize, to_obj_id
from errors import BadRequestError, NotFoundError, PermissionDeniedError
from schemas import FamilyReview, Report, ReportCreate, ReportUpdate, UserIdentity

logger = logging.getLogger(__name__)


def check_meeting_date(meeting_date: date, backdate_days: int = config.REPORT_BACKDATE_DAYS,
                       today: Optional[date] = None) -> None:
    today = today or date.today()
    if meeting_date > today:
        raise BadRequestError("Meeting date cannot be in the future")
    if meeting_date < today - timedelta(days=backdate_days):
        raise BadRequestError(f"Meeting date cannot be more than {backdate_days} days ago")


def create_report(db, expert: UserIdentity, payload: ReportCreate) -> str:
    check_meeting_date(payload.meeting_date)
    expert_doc = db["experts"].find_one({"_id": expert.uid}) or {}
    family = (expert_doc.get("families") or {}).get(payload.family_id)
    if not family:
        raise NotFoundError("Family not found")

    meeting_date = payload.meeting_date.isoformat()
    report = Report(
        expert_id=expert.uid,
        expert_email=expert.email,
        family_id=payload.family_id,
        family_email=family.get("email"),
        family_name=family.get("familyName"),
        meeting_date=meeting_date,
        report_content=payload.report_content,
        payment=payload.payment,
        notes=payload.notes,
        images=payload.images,
    )
    report_id = create_document(db, "reports", report)
    db["families"].update_one(
        {"_id": payload.family_id},
        {"$addToSet": {"meetings": {"reportId": report_id, "date": meeting_date}}},
    )
    logger.info("Report %s created by expert %s for family %s", report_id, expert.uid, payload.family_id)
    return report_id


def list_reports_for(db, user: UserIdentity) -> List[Dict[str, Any]]:
    if user.role == "expert":
        filt = {"expertId": user.uid}
    elif user.role == "family":
        filt = {"familyId": user.uid}
    else:
        filt = {}
    return get_documents(db, "reports", filt, newest_first=True)


def list_all_reports(db, approved: Optional[bool] = None) -> List[Dict[str, Any]]:
    filt = {"approved": approved} if approved is not None else {}
    return get_documents(db, "reports", filt, newest_first=True)


def get_report(db, report_id: str) -> Dict[str, Any]:
    report = db["reports"].find_one({"_id": to_obj_id(report_id)})
    if not report:
        raise NotFoundError("Report not found")
    return serialize(report)


def can_view(user: UserIdentity, report: Dict[str, Any]) -> bool:
    return user.role == "admin" or user.uid in (report.get("expertId"), report.get("familyId"))


def update_report(db, report_id: str, payload: ReportUpdate) -> Dict[str, Any]:
    fields = payload.model_dump(by_alias=True, exclude_none=True)
    if not fields:
        raise BadRequestError("No fields to update")
    fields["updatedAt"] = now()
    res = db["reports"].update_one({"_id": to_obj_id(report_id)}, {"$set": fields})
    if res.matched_count == 0:
        raise NotFoundError("Report not found")
    logger.info("Report %s updated: %s", report_id, sorted(fields))
    return get_report(db, report_id)


def review_report(db, family: UserIdentity, report_id: str, review: FamilyReview) -> Dict[str, Any]:
    report = get_report(db, report_id)
    if report.get("familyId") != family.uid:
        raise PermissionDeniedError("Report belongs to another family")
    db["reports"].update_one(
        {"_id": to_obj_id(report_id)},
        {"$set": {
            "familyApproved": review.approved,
            "familyRating": review.rating,
            "familyComment": review.comment,
            "familyReviewedAt": now(),
            "updatedAt": now(),
        }},
    )
    logger.info("Report %s reviewed by family %s", report_id, family.uid)
    return get_report(db, report_id)


def render_report_pdf(report: Dict[str, Any]) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    c.setFont("Helvetica-Bold", 16)
    c.drawString(20 * mm, height - 20 * mm, "Meeting Report")

    c.setFont("Helvetica", 10)
    y = height - 30 * mm
    lines = [
        f"Family: {report.get('familyName') or report.get('familyId')}",
        f"Expert: {report.get('expertEmail') or report.get('expertId')}",
        f"Meeting date: {report.get('meetingDate')}",
        f"Payment: {report.get('payment')}",
        f"Approved: {'yes' if report.get('approved') else 'no'}",
        f"Family approved: {'yes' if report.get('familyApproved') else 'no'}",
    ]
    if report.get("familyRating") is not None:
        lines.append(f"Family rating: {report['familyRating']}/5")
    for line in lines:
        c.drawString(20 * mm, y, line)
        y -= 5 * mm

    sections = [("Report", report.get("reportContent") or ""), ("Notes", report.get("notes") or ""),
                ("Family comment", report.get("familyComment") or "")]
    for title, body in sections:
        if not body:
            continue
        y -= 4 * mm
        c.setFont("Helvetica-Bold", 12)
        c.drawString(20 * mm, y, title)
        y -= 6 * mm
        c.setFont("Helvetica", 10)
        for text_line in _wrap(body, 95):
            if y < 20 * mm:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = height - 20 * mm
            c.drawString(20 * mm, y, text_line)
            y -= 5 * mm

    c.showPage()
    c.save()
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


def _wrap(text: str, width: int) -> List[str]:
    out = []
    for paragraph in text.splitlines() or [""]:
        words, line = paragraph.split(), ""
        for word in words:
            if line and len(line) + 1 + len(word) > width:
                out.append(line)
                line = word
            else:
                line = f"{line} {word}" if line else word
        out.append(line)
    return out
