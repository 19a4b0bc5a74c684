"""
Analysis report rendering for the local PDF queue.
Uses ReportLab platypus to lay out the title block, summary, insights and
recommendations of an analysis record.
"""

from datetime import datetime, timezone
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import ListFlowable, ListItem, Paragraph, SimpleDocTemplate, Spacer

from dayta.models.analysis import AnalysisRecord

PRIMARY = colors.HexColor('#1e3a8a')
TEXT_LIGHT = colors.HexColor('#64748b')

# Raw content is only a fallback when no summary exists; keep it to a page or so
MAX_CONTENT_CHARS = 3000


def _styles():
    base = getSampleStyleSheet()
    return {
        'title': ParagraphStyle('ReportTitle', parent=base['Title'], textColor=PRIMARY),
        'meta': ParagraphStyle('ReportMeta', parent=base['Normal'], textColor=TEXT_LIGHT, fontSize=9),
        'heading': ParagraphStyle('ReportHeading', parent=base['Heading2'], textColor=PRIMARY),
        'body': base['BodyText'],
    }


def _item_text(item) -> str:
    """Insights and recommendations are either plain strings or dicts with a title/description."""
    if isinstance(item, dict):
        title = item.get('title') or item.get('name') or ''
        description = item.get('description') or item.get('text') or ''
        if title and description:
            return f"<b>{escape(str(title))}</b>: {escape(str(description))}"
        return escape(str(title or description))
    return escape(str(item))


def _bullets(items, style):
    if isinstance(items, (str, dict)):
        items = [items]
    return ListFlowable(
        [ListItem(Paragraph(_item_text(item), style), leftIndent=12) for item in items],
        bulletType='bullet',
        start='•',
    )


def render_analysis_pdf(record: AnalysisRecord) -> bytes:
    """Render ``record`` into PDF bytes."""
    styles = _styles()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=0.8 * inch,
        rightMargin=0.8 * inch,
        topMargin=0.8 * inch,
        bottomMargin=0.8 * inch,
        title=f"{record.file_name} analysis",
    )

    story = [
        Paragraph("DaytaTech Analysis", styles['title']),
        Paragraph(f"File: {escape(record.file_name or 'Untitled dataset')}", styles['meta']),
        Paragraph(f"Generated: {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC", styles['meta']),
        Spacer(1, 0.25 * inch),
    ]

    story.append(Paragraph("Summary", styles['heading']))
    if record.summary:
        story.append(Paragraph(escape(record.summary), styles['body']))
    elif record.content:
        story.append(Paragraph(escape(record.content[:MAX_CONTENT_CHARS]), styles['body']))
    else:
        story.append(Paragraph("No summary available.", styles['body']))

    if record.insights:
        story.append(Spacer(1, 0.15 * inch))
        story.append(Paragraph("Key insights", styles['heading']))
        story.append(_bullets(record.insights, styles['body']))

    if record.recommendations:
        story.append(Spacer(1, 0.15 * inch))
        story.append(Paragraph("Recommendations", styles['heading']))
        story.append(_bullets(record.recommendations, styles['body']))

    doc.build(story)
    return buffer.getvalue()
