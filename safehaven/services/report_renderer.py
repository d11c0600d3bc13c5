"""Survey report rendering.

This module turns a scored response into a downloadable PDF (reportlab)
and an HTML preview (Jinja2 template with autoescaping and StrictUndefined).
"""

import io
from pathlib import Path
from typing import Optional
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.enums import TA_CENTER
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from safehaven.errors import ReportRenderingError
from safehaven.schemas.response import AnswerValue, ScoredResponse
from safehaven.schemas.survey import SurveyDefinition
from safehaven.logging_config import get_logger

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_TIER_COLOR = "#607D8B"

DISCLAIMER = "Este informe es orientativo y no reemplaza una evaluación profesional."


def answer_text(value: AnswerValue) -> str:
    """Format a raw answer value for display."""
    if value is None or value == "" or value == []:
        return "Sin respuesta"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


class ReportRenderer:
    """Service for rendering survey result reports."""

    def __init__(self, templates_dir: Optional[Path] = None):
        """Initialize Jinja2 environment and PDF styles.

        Args:
            templates_dir: Directory holding report.html (defaults to the
                package templates directory)
        """
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
        )
        self.env.filters["answer_text"] = answer_text
        self.styles = self._build_styles()

    def render_html(self, scored: ScoredResponse, survey: SurveyDefinition) -> str:
        """Render the HTML preview of a report.

        Raises:
            ReportRenderingError: If the template fails to render
        """
        try:
            template = self.env.get_template("report.html")
            return template.render(scored=scored, survey=survey)
        except TemplateError as e:
            logger.error(f"Report template error: {e}")
            raise ReportRenderingError(f"Failed to render report template: {e}")

    def render_report(self, scored: ScoredResponse, survey: SurveyDefinition) -> bytes:
        """Render the PDF report for a scored response.

        Args:
            scored: Scored response
            survey: Survey definition the response was scored against

        Returns:
            PDF document bytes

        Raises:
            ReportRenderingError: If the document could not be built
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20 * mm,
            leftMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title=f"Resultados - {survey.title}",
        )

        try:
            doc.build(self._build_story(scored, survey))
        except Exception as e:
            logger.error(f"PDF generation failed: {e}", exc_info=True)
            raise ReportRenderingError(f"Failed to generate PDF report: {e}")

        pdf = buffer.getvalue()
        logger.debug(f"Rendered report PDF ({len(pdf) / 1024:.2f} KB)")
        return pdf

    def _build_story(self, scored: ScoredResponse, survey: SurveyDefinition) -> list:
        """Assemble the flowables of the PDF document."""
        styles = self.styles
        tier_color = colors.HexColor(scored.tier_color or DEFAULT_TIER_COLOR)

        story = [
            Paragraph("Resultados de Autoevaluación", styles["ReportTitle"]),
            Paragraph(escape(survey.title), styles["ReportSubtitle"]),
            Spacer(1, 6 * mm),
        ]

        if survey.description:
            story.append(Paragraph(escape(survey.description), styles["BodyText"]))
            story.append(Spacer(1, 4 * mm))

        summary = Table(
            [
                ["Fecha", scored.completed_at.strftime("%d-%m-%Y %H:%M")],
                ["Puntaje total", str(scored.total_score)],
                ["Nivel de riesgo", scored.risk_tier.upper()],
            ],
            colWidths=[45 * mm, 110 * mm],
        )
        summary.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#E8F5E8")),
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("BACKGROUND", (1, 2), (1, 2), tier_color),
            ("TEXTCOLOR", (1, 2), (1, 2), colors.white),
            ("FONTNAME", (1, 2), (1, 2), "Helvetica-Bold"),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
        ]))
        story.append(summary)

        if scored.tier_description:
            story.append(Spacer(1, 3 * mm))
            story.append(Paragraph(escape(scored.tier_description), styles["BodyText"]))

        story.append(Paragraph("Recomendaciones", styles["SectionHeading"]))
        for recommendation in scored.recommendations:
            story.append(Paragraph(f"\u2022 {escape(recommendation)}", styles["BodyText"]))

        story.append(Paragraph("Tus respuestas", styles["SectionHeading"]))
        rows = [["#", "Pregunta", "Respuesta", "Pts"]]
        for answer in scored.answers:
            rows.append([
                str(answer.question_order),
                Paragraph(escape(answer.question_prompt), styles["Cell"]),
                Paragraph(escape(answer_text(answer.value)), styles["Cell"]),
                str(answer.score),
            ])

        answers_table = Table(rows, colWidths=[10 * mm, 85 * mm, 50 * mm, 12 * mm], repeatRows=1)
        answers_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2E7D32")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#FAFAFA")]),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#DDDDDD")),
        ]))
        story.append(answers_table)

        story.append(Spacer(1, 8 * mm))
        story.append(Paragraph(escape(DISCLAIMER), styles["Footer"]))
        return story

    @staticmethod
    def _build_styles():
        """Extend the sample stylesheet with report styles."""
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(
            "ReportTitle",
            parent=styles["Heading1"],
            fontSize=22,
            textColor=colors.HexColor("#2E7D32"),
            alignment=TA_CENTER,
            spaceAfter=6,
        ))
        styles.add(ParagraphStyle(
            "ReportSubtitle",
            parent=styles["Heading2"],
            fontSize=15,
            textColor=colors.HexColor("#666666"),
            alignment=TA_CENTER,
        ))
        styles.add(ParagraphStyle(
            "SectionHeading",
            parent=styles["Heading3"],
            textColor=colors.HexColor("#2E7D32"),
            spaceBefore=10,
            spaceAfter=6,
        ))
        styles.add(ParagraphStyle("Cell", parent=styles["BodyText"], fontSize=9, leading=11))
        styles.add(ParagraphStyle(
            "Footer",
            parent=styles["BodyText"],
            fontSize=8,
            textColor=colors.HexColor("#888888"),
            alignment=TA_CENTER,
        ))
        return styles


# Global singleton instance
_renderer_instance: Optional[ReportRenderer] = None


def get_report_renderer() -> ReportRenderer:
    """Get global ReportRenderer instance.

    Returns:
        Global ReportRenderer instance
    """
    global _renderer_instance
    if _renderer_instance is None:
        _renderer_instance = ReportRenderer()
    return _renderer_instance
