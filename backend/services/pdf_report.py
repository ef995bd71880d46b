"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Rapport énergétique PDF                                          ║
║                                                                              ║
║  Sections (dans l'ordre):                                                    ║
║  1. En-tête INESIC + titre + date                                            ║
║  2. Salutation personnalisée                                                 ║
║  3. Profil énergétique                                                       ║
║  4. Solution recommandée                                                     ║
║  5. Économies estimées                                                       ║
║  6. Caractéristiques techniques                                              ║
║  7. Coordonnées + pied de page                                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import io
import logging
from datetime import datetime, timezone
from typing import List, Tuple, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, KeepTogether

from config import format_thousands, round_half_up

logger = logging.getLogger("pdf_report")

# ==================== CONSTANTES ====================

PDF_COLORS = {
    "inesic_orange": colors.HexColor("#FF6600"),
    "inesic_green": colors.HexColor("#009688"),
    "inesic_light_orange": colors.HexColor("#FF9800"),
    "inesic_light_green": colors.HexColor("#4DB6AC"),
    "primary": colors.HexColor("#2980B9"),
    "secondary": colors.HexColor("#3498DB"),
    "light_gray": colors.HexColor("#F8F9FA"),
    "medium_gray": colors.HexColor("#777777"),
    "dark_gray": colors.HexColor("#333333"),
    "border": colors.HexColor("#E6E6E6"),
    "success": colors.HexColor("#2ECC71"),
    "warning": colors.HexColor("#F39C12"),
    "danger": colors.HexColor("#E74C3C"),
    "white": colors.white,
}

CATEGORY_COLORS = {
    "premium": PDF_COLORS["inesic_green"],
    "standard": PDF_COLORS["inesic_orange"],
    "economique": PDF_COLORS["success"],
    "économique": PDF_COLORS["success"],
}

COMPANY_CONTACT = [
    ("Email", "contact@inesic.com"),
    ("Téléphone", "+221 78 962 54 39"),
    ("Adresse", "Dakar, Sénégal"),
    ("Web", "www.inesic.com"),
]

HIGHLIGHTS = [
    "Solution adaptée à votre profil énergétique",
    "Installation et maintenance incluses",
    "Garantie constructeur étendue",
    "Accompagnement personnalisé",
]

MONTHS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

DEFAULT_LIFESPAN = 10


def format_date_long_fr(value: datetime) -> str:
    return f"{value.day:02d} {MONTHS_FR[value.month - 1]} {value.year}"


def category_color(category: str):
    return CATEGORY_COLORS.get((category or "").lower(), PDF_COLORS["inesic_green"])


def fcfa(value: float) -> str:
    return f"{format_thousands(value)} FCFA"


# ==================== DONNÉES DES SECTIONS ====================

def energy_profile_rows(form: dict) -> List[Tuple[str, str]]:
    budget = form.get("budget") or 0
    return [
        ("Type de site", form.get("site_type") or ""),
        ("Facture mensuelle", fcfa(form.get("electricity_bill") or 0)),
        ("Puissance installée", f"{form.get('installation_power') or 0:g} kW"),
        ("Budget disponible", fcfa(budget) if budget > 0 else "À définir"),
    ]


def savings_figures(scenario: dict, form: dict) -> dict:
    """Économies mensuelles/annuelles/totales sur la durée de vie des équipements."""
    rate = scenario.get("estimated_savings") or 0
    lifespan = scenario.get("equipment_lifespan") or DEFAULT_LIFESPAN
    monthly = (form.get("electricity_bill") or 0) * rate / 100
    annual = monthly * 12
    return {
        "rate": rate,
        "lifespan": lifespan,
        "monthly": int(round_half_up(monthly)),
        "annual": int(round_half_up(annual)),
        "total": int(round_half_up(annual * lifespan)),
    }


def savings_rows(scenario: dict, form: dict) -> List[Tuple[str, str]]:
    figures = savings_figures(scenario, form)
    return [
        ("Taux d'économie", f"{figures['rate']:g}%"),
        ("Économies mensuelles", fcfa(figures["monthly"])),
        ("Économies annuelles", fcfa(figures["annual"])),
        (f"Total sur {figures['lifespan']} ans", fcfa(figures["total"])),
    ]


def technical_rows(scenario: dict) -> List[Tuple[str, str]]:
    category = scenario.get("category") or ""
    min_budget = scenario.get("min_budget")
    max_budget = scenario.get("max_budget")
    return [
        ("Durée de vie des équipements", f"{scenario.get('equipment_lifespan') or DEFAULT_LIFESPAN} ans"),
        ("Catégorie de solution", category[:1].upper() + category[1:]),
        ("Budget minimum recommandé", fcfa(min_budget) if min_budget else "Non spécifié"),
        ("Budget maximum recommandé", fcfa(max_budget) if max_budget else "Non spécifié"),
    ]


# ==================== GÉNÉRATEUR ====================

class SakkanalReportGenerator:
    """Génère le rapport énergétique remis au prospect"""

    def __init__(self, generated_at: Optional[datetime] = None):
        self.generated_at = generated_at or datetime.now(timezone.utc)
        self.styles = self._build_styles()

    def _build_styles(self) -> dict:
        base = getSampleStyleSheet()
        return {
            "title": ParagraphStyle(
                "SakTitle", parent=base["Heading1"], fontSize=24,
                textColor=PDF_COLORS["inesic_green"], spaceAfter=4
            ),
            "subtitle": ParagraphStyle(
                "SakSubtitle", parent=base["Normal"], fontSize=11,
                textColor=PDF_COLORS["inesic_orange"], spaceAfter=6
            ),
            "date": ParagraphStyle(
                "SakDate", parent=base["Normal"], fontSize=8,
                textColor=PDF_COLORS["medium_gray"], alignment=TA_RIGHT
            ),
            "section": ParagraphStyle(
                "SakSection", parent=base["Heading2"], fontSize=13,
                textColor=PDF_COLORS["inesic_green"], spaceBefore=14, spaceAfter=8
            ),
            "body": ParagraphStyle(
                "SakBody", parent=base["Normal"], fontSize=10,
                textColor=PDF_COLORS["dark_gray"], leading=14
            ),
            "small": ParagraphStyle(
                "SakSmall", parent=base["Normal"], fontSize=9,
                textColor=PDF_COLORS["medium_gray"]
            ),
            "solution": ParagraphStyle(
                "SakSolution", parent=base["Heading3"], fontSize=15,
                textColor=PDF_COLORS["inesic_green"], spaceAfter=6
            ),
            "highlight": ParagraphStyle(
                "SakHighlight", parent=base["Normal"], fontSize=8,
                textColor=PDF_COLORS["success"], leftIndent=6
            ),
            "contact_title": ParagraphStyle(
                "SakContactTitle", parent=base["Heading2"], fontSize=14,
                textColor=PDF_COLORS["white"], alignment=TA_CENTER
            ),
        }

    # ─── Sections ───

    def _header(self) -> list:
        logo = Table([["INESIC"]], colWidths=[45 * mm], rowHeights=[20 * mm])
        logo.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["inesic_green"]),
            ("TEXTCOLOR", (0, 0), (-1, -1), PDF_COLORS["white"]),
            ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 16),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))

        titles = [
            Paragraph("RAPPORT ÉNERGÉTIQUE", self.styles["title"]),
            Paragraph("Analyse et Recommandations Personnalisées", self.styles["subtitle"]),
            Paragraph(format_date_long_fr(self.generated_at), self.styles["date"]),
        ]

        header = Table([[logo, titles]], colWidths=[55 * mm, 125 * mm])
        header.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (1, 0), (1, 0), 1.5, PDF_COLORS["inesic_green"]),
        ]))
        return [header, Spacer(1, 12)]

    def _greeting(self, user: dict) -> list:
        name = escape((user or {}).get("full_name") or "Client")
        box = Table([[
            Paragraph(f"Bonjour <font color='#009688'><b>{name},</b></font>", self.styles["body"]),
        ], [
            Paragraph(
                "Nous avons le plaisir de vous présenter votre audit énergétique personnalisé.",
                self.styles["small"]
            ),
        ]], colWidths=[180 * mm])
        box.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["light_gray"]),
            ("LINEBEFORE", (0, 0), (0, -1), 3, PDF_COLORS["inesic_green"]),
            ("LEFTPADDING", (0, 0), (-1, -1), 10),
        ]))
        return [box]

    def _section_title(self, title: str) -> Paragraph:
        return Paragraph(title, self.styles["section"])

    def _cards(self, rows: List[Tuple[str, str]], accents: list) -> Table:
        """Grille 2x2 de cartes label/valeur"""
        cells = []
        for label, value in rows:
            cells.append([
                Paragraph(f"<b>{escape(label.upper())}</b>", self.styles["small"]),
                Paragraph(f"<b>{escape(value)}</b>", self.styles["body"]),
            ])

        grid = Table(
            [[cells[0], cells[1]], [cells[2], cells[3]]],
            colWidths=[88 * mm, 88 * mm]
        )
        style = [
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOX", (0, 0), (0, 0), 1.2, accents[0]),
            ("BOX", (1, 0), (1, 0), 1.2, accents[1]),
            ("BOX", (0, 1), (0, 1), 1.2, accents[2]),
            ("BOX", (1, 1), (1, 1), 1.2, accents[3]),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]
        grid.setStyle(TableStyle(style))
        return grid

    def _energy_profile(self, form: dict) -> list:
        accents = [PDF_COLORS["secondary"], PDF_COLORS["danger"], PDF_COLORS["warning"], PDF_COLORS["success"]]
        return [self._section_title("PROFIL ÉNERGÉTIQUE"), self._cards(energy_profile_rows(form), accents)]

    def _solution(self, scenario: dict) -> list:
        category = scenario.get("category") or ""
        badge = Table([[category.upper()]], colWidths=[25 * mm])
        badge.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), category_color(category)),
            ("TEXTCOLOR", (0, 0), (-1, -1), PDF_COLORS["white"]),
            ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 7),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ]))

        content = [
            Paragraph(escape(scenario.get("name") or ""), self.styles["solution"]),
            Paragraph(escape(scenario.get("description") or ""), self.styles["body"]),
            Spacer(1, 8),
        ]
        content += [Paragraph(f"• {h}", self.styles["highlight"]) for h in HIGHLIGHTS]

        card = Table([[content, badge]], colWidths=[150 * mm, 30 * mm])
        card.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["light_gray"]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("TOPPADDING", (0, 0), (-1, -1), 8),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ]))
        return [self._section_title("SOLUTION RECOMMANDÉE"), card]

    def _savings(self, scenario: dict, form: dict) -> list:
        accents = [
            PDF_COLORS["inesic_green"], PDF_COLORS["inesic_orange"],
            PDF_COLORS["success"], PDF_COLORS["secondary"],
        ]
        return [
            self._section_title("ÉCONOMIES ESTIMÉES"),
            self._cards(savings_rows(scenario, form), accents),
        ]

    def _technical(self, scenario: dict) -> list:
        rows = [
            [Paragraph(f"<b>{escape(label)}</b>", self.styles["small"]), Paragraph(escape(value), self.styles["body"])]
            for label, value in technical_rows(scenario)
        ]
        table = Table(rows, colWidths=[90 * mm, 90 * mm])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["light_gray"]),
            ("LINEBELOW", (0, 0), (-1, -2), 0.3, PDF_COLORS["border"]),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        return [self._section_title("CARACTÉRISTIQUES TECHNIQUES"), table]

    def _contact(self) -> list:
        rows = [[Paragraph("CONTACTEZ-NOUS", self.styles["contact_title"]), ""]]
        rows += [[f"{label}:", value] for label, value in COMPANY_CONTACT]

        box = Table(rows, colWidths=[60 * mm, 120 * mm])
        box.setStyle(TableStyle([
            ("SPAN", (0, 0), (-1, 0)),
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["inesic_green"]),
            ("TEXTCOLOR", (0, 0), (-1, -1), PDF_COLORS["white"]),
            ("FONTNAME", (0, 1), (0, -1), "Helvetica-Bold"),
            ("FONTNAME", (1, 1), (1, -1), "Helvetica"),
            ("FONTSIZE", (0, 1), (-1, -1), 10),
            ("ALIGN", (0, 1), (0, -1), "RIGHT"),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        return [Spacer(1, 16), KeepTogether([box])]

    def _footer(self, canvas, doc):
        width, _height = A4
        canvas.saveState()
        canvas.setStrokeColor(colors.HexColor("#C8C8C8"))
        canvas.setLineWidth(0.5)
        canvas.line(15 * mm, 17 * mm, width - 15 * mm, 17 * mm)

        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(PDF_COLORS["medium_gray"])
        canvas.drawCentredString(width / 2, 13 * mm, f"© {self.generated_at.year} INESIC - Tous droits réservés")

        canvas.setFont("Helvetica", 8)
        canvas.drawString(15 * mm, 9 * mm, f"Rapport généré le {self.generated_at.strftime('%d/%m/%Y')}")
        canvas.drawRightString(width - 15 * mm, 9 * mm, f"Page {doc.page}")
        canvas.restoreState()

    # ─── API ───

    def build_story(self, scenario: dict, user: dict, form: dict) -> list:
        story = []
        story += self._header()
        story += self._greeting(user)
        story += self._energy_profile(form)
        story += self._solution(scenario)
        story += self._savings(scenario, form)
        story += self._technical(scenario)
        story += self._contact()
        return story

    def generate(self, scenario: dict, user: dict, form: dict) -> bytes:
        """
        Args:
            scenario: document scénario
            user: {"full_name", "email", "phone", "company"}
            form: réponses au questionnaire

        Returns:
            Contenu PDF
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=15 * mm,
            leftMargin=15 * mm,
            topMargin=15 * mm,
            bottomMargin=25 * mm,
            title="Rapport Sakkanal",
            author="INESIC",
        )
        doc.build(
            self.build_story(scenario, user, form),
            onFirstPage=self._footer,
            onLaterPages=self._footer
        )

        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"Rapport PDF généré: scénario {scenario.get('id')} ({len(pdf_bytes)} octets)")
        return pdf_bytes
