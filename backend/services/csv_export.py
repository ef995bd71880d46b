"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sakkanal - Export CSV                                                       ║
║                                                                              ║
║  FORMAT:                                                                     ║
║  - BOM UTF-8 en tête (ouverture directe dans Excel)                          ║
║  - Séparateur ",", fin de ligne "\n"                                         ║
║  - En-têtes = clés de la première ligne                                      ║
║  - None → vide, dict/list → JSON entre guillemets                            ║
║  - Colonnes en français, dates jj/mm/aaaa                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import json
from datetime import datetime, timezone
from typing import List, Dict, Optional

from config import format_date_fr, format_thousands, ascii_slug

BOM = "\ufeff"


class EmptyExportError(ValueError):
    """Export demandé sans aucune ligne"""

    def __init__(self, message: str = "Aucune donnée à exporter"):
        super().__init__(message)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _quote(cell: str, force: bool) -> str:
    if force or any(c in cell for c in (",", '"', "\n")):
        return '"' + cell.replace('"', '""') + '"'
    return cell


def to_csv(rows: List[Dict]) -> str:
    """
    Sérialise des lignes en CSV.
    Les valeurs JSON sont toujours entre guillemets, les autres
    seulement si elles contiennent , " ou un retour ligne.
    """
    if not rows:
        raise EmptyExportError()

    headers = list(rows[0].keys())

    lines = [",".join(_quote(h, force=False) for h in headers)]
    for row in rows:
        lines.append(",".join(
            _quote(_cell(row.get(h)), force=isinstance(row.get(h), (dict, list)))
            for h in headers
        ))

    # Pas de fin de ligne après la dernière ligne
    return BOM + "\n".join(lines)


def export_filename(name: str, today: Optional[datetime] = None) -> str:
    """Format: {name}_{YYYY-MM-DD}.csv, nom réduit à l'ASCII pour l'en-tête Content-Disposition"""
    today = today or datetime.now(timezone.utc)
    return f"{ascii_slug(name)}_{today.strftime('%Y-%m-%d')}.csv"


# ==================== FORMATS MÉTIER ====================

def _lead_base_columns(lead: dict) -> Dict:
    return {
        "Date création": format_date_fr(lead.get("created_at")),
        "Entreprise": lead.get("company_name"),
        "Contact": lead.get("contact_name"),
        "Email": lead.get("email"),
        "Téléphone": lead.get("phone"),
        "Type de site": lead.get("site_type"),
        "Facture électricité (FCFA)": lead.get("electricity_bill"),
        "Puissance installation (kW)": lead.get("installation_power") or "",
        "Points de mesure": lead.get("measurement_points") or "",
        "Budget (FCFA)": lead.get("budget") or "",
        "Statut": lead.get("status"),
    }


def format_leads_for_export(leads: List[Dict]) -> List[Dict]:
    rows = []
    for lead in leads:
        row = _lead_base_columns(lead)
        row["Score"] = lead.get("score", "")
        row["Priorité"] = lead.get("priority", "")
        recommended = lead.get("recommended_scenarios")
        row["Scénarios recommandés"] = json.dumps(recommended, ensure_ascii=False) if recommended else ""
        rows.append(row)
    return rows


def format_leads_with_analytics_for_export(leads: List[Dict], include_interactions: bool = True) -> List[Dict]:
    """
    Leads + besoins/zones, et colonnes d'interactions si demandées.
    lead["interactions"] doit être trié du plus récent au plus ancien.
    """
    rows = []
    for lead in leads:
        row = _lead_base_columns(lead)
        row["Besoins"] = ", ".join(lead.get("specific_needs") or [])
        row["Zones surveillance"] = ", ".join(lead.get("zones_to_monitor") or [])

        interactions = lead.get("interactions")
        if include_interactions and interactions is not None:
            latest = interactions[0] if interactions else None
            row["Nombre interactions"] = len(interactions)
            row["Dernière interaction"] = format_date_fr(latest.get("created_at")) if latest else ""
            row["Type dernière interaction"] = latest.get("interaction_type", "") if latest else ""

        rows.append(row)
    return rows


def format_analytics_for_export(analytics: Dict) -> List[Dict]:
    rows = []

    conversion = analytics.get("conversion_rate")
    if conversion:
        rows.append({
            "Métrique": "Taux de conversion",
            "Valeur": f"{conversion['conversion_rate']}%",
            "Détails": f"{conversion['converted_leads']} convertis sur {conversion['total_leads']} leads",
        })

    for source in analytics.get("lead_sources") or []:
        rows.append({
            "Métrique": f"Source - {source['source']}",
            "Valeur": source["count"],
            "Détails": "Nombre de leads",
        })

    visits = analytics.get("visit_stats")
    if visits:
        rows.append({
            "Métrique": "Visites totales",
            "Valeur": visits["total_visits"],
            "Détails": f"{visits['unique_visitors']} visiteurs uniques",
        })

    return rows


def format_segment_for_export(segment: Dict, leads: List[Dict]) -> Dict:
    """Ligne de synthèse d'un segment."""
    if leads:
        converted = sum(1 for lead in leads if lead.get("status") == "converted")
        conversion = f"{converted / len(leads) * 100:.1f}%"
    else:
        conversion = "0%"

    total_budget = sum(lead.get("budget") or 0 for lead in leads)
    total_bill = sum(lead.get("electricity_bill") or 0 for lead in leads)

    return {
        "Nom du segment": segment.get("name"),
        "Description": segment.get("description"),
        "Nombre de leads": len(leads),
        "Taux de conversion": conversion,
        "Budget total": f"{format_thousands(total_budget)} FCFA",
        "Facture électricité totale": f"{format_thousands(total_bill)} FCFA",
    }
