"""Recommendation selection for a scored survey."""

from safehaven.schemas.response import RecommendationResult
from safehaven.schemas.survey import RiskTier, SurveyDefinition
from safehaven.services.risk import classify_default, find_band

DEFAULT_RECOMMENDATIONS: dict[RiskTier, list[str]] = {
    RiskTier.LOW: [
        "Mantén tus buenos hábitos de bienestar",
        "Considera actividades de relajación regular",
    ],
    RiskTier.MEDIUM: [
        "Considera hablar con un profesional de la salud mental",
        "Practica técnicas de respiración y relajación",
        "Mantén una rutina regular de ejercicio",
    ],
    RiskTier.HIGH: [
        "Es recomendable consultar con un profesional de la salud mental",
        "Busca apoyo en familiares y amigos cercanos",
        "Considera grupos de apoyo o terapia",
    ],
    RiskTier.CRITICAL: [
        "Busca ayuda profesional inmediatamente",
        "Contacta líneas de crisis o emergencias",
        "No dudes en pedir ayuda a profesionales de la salud",
    ],
}

DEFAULT_DESCRIPTIONS: dict[RiskTier, str] = {
    RiskTier.LOW: "Tus respuestas indican un nivel de riesgo bajo.",
    RiskTier.MEDIUM: "Tus respuestas indican señales que conviene atender.",
    RiskTier.HIGH: "Tus respuestas indican un nivel de riesgo alto.",
    RiskTier.CRITICAL: "Tus respuestas indican una situación que requiere apoyo inmediato.",
}

DEFAULT_COLORS: dict[RiskTier, str] = {
    RiskTier.LOW: "#4CAF50",
    RiskTier.MEDIUM: "#FF9800",
    RiskTier.HIGH: "#F44336",
    RiskTier.CRITICAL: "#9C27B0",
}


def select_recommendations(total_score: int, survey: SurveyDefinition) -> RecommendationResult:
    """Select tier, description, guidance and color for a total.

    A custom band containing the total is returned verbatim. Otherwise the
    built-in guidance for the survey's default tier is used.

    Args:
        total_score: Summed score
        survey: Survey definition

    Returns:
        RecommendationResult with a non-empty recommendation list
    """
    band = find_band(total_score, survey.risk_bands)
    if band is not None:
        return RecommendationResult(
            tier=band.tier,
            description=band.description,
            recommendations=list(band.recommendations),
            color=band.color,
        )

    tier = classify_default(total_score, survey)
    return RecommendationResult(
        tier=tier.value,
        description=DEFAULT_DESCRIPTIONS[tier],
        recommendations=list(DEFAULT_RECOMMENDATIONS[tier]),
        color=DEFAULT_COLORS[tier],
    )
