"""Deterministic four-pillar trust scoring."""

import logging
import re
from dataclasses import dataclass, field

from product_resolver.domain.product import ProductRecord
from product_resolver.domain.scoring import (
    PILLAR_MAX,
    ScoredRecord,
    TrustScoreBreakdown,
)

_logger = logging.getLogger(__name__)

_PLACEHOLDER_INGREDIENTS = re.compile(
    r"^(product|item|n/a|not available|unknown|missing|no ingredients"
    r"|ingredients not listed)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class CertificationBonus:
    """Care bonus granted when any label matches one of ``markers``.

    ``exact`` markers must equal a label; otherwise a substring match counts.
    """

    name: str
    markers: tuple[str, ...]
    points: int
    exact: bool = False

    def matches(self, labels: list[str]) -> bool:
        if self.exact:
            return any(label in self.markers for label in labels)
        return any(marker in label for label in labels for marker in self.markers)


def _default_certification_bonuses() -> tuple[CertificationBonus, ...]:
    return (
        CertificationBonus("Fair Trade", ("fair-trade",), 8),
        CertificationBonus("Organic", ("organic",), 8),
        CertificationBonus("Rainforest Alliance", ("rainforest-alliance",), 7),
        CertificationBonus(
            "Sustainable Seafood", ("en:msc", "en:asc", "en:dolphin-safe"), 8, True
        ),
        CertificationBonus("RSPCA Approved", ("rspca",), 6),
        CertificationBonus("Vegan / Cruelty Free", ("en:vegan", "en:cruelty-free"), 10, True),
        CertificationBonus("UTZ", ("utz",), 7),
    )


@dataclass(frozen=True)
class ScoringConstants:
    """Every tunable number and word list used by the scoring engine."""

    grade_points: dict[str, int] = field(
        default_factory=lambda: {"a": 25, "b": 20, "c": 15, "d": 10, "e": 5}
    )
    missing_grade_points: int = 12

    # Body
    nova_adjustments: dict[int, int] = field(
        default_factory=lambda: {1: 3, 3: -3, 4: -8}
    )
    high_risk_additives: tuple[str, ...] = (
        "en:e102",
        "en:e104",
        "en:e110",
        "en:e122",
        "en:e124",
        "en:e129",
        "en:e211",
        "en:e250",
        "en:e251",
        "en:e621",
        "en:e951",
        "en:e952",
    )
    risky_analysis_markers: tuple[str, ...] = ("palm", "risk", "carcinogenic")
    high_risk_additive_penalty: int = 2
    risky_analysis_penalty: int = 3
    additive_penalty_cap: int = 10
    allergen_penalty_cap: int = 5
    irritants: tuple[str, ...] = ("parfum", "fragrance", "phthalate", "paraben")
    irritant_penalty: int = 5

    # Planet
    palm_oil_penalty: int = 8
    recyclable_values: tuple[str, ...] = ("recycle", "widely recycled")
    all_recyclable_bonus: int = 5
    some_recyclable_bonus: int = 2

    # Care
    care_baseline: int = 18
    controversy_brands: tuple[str, ...] = (
        "unilever",
        "procter & gamble",
        "p&g",
        "l'oreal",
        "loreal",
        "estee lauder",
        "estée lauder",
        "colgate-palmolive",
        "johnson & johnson",
        "j&j",
        "reckitt",
        "reckitt benckiser",
        "rb",
        "henkel",
        "beiersdorf",
        "shiseido",
        "kao",
        "sc johnson",
        "s.c. johnson",
        "clorox",
        "church & dwight",
        "coty",
        "revlon",
        "nestle",
        "nestlé",
        "mars",
        "mondelez",
        "danone",
        "kimberly-clark",
    )
    controversy_penalty: int = 30
    certification_bonuses: tuple[CertificationBonus, ...] = field(
        default_factory=_default_certification_bonuses
    )

    # Open
    hidden_terms: tuple[str, ...] = (
        "parfum",
        "fragrance",
        "aroma",
        "flavor",
        "natural flavor",
        "natural flavour",
        "proprietary",
    )
    many_hidden_threshold: int = 3
    many_hidden_penalty: int = 20
    few_hidden_penalty: int = 12
    missing_ingredients_score: int = 5
    missing_origin_penalty: int = 15

    # Sufficiency gate
    min_quality: int = 50
    min_completion: int = 50
    canonical_source: str = "openfoodfacts"
    web_search_source: str = "web_search"


def _clamp(value: float) -> int:
    return max(0, min(PILLAR_MAX, round(value)))


def _lowered(values: tuple[str, ...] | list[str]) -> list[str]:
    return [value.lower() for value in values if value]


def _has_rich_data(record: ProductRecord) -> bool:
    return bool(record.image_url or record.has_nutrients() or record.has_ingredients())


@dataclass
class ScoringEngine:
    """Turns a fused record into a bounded, explainable trust score."""

    constants: ScoringConstants = field(default_factory=ScoringConstants)

    def score(self, record: ProductRecord) -> ScoredRecord:
        """Score a record, or stamp it unscored when data is insufficient."""
        if not self.has_sufficient_data(record):
            return ScoredRecord(record=record)
        try:
            breakdown = self.breakdown(record)
        except (AttributeError, TypeError, ValueError):
            _logger.exception("Scoring failed for %s", record.barcode)
            return ScoredRecord(record=record)
        return ScoredRecord(
            record=record, trust_score=breakdown.total, breakdown=breakdown
        )

    def has_sufficient_data(self, record: ProductRecord) -> bool:
        """Decide whether a record carries enough real data to be scored."""
        c = self.constants
        quality = record.quality or 0
        completion = record.completion or 0
        rich = _has_rich_data(record)
        if quality < c.min_quality and completion < c.min_completion and not rich:
            return False
        if record.source == c.canonical_source:
            return True
        if record.source == c.web_search_source:
            return quality >= c.min_quality and completion >= c.min_completion and rich
        if record.has_placeholder_name():
            return False
        return rich or bool(record.brand) or record.has_origin()

    def breakdown(self, record: ProductRecord) -> TrustScoreBreakdown:
        planet = self.planet_score(record)
        care = self.care_score(record)
        return TrustScoreBreakdown(
            body=self.body_score(record),
            planet=planet,
            care=care,
            open=self.open_score(record),
            sustainability=float(planet * 4),
            ethics=float(care * 4),
            reasons=tuple(self.reasons(record)),
        )

    def body_score(self, record: ProductRecord) -> int:
        c = self.constants
        score = self._grade_points(record.nutriscore_grade)
        if record.nova_group is not None:
            score += c.nova_adjustments.get(record.nova_group, 0)
        high_risk = self._high_risk_additive_count(record)
        risky = sum(
            1
            for tag in _lowered(record.ingredients_analysis_tags)
            if any(marker in tag for marker in c.risky_analysis_markers)
        )
        score -= min(
            c.additive_penalty_cap,
            high_risk * c.high_risk_additive_penalty + risky * c.risky_analysis_penalty,
        )
        score -= min(c.allergen_penalty_cap, len(record.allergens_tags))
        if self._has_irritants(record):
            score -= c.irritant_penalty
        return _clamp(score)

    def planet_score(self, record: ProductRecord) -> int:
        c = self.constants
        score = self._grade_points(record.ecoscore_grade)
        if self._has_palm_oil(record):
            score -= c.palm_oil_penalty
        recyclable, total = self._recyclable_counts(record)
        if total and recyclable == total:
            score += c.all_recyclable_bonus
        elif recyclable:
            score += c.some_recyclable_bonus
        return _clamp(score)

    def care_score(self, record: ProductRecord) -> int:
        c = self.constants
        score = c.care_baseline
        if self._is_controversy_brand(record):
            score -= c.controversy_penalty
        labels = self._labels(record)
        for bonus in c.certification_bonuses:
            if bonus.matches(labels):
                score += bonus.points
        return _clamp(score)

    def open_score(self, record: ProductRecord) -> int:
        c = self.constants
        score = PILLAR_MAX
        hidden = self._hidden_term_count(record)
        if hidden >= c.many_hidden_threshold:
            score -= c.many_hidden_penalty
        elif hidden:
            score -= c.few_hidden_penalty
        if self._missing_ingredient_list(record):
            score = c.missing_ingredients_score
        if not record.has_origin():
            score -= c.missing_origin_penalty
        return _clamp(score)

    def reasons(self, record: ProductRecord) -> list[str]:
        """Human-readable rationale, in a fixed order."""
        c = self.constants
        reasons: list[str] = []

        eco = (record.ecoscore_grade or "").lower()
        if eco not in c.grade_points:
            reasons.append("Eco-Score not available - score based on available data only")
        elif eco in {"a", "b"}:
            reasons.append(
                f"Excellent Eco-Score ({eco.upper()}) - minimal environmental impact"
            )
        elif eco in {"d", "e"}:
            reasons.append(
                f"Poor Eco-Score ({eco.upper()}) - significant environmental impact"
            )
        if self._has_palm_oil(record):
            reasons.append("Contains palm oil - deforestation risk")
        recyclable, total = self._recyclable_counts(record)
        if total and recyclable == total:
            reasons.append("All packaging is recyclable")
        elif recyclable:
            reasons.append("Some packaging is recyclable")

        labels = self._labels(record)
        certified = [b.name for b in c.certification_bonuses if b.matches(labels)]
        if certified:
            reasons.append(f"Certified: {', '.join(certified)} - ethical standards")
        if self._is_controversy_brand(record):
            reasons.append("Parent company has known ethical controversies")

        nutri = (record.nutriscore_grade or "").lower()
        if nutri not in c.grade_points:
            reasons.append(
                "Nutri-Score not available - score based on available data only"
            )
        elif nutri in {"a", "b"}:
            reasons.append(
                f"Excellent Nutri-Score ({nutri.upper()}) - good nutritional quality"
            )
        elif nutri == "e":
            reasons.append(f"Poor Nutri-Score ({nutri.upper()}) - low nutritional quality")
        if record.nova_group == 1:
            reasons.append("Unprocessed or minimally processed - NOVA Group 1")
        elif record.nova_group == 4:
            reasons.append("Ultra-processed food - NOVA Group 4")
        high_risk = self._high_risk_additive_count(record)
        if high_risk:
            reasons.append(f"Contains {high_risk} high-risk additive(s)")
        if record.allergens_tags:
            reasons.append(f"Contains {len(record.allergens_tags)} allergen(s)")
        if self._has_irritants(record):
            reasons.append("Contains potential irritants")

        hidden = self._hidden_term_count(record)
        if hidden >= c.many_hidden_threshold:
            reasons.append("Multiple hidden ingredients - low transparency")
        elif hidden:
            reasons.append("Contains hidden ingredients - reduced transparency")
        if self._missing_ingredient_list(record):
            reasons.append("No ingredient list available - very low transparency")
        elif not hidden:
            reasons.append("Full ingredient disclosure - high transparency")
        if not record.has_origin():
            reasons.append("Origin not disclosed")
        return reasons

    def _grade_points(self, grade: str | None) -> int:
        c = self.constants
        if not grade:
            return c.missing_grade_points
        return c.grade_points.get(grade.strip().lower(), c.missing_grade_points)

    def _high_risk_additive_count(self, record: ProductRecord) -> int:
        risky = self.constants.high_risk_additives
        return sum(
            1
            for tag in _lowered(record.additives_tags)
            if any(risk in tag for risk in risky)
        )

    def _has_irritants(self, record: ProductRecord) -> bool:
        text = (record.ingredients_text or "").lower()
        return any(irritant in text for irritant in self.constants.irritants)

    def _has_palm_oil(self, record: ProductRecord) -> bool:
        analysis = _lowered(record.ingredients_analysis_tags)
        labels = _lowered(record.labels_tags)
        has_palm = any(
            "palm-oil" in tag and "palm-oil-free" not in tag for tag in analysis
        )
        palm_free = any("palm-oil-free" in tag for tag in analysis + labels)
        return has_palm and not palm_free

    def _recyclable_counts(self, record: ProductRecord) -> tuple[int, int]:
        accepted = self.constants.recyclable_values
        recyclable = 0
        for component in record.packagings:
            value = (component.recycling or "").strip().lower()
            value = value.removeprefix("en:").replace("-", " ")
            if value in accepted:
                recyclable += 1
        return recyclable, len(record.packagings)

    def _labels(self, record: ProductRecord) -> list[str]:
        labels = _lowered(record.labels_tags)
        labels.extend(_lowered(tuple(cert.tag for cert in record.certifications)))
        return labels

    def _is_controversy_brand(self, record: ProductRecord) -> bool:
        brand = (record.brand or "").lower()
        if not brand:
            return False
        return any(
            re.search(rf"(?<!\w){re.escape(parent)}(?!\w)", brand)
            for parent in self.constants.controversy_brands
        )

    def _hidden_term_count(self, record: ProductRecord) -> int:
        text = record.ingredients_text or ""
        return sum(
            1
            for term in self.constants.hidden_terms
            if re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE)
        )

    def _missing_ingredient_list(self, record: ProductRecord) -> bool:
        text = (record.ingredients_text or "").strip()
        return not text or bool(_PLACEHOLDER_INGREDIENTS.match(text))
