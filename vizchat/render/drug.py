"""Medication information card."""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import RendererError
from .context import RenderContext

LABELS = {
    "ko": {
        "ingredient": "핵심 성분", "category": "약물 분류", "dosage": "복용 안내",
        "efficacy": "주요 효능 및 효과", "features": "식별 정보",
        "shape": "모양", "color": "색상", "front": "앞면 각인", "back": "뒷면 각인",
        "unknown": "정보 없음", "none": "없음",
        "consult": "복용 전 의사·약사와 상의하세요.",
    },
    "en": {
        "ingredient": "Active Ingredients", "category": "Category", "dosage": "Dosage",
        "efficacy": "Efficacy & Effects", "features": "Identification",
        "shape": "Shape", "color": "Color", "front": "Front imprint", "back": "Back imprint",
        "unknown": "Unknown", "none": "None",
        "consult": "Please consult a doctor or pharmacist.",
    },
    "es": {
        "ingredient": "Ingredientes", "category": "Categoría", "dosage": "Dosis",
        "efficacy": "Eficacia y Efectos", "features": "Identificación",
        "shape": "Forma", "color": "Color", "front": "Impresión frontal", "back": "Impresión trasera",
        "unknown": "Desconocido", "none": "Ninguno",
        "consult": "Consulte a un médico o farmacéutico.",
    },
    "fr": {
        "ingredient": "Ingrédients", "category": "Catégorie", "dosage": "Dosage",
        "efficacy": "Efficacité", "features": "Identification",
        "shape": "Forme", "color": "Couleur", "front": "Empreinte recto", "back": "Empreinte verso",
        "unknown": "Inconnu", "none": "Aucune",
        "consult": "Consultez un médecin ou un pharmacien.",
    },
}

# Keyword found in an efficacy label -> icon. First match wins.
EFFICACY_ICONS = (
    ("콧물", "🤧"), ("코막힘", "🤧"), ("비염", "🤧"), ("재채기", "🤧"),
    ("기침", "😷"), ("가래", "😷"), ("감기", "😷"), ("인후", "🫁"), ("목구멍", "🫁"),
    ("해열", "🌡️"), ("발열", "🌡️"), ("오한", "🥶"),
    ("두통", "🧠"), ("치통", "🦷"), ("신경통", "⚡"), ("근육통", "🦴"), ("관절통", "🦴"), ("통증", "🩹"),
    ("복통", "💊"), ("위장", "💊"), ("소화", "💊"), ("설사", "💧"), ("변비", "💊"),
    ("구역", "💊"), ("구토", "💊"),
    ("면역", "🛡️"), ("예방", "🛡️"), ("고지혈", "💧"), ("혈압", "❤️"), ("당뇨", "💧"),
    ("심장", "❤️"), ("피로", "🔋"),
    ("야맹증", "👁️"), ("시력", "👁️"), ("눈", "👁️"),
    ("식욕", "🍽️"), ("비만", "⚖️"), ("체중", "⚖️"), ("대사", "⚡"), ("지방", "🔥"),
    ("runny nose", "🤧"), ("congestion", "🤧"), ("sneez", "🤧"), ("rhinitis", "🤧"),
    ("cough", "😷"), ("phlegm", "😷"), ("cold", "😷"), ("throat", "🫁"),
    ("fever", "🌡️"), ("chill", "🥶"), ("headache", "🧠"), ("toothache", "🦷"),
    ("neuralgia", "⚡"), ("muscle", "🦴"), ("joint", "🦴"), ("pain", "🩹"),
    ("stomach", "💊"), ("digest", "💊"), ("diarrhea", "💧"), ("constipation", "💊"),
    ("nausea", "💊"), ("vomit", "💊"), ("immun", "🛡️"), ("prevent", "🛡️"),
    ("cholesterol", "💧"), ("blood pressure", "❤️"), ("diabetes", "💧"), ("heart", "❤️"),
    ("fatigue", "🔋"), ("eye", "👁️"), ("vision", "👁️"), ("appetite", "🍽️"),
    ("obesity", "⚖️"), ("weight", "⚖️"), ("metabol", "⚡"), ("fat", "🔥"),
)

DEFAULT_ICON = "💊"


def as_text(value: Any) -> Optional[str]:
    """Loosely typed card field as display text. Lists are joined, numbers kept."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        parts = [as_text(v) for v in value]
        return ", ".join(p for p in parts if p) or None
    if isinstance(value, (bool, int, float)):
        return str(value)
    return None


class PillVisual(BaseModel):
    shape: Optional[str] = None
    color: Optional[str] = None
    imprint_front: Optional[str] = None
    imprint_back: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value):
        return as_text(value)


class Efficacy(BaseModel):
    label: str
    icon: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value):
        return as_text(value)


class DrugInfo(BaseModel):
    name: Optional[str] = None
    engName: Optional[str] = None
    ingredient: Optional[str] = None
    category: Optional[str] = None
    dosage: Optional[str] = None
    pill_visual: Optional[PillVisual] = None
    efficacy: List[Efficacy] = Field(default_factory=list)

    @field_validator("name", "engName", "ingredient", "category", "dosage", mode="before")
    @classmethod
    def _as_text(cls, value):
        return as_text(value)

    @field_validator("pill_visual", mode="before")
    @classmethod
    def _pill_object(cls, value):
        return value if isinstance(value, dict) else None

    @field_validator("efficacy", mode="before")
    @classmethod
    def _labelled_items(cls, value):
        # Models sometimes send plain strings instead of {label}. Items with no label are dropped.
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        items = []
        for item in value:
            if isinstance(item, dict):
                item = {**item, "label": as_text(item.get("label"))}
            else:
                item = {"label": as_text(item)}
            if item["label"]:
                items.append(item)
        return items


def efficacy_icon(label: str, provided: Optional[str] = None) -> str:
    """Icon for an efficacy label: keyword map first, then a usable provided icon."""
    lowered = label.lower()
    for keyword, icon in EFFICACY_ICONS:
        if keyword in lowered:
            return icon
    if provided and not provided.startswith("fa-"):
        return provided
    return DEFAULT_ICON


def split_categories(category: str) -> List[str]:
    parts = category.replace("/", ",").replace("(", ",").replace(")", ",").split(",")
    return [p.strip() for p in parts if p.strip()]


class DrugRenderer:

    def __init__(self, context: RenderContext):
        self.context = context
        self.labels = LABELS.get(context.language, LABELS["en"])

    def _value(self, value: Optional[str], placeholder: str = "unknown") -> Text:
        if value:
            return Text(str(value))
        return Text(self.labels[placeholder], style="italic " + self.context.theme.muted)

    def render(self, payload: dict) -> RenderableType:
        try:
            drug = DrugInfo.model_validate(payload)
        except ValidationError as e:
            raise RendererError(f"Invalid drug card: {e.error_count()} error(s)") from e

        theme = self.context.theme
        header = Text()
        header.append(drug.name or self.labels["unknown"], style="bold")
        if drug.engName:
            header.append(f"\n{drug.engName}", style=theme.muted)
        if drug.category:
            header.append("\n")
            for category in split_categories(drug.category):
                header.append(f" {category} ", style="reverse " + theme.color(0))
                header.append(" ")

        details = Table(show_header=False, box=None, padding=(0, 1))
        details.add_column("field", style=theme.muted, no_wrap=True)
        details.add_column("value")
        details.add_row(self.labels["ingredient"], self._value(drug.ingredient))
        details.add_row(self.labels["category"], self._value(drug.category))
        details.add_row(self.labels["dosage"], self._value(drug.dosage, "consult"))

        pill = drug.pill_visual or PillVisual()
        features = Table(title=self.labels["features"], title_justify="left", title_style="bold",
                         show_header=False, box=None, padding=(0, 1))
        features.add_column("field", style=theme.muted, no_wrap=True)
        features.add_column("value")
        features.add_row(self.labels["shape"], self._value(pill.shape))
        features.add_row(self.labels["color"], self._value(pill.color))
        features.add_row(self.labels["front"], self._value(pill.imprint_front, "none"))
        features.add_row(self.labels["back"], self._value(pill.imprint_back, "none"))

        efficacy = Text()
        efficacy.append(self.labels["efficacy"], style="bold")
        if drug.efficacy:
            for item in drug.efficacy:
                efficacy.append(f"\n{efficacy_icon(item.label, item.icon)} {item.label}")
        else:
            efficacy.append("\n")
            efficacy.append_text(self._value(None))

        return Panel(Group(header, Text(), details, Text(), features, Text(), efficacy),
                     border_style=theme.color(0))
