"""
Scenario Catalog

Read-only registry of roleplay scenarios: localized framing, an ordered list
of goal-directed steps, and a grading rubric per step. The rubric, persona
and language style are opaque to the engine and only forwarded to the
grading collaborator.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from roleplay_practice.errors import CatalogError, ScenarioNotFoundError
from roleplay_practice.localization import resolve, resolve_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One goal-directed exchange within a scenario."""
    id: int  # 1-based position in the scenario
    goal: Mapping[str, str]
    rubric: str
    hints: Mapping[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Scenario:
    """A named, ordered training exercise."""
    id: str
    title: Mapping[str, str]
    persona: str
    language_style: str
    steps: Tuple[Step, ...]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def get_step(self, step_id: int) -> Step:
        if not 1 <= step_id <= len(self.steps):
            raise IndexError(f"Step {step_id} out of range for scenario {self.id}")
        return self.steps[step_id - 1]

    def localized_title(self, locale: str) -> str:
        return resolve(self.title, locale, self.id)


@dataclass(frozen=True)
class StepView:
    """Localized view of a step for display."""
    step: int
    total_steps: int
    goal: str
    hints: List[str]


def describe_step(scenario: Scenario, step_id: int, locale: str) -> StepView:
    """Resolve goal and hints of one step into the requested locale."""
    step = scenario.get_step(step_id)
    key = f"{scenario.id}.step{step.id}"
    return StepView(
        step=step.id,
        total_steps=scenario.total_steps,
        goal=resolve(step.goal, locale, f"{key}.goal"),
        hints=resolve_list(step.hints, locale, f"{key}.hints"),
    )


def _validate(scenario: Scenario) -> None:
    if not scenario.steps:
        raise CatalogError(f"Scenario {scenario.id} has no steps")
    ids = [step.id for step in scenario.steps]
    if ids != list(range(1, len(ids) + 1)):
        raise CatalogError(
            f"Scenario {scenario.id} step ids must be 1..{len(ids)} in order, got {ids}"
        )


class ScenarioCatalog:
    """
    Registry of scenarios, queried by id.

    The scenario set is fixed per deployment; build a different catalog
    (e.g. with ``from_dicts``) to swap it.
    """

    def __init__(self, scenarios: Iterable[Scenario]):
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in scenarios:
            _validate(scenario)
            if scenario.id in self._scenarios:
                raise CatalogError(f"Duplicate scenario id: {scenario.id}")
            self._scenarios[scenario.id] = scenario
        logger.info(f"📚 [ScenarioCatalog] Loaded {len(self._scenarios)} scenarios")

    def get_scenario(self, scenario_id: str) -> Scenario:
        """Get a scenario by id; raises ScenarioNotFoundError if unknown."""
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFoundError(scenario_id)
        return scenario

    def list_scenarios(self) -> List[Scenario]:
        return list(self._scenarios.values())

    def __contains__(self, scenario_id: str) -> bool:
        return scenario_id in self._scenarios

    @classmethod
    def from_dicts(cls, data: Iterable[Mapping[str, Any]]) -> "ScenarioCatalog":
        """
        Build a catalog from plain mappings (e.g. loaded from JSON).

        Accepts both ``language_style`` and ``languageStyle`` keys.
        """
        scenarios = []
        for raw in data:
            steps = tuple(
                Step(
                    id=int(step["id"]),
                    goal=dict(step["goal"]),
                    rubric=step["rubric"],
                    hints={k: list(v) for k, v in (step.get("hints") or {}).items()},
                )
                for step in raw["steps"]
            )
            scenarios.append(Scenario(
                id=raw["id"],
                title=dict(raw["title"]),
                persona=raw.get("persona", ""),
                language_style=raw.get("language_style", raw.get("languageStyle", "")),
                steps=steps,
            ))
        return cls(scenarios)


DEFAULT_SCENARIOS: List[Dict[str, Any]] = [
    {
        "id": "boundary-setting",
        "title": {
            "sv": "Sätta gränser",
            "en": "Setting Boundaries",
            "es": "Establecer Límites",
            "no": "Sette grenser",
            "da": "Sætte grænser",
            "fi": "Rajojen asettaminen",
        },
        "persona": (
            "You are Auri, a supportive wellness coach helping someone practice setting "
            "healthy boundaries. You are empathetic, encouraging, and provide realistic scenarios."
        ),
        "language_style": "Simple, warm, 2–3 sentences per turn. Ask open-ended questions to guide reflection.",
        "steps": [
            {
                "id": 1,
                "goal": {
                    "sv": "Identifiera situationen där gränser behövs",
                    "en": "Identify the situation where boundaries are needed",
                    "es": "Identificar la situación donde se necesitan límites",
                    "no": "Identifiser situasjonen der grenser trengs",
                    "da": "Identificer situationen hvor grænser er nødvendige",
                    "fi": "Tunnista tilanne jossa rajoja tarvitaan",
                },
                "hints": {
                    "sv": ["Fråga om specifika exempel", "Utforska känslor kring situationen"],
                    "en": ["Ask for specific examples", "Explore feelings about the situation"],
                    "es": ["Pide ejemplos específicos", "Explora sentimientos sobre la situación"],
                    "no": ["Spør om spesifikke eksempler", "Utforsk følelser rundt situasjonen"],
                    "da": ["Spørg om specifikke eksempler", "Udforsk følelser omkring situationen"],
                    "fi": ["Kysy konkreettisia esimerkkejä", "Tutki tunteita tilanteesta"],
                },
                "rubric": (
                    "Score 0-5 based on clarity of situation identification, emotional awareness, "
                    "and specificity of examples provided."
                ),
            },
            {
                "id": 2,
                "goal": {
                    "sv": "Formulera tydliga gränser",
                    "en": "Formulate clear boundaries",
                    "es": "Formular límites claros",
                    "no": "Formuler klare grenser",
                    "da": "Formuler klare grænser",
                    "fi": "Muotoile selkeät rajat",
                },
                "hints": {
                    "sv": ['Använd "jag"-meddelanden', "Var specifik och tydlig"],
                    "en": ['Use "I" statements', "Be specific and clear"],
                    "es": ['Usa declaraciones "yo"', "Sé específico y claro"],
                    "no": ['Bruk "jeg"-utsagn', "Vær spesifikk og tydelig"],
                    "da": ['Brug "jeg"-udsagn', "Vær specifik og klar"],
                    "fi": ['Käytä "minä"-lauseita', "Ole tarkka ja selkeä"],
                },
                "rubric": (
                    "Score 0-5 based on clarity of boundary statement, use of assertive language, "
                    "and appropriateness to the situation."
                ),
            },
            {
                "id": 3,
                "goal": {
                    "sv": "Öva på att kommunicera gränser respektfullt",
                    "en": "Practice communicating boundaries respectfully",
                    "es": "Practicar comunicar límites respetuosamente",
                    "no": "Øv på å kommunisere grenser respektfullt",
                    "da": "Øv dig i at kommunikere grænser respektfuldt",
                    "fi": "Harjoittele rajojen kunnioittavaa viestintää",
                },
                "hints": {
                    "sv": ["Håll lugn och bestämd ton", "Förklara dina behov"],
                    "en": ["Maintain calm and firm tone", "Explain your needs"],
                    "es": ["Mantén un tono calmado y firme", "Explica tus necesidades"],
                    "no": ["Hold rolig og bestemt tone", "Forklar dine behov"],
                    "da": ["Hold rolig og bestemt tone", "Forklar dine behov"],
                    "fi": ["Pidä rauhallinen ja päättäväinen sävy", "Selitä tarpeesi"],
                },
                "rubric": (
                    "Score 0-5 based on tone appropriateness, respect for others, clarity of "
                    "communication, and confidence in delivery."
                ),
            },
        ],
    },
    {
        "id": "conflict-resolution",
        "title": {
            "sv": "Konfliktlösning",
            "en": "Conflict Resolution",
            "es": "Resolución de Conflictos",
            "no": "Konfliktløsning",
            "da": "Konfliktløsning",
            "fi": "Konfliktinratkaisu",
        },
        "persona": (
            "You are Auri, helping someone navigate and resolve interpersonal conflicts "
            "constructively. You emphasize empathy, active listening, and finding win-win solutions."
        ),
        "language_style": (
            "Calm, balanced, thoughtful responses. Guide the user through structured "
            "conflict resolution steps."
        ),
        "steps": [
            {
                "id": 1,
                "goal": {
                    "sv": "Förstå konflikten från alla perspektiv",
                    "en": "Understand the conflict from all perspectives",
                    "es": "Entender el conflicto desde todas las perspectivas",
                    "no": "Forstå konflikten fra alle perspektiver",
                    "da": "Forstå konflikten fra alle perspektiver",
                    "fi": "Ymmärrä konflikti kaikista näkökulmista",
                },
                "hints": {
                    "sv": ["Lyssna aktivt på alla parter", "Identifiera kärnfrågan"],
                    "en": ["Listen actively to all parties", "Identify the core issue"],
                    "es": ["Escucha activamente a todas las partes", "Identifica el problema central"],
                    "no": ["Lytt aktivt til alle parter", "Identifiser kjerneproblemet"],
                    "da": ["Lyt aktivt til alle parter", "Identificer kerneproblemet"],
                    "fi": ["Kuuntele aktiivisesti kaikkia osapuolia", "Tunnista ydinasia"],
                },
                "rubric": (
                    "Score 0-5 based on ability to see multiple perspectives, identify root causes, "
                    "and demonstrate empathy."
                ),
            },
            {
                "id": 2,
                "goal": {
                    "sv": "Hitta gemensam grund",
                    "en": "Find common ground",
                    "es": "Encontrar terreno común",
                    "no": "Finn felles grunn",
                    "da": "Find fælles grundlag",
                    "fi": "Löydä yhteinen pohja",
                },
                "hints": {
                    "sv": ["Fokusera på delade värden", "Sök ömsesidiga fördelar"],
                    "en": ["Focus on shared values", "Look for mutual benefits"],
                    "es": ["Enfócate en valores compartidos", "Busca beneficios mutuos"],
                    "no": ["Fokuser på delte verdier", "Se etter gjensidig nytte"],
                    "da": ["Fokuser på delte værdier", "Se efter gensidige fordele"],
                    "fi": ["Keskity yhteisiin arvoihin", "Etsi molemminpuolisia etuja"],
                },
                "rubric": (
                    "Score 0-5 based on creativity in finding commonalities, focus on shared goals, "
                    "and collaborative approach."
                ),
            },
        ],
    },
    {
        "id": "public-speaking-anxiety",
        "title": {
            "sv": "Hantera talångest",
            "en": "Managing Public Speaking Anxiety",
            "es": "Manejar la Ansiedad de Hablar en Público",
            "no": "Håndtere taleangst",
            "da": "Håndtere taleangst",
            "fi": "Esiintymisahdistuksen hallinta",
        },
        "persona": (
            "You are Auri, a compassionate coach helping someone overcome public speaking "
            "anxiety. You provide practical techniques and emotional support."
        ),
        "language_style": (
            "Reassuring, practical, encouraging. Break down anxiety management into "
            "manageable steps."
        ),
        "steps": [
            {
                "id": 1,
                "goal": {
                    "sv": "Identifiera specifika rädslor och utlösare",
                    "en": "Identify specific fears and triggers",
                    "es": "Identificar miedos específicos y desencadenantes",
                    "no": "Identifiser spesifikke frykter og utløsere",
                    "da": "Identificer specifikke frygt og udløsere",
                    "fi": "Tunnista erityiset pelot ja laukaisimet",
                },
                "hints": {
                    "sv": ["Vad är det värsta som kan hända?", "Vilka fysiska symptom märker du?"],
                    "en": ["What's the worst that could happen?", "What physical symptoms do you notice?"],
                    "es": ["¿Qué es lo peor que podría pasar?", "¿Qué síntomas físicos notas?"],
                    "no": ["Hva er det verste som kan skje?", "Hvilke fysiske symptomer legger du merke til?"],
                    "da": ["Hvad er det værste der kan ske?", "Hvilke fysiske symptomer bemærker du?"],
                    "fi": ["Mikä on pahinta mitä voi tapahtua?", "Mitä fyysisiä oireita huomaat?"],
                },
                "rubric": (
                    "Score 0-5 based on self-awareness of anxiety triggers, honesty about fears, "
                    "and understanding of physical responses."
                ),
            },
        ],
    },
]

_default_catalog: Optional[ScenarioCatalog] = None


def get_default_catalog() -> ScenarioCatalog:
    """Get or create the deployment's scenario catalog."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = ScenarioCatalog.from_dicts(DEFAULT_SCENARIOS)
    return _default_catalog
