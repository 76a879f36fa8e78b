"""Program templates and the energy math used to seed their targets.

Provides the template catalog (cut/maintain/bulk variants), BMR/TDEE
helpers and the goal-specific weekly weight-change expectations used when
reviewing a program.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from core.exceptions import ValidationError
from core.logger import get_logger

logger = get_logger("services.program_templates")

ACTIVITY_MULTIPLIERS = {
    'sedentary': 1.2,
    'light': 1.375,
    'moderate': 1.55,
    'active': 1.725,
    'very_active': 1.9,
}

# kg/week: (expected, lower bound, upper bound)
EXPECTED_WEEKLY_RATES: Dict[str, Tuple[float, float, float]] = {
    'cut': (-0.6, -0.8, -0.4),
    'maintenance': (0.0, -0.2, 0.2),
    'bulk': (0.3, 0.2, 0.4),
}


@dataclass(frozen=True)
class ProgramTemplate:
    id: str
    name: str
    description: str
    calorie_modifier: float  # -0.20 = 20% deficit
    protein_per_kg: float
    fat_per_kg: float


PROGRAM_TEMPLATES: List[ProgramTemplate] = [
    ProgramTemplate('aggressive_cut', 'Aggressive Cut', '20% deficit for rapid fat loss', -0.20, 2.2, 0.8),
    ProgramTemplate('moderate_cut', 'Moderate Cut', '15% deficit for steady fat loss', -0.15, 2.0, 0.9),
    ProgramTemplate('conservative_cut', 'Conservative Cut', '10% deficit for slow fat loss', -0.10, 1.8, 1.0),
    ProgramTemplate('maintenance', 'Maintenance', 'Hold current weight and body composition', 0.0, 1.6, 1.0),
    ProgramTemplate('lean_bulk', 'Lean Bulk', '10% surplus for muscle gain with minimal fat', 0.10, 1.8, 0.9),
    ProgramTemplate('bulk', 'Bulk', '15% surplus for faster muscle gain', 0.15, 1.6, 0.8),
]


def get_template(template_id: str) -> Optional[ProgramTemplate]:
    """Return the catalog entry for `template_id`, or None."""
    return next((t for t in PROGRAM_TEMPLATES if t.id == template_id), None)


def goal_for_template(template_id: str) -> str:
    """Map a template identifier to its goal: 'cut', 'bulk' or 'maintenance'.

    Custom identifiers are classified by name so user-defined programs such
    as "summer_cut" still get the right expectations.
    """
    if 'cut' in template_id:
        return 'cut'
    if 'bulk' in template_id:
        return 'bulk'
    return 'maintenance'


def expected_weekly_rate(goal: str) -> Tuple[float, float, float]:
    """Return (expected, low, high) kg/week for a goal."""
    return EXPECTED_WEEKLY_RATES.get(goal, EXPECTED_WEEKLY_RATES['maintenance'])


class NutritionCalculator:
    """Mifflin-St Jeor energy estimates and template macro allocation."""

    def calculate_bmr(self, age: int, height_cm: float, weight_kg: float, sex: str) -> float:
        """Calculate BMR using Mifflin-St Jeor."""
        if sex.lower() == 'male':
            return 10 * weight_kg + 6.25 * height_cm - 5 * age + 5
        return 10 * weight_kg + 6.25 * height_cm - 5 * age - 161

    def calculate_tdee(self, bmr: float, activity_level: str) -> int:
        """Estimate TDEE from BMR and activity multiplier."""
        if activity_level not in ACTIVITY_MULTIPLIERS:
            raise ValidationError(f"Unknown activity level '{activity_level}'", field="activity_level")
        val = round(bmr * ACTIVITY_MULTIPLIERS[activity_level])
        logger.debug("TDEE calculated: %s", val)
        return val

    def calculate_macros(self, template: ProgramTemplate, age: int, sex: str, weight_kg: float,
                         height_cm: float, activity_level: str) -> Dict[str, int]:
        """Derive the four daily targets for a template.

        Protein and fat are set per kg of bodyweight; whatever calories remain
        go to carbs (never negative).

        Returns:
            Dictionary with 'calories', 'protein', 'carbs' and 'fat'.
        """
        bmr = self.calculate_bmr(age, height_cm, weight_kg, sex)
        tdee = self.calculate_tdee(bmr, activity_level)
        calories = round(tdee * (1 + template.calorie_modifier))
        protein = round(weight_kg * template.protein_per_kg)
        fat = round(weight_kg * template.fat_per_kg)
        remaining = calories - protein * 4 - fat * 9
        carbs = round(max(0, remaining / 4))
        macros = {'calories': calories, 'protein': protein, 'carbs': carbs, 'fat': fat}
        logger.debug("Macros for template %s: %s", template.id, macros)
        return macros


nutrition_calculator = NutritionCalculator()
