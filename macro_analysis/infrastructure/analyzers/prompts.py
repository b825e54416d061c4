"""
OpenAI prompts for nutrition analysis.

System prompts are static per region so OpenAI can cache them.
Dynamic content (user text, image, context) goes in the user message.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, List

from macro_analysis.domain.analysis.models import AnalysisContext, FoodInput, InputKind


# ═══════════════════════════════════════════════════════════
# SYSTEM PROMPTS (Cacheable - static instructions)
# ═══════════════════════════════════════════════════════════

_OUTPUT_FORMAT = """Output: JSON object with:
- items: Array of food items, each with
  * description: string
  * calories: number (kcal)
  * protein: number (g)
  * carbs: number (g)
  * fat: number (g)
  * sugar: number or null (g)
  * fibre: number or null (g)
  * saturatedFat: number or null (g)
  * sodium: number or null (mg)
  * cholesterol: number or null (mg)
- confidence: 0.0-1.0 for the whole answer
- suggestions: Array of short follow-up hints for the user (may be empty)

If a value is unknown, set it to null. Never invent a zero."""

_GENERAL_GUIDELINES = """IMPORTANT GUIDELINES:
- Correct typos and speech recognition errors (e.g. 'Ifillet' -> 'eye fillet', 'margheritsa' -> 'margherita').
- Split composite meals into individual food items.
- For multiple portions (e.g. "two slices"), multiply the nutrition values accordingly.
- For restaurant foods, use the chain's published nutrition data.
- Use standard portion sizes when no quantity is given."""

REGIONAL_GUIDELINES: Dict[str, str] = {
    "AU": (
        "- Use Australian food standards (AUSNUT 2011-13), brands and portion sizes.\n"
        "- For restaurant foods (Domino's, McDonald's, etc.), use their Australian nutrition data."
    ),
    "US": "- Use USDA FoodData Central reference values and US portion sizes.",
}

CONTEXT_INSTRUCTIONS: Dict[str, str] = {
    AnalysisContext.QUICK_LOGGING.value: "Be fast and pragmatic; typical portions are fine.",
    AnalysisContext.DETAILED_COACHING.value: (
        "Be precise about portions and fill in micronutrients wherever known."
    ),
    AnalysisContext.RECIPE_ANALYSIS.value: (
        "The input is a full recipe: return one item per ingredient with the quantity given."
    ),
    AnalysisContext.SOCIAL_SHARING.value: "Use friendly, recognizable dish names.",
    AnalysisContext.MEAL_PLANNING.value: "Prefer standard serving sizes suitable for planning.",
}


def build_system_prompt(region: str = "AU") -> str:
    """Build the static system prompt for a region.

    Args:
        region: ISO country code selecting regional guidelines

    Returns:
        System prompt text
    """
    regional = REGIONAL_GUIDELINES.get(region.upper(), "")
    nationality = "Australian " if region.upper() == "AU" else ""
    parts = [
        f"You are an expert {nationality}nutritionist estimating the nutrition of foods.",
        _GENERAL_GUIDELINES,
    ]
    if regional:
        parts.append(regional)
    parts.append(_OUTPUT_FORMAT)
    return "\n\n".join(parts)


# ═══════════════════════════════════════════════════════════
# USER MESSAGE BUILDERS (Dynamic - not cached)
# ═══════════════════════════════════════════════════════════


def build_user_message(food_input: FoodInput) -> str:
    """Build the text part of the user message.

    Args:
        food_input: Request being analyzed

    Returns:
        User message text
    """
    lines: List[str] = []
    if food_input.input_kind == InputKind.IMAGE:
        lines.append(
            "An image was provided. Identify all visible foods and estimate "
            "their portions and nutrition."
        )
        if food_input.raw_text.strip():
            lines.append(f'User description: "{food_input.raw_text.strip()}"')
    elif food_input.input_kind == InputKind.SPEECH:
        lines.append(
            f'Speech transcript (may contain recognition errors): "{food_input.raw_text.strip()}"'
        )
    elif food_input.input_kind == InputKind.BARCODE:
        lines.append(f"Packaged product with barcode {food_input.raw_text.strip()}.")
    else:
        lines.append(f'Food input: "{food_input.raw_text.strip()}"')

    instruction = CONTEXT_INSTRUCTIONS.get(str(food_input.context))
    if instruction:
        lines.append(instruction)
    return "\n".join(lines)


def image_data_url(image: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode image bytes as a data URL for the vision API."""
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


def build_messages(food_input: FoodInput, region: str = "AU") -> List[Dict[str, Any]]:
    """Build complete message array for the chat completions API.

    Args:
        food_input: Request being analyzed
        region: Region code for the system prompt

    Returns:
        List of message dicts for OpenAI API
    """
    user_text = build_user_message(food_input)
    content: Any = user_text
    if food_input.input_kind == InputKind.IMAGE and food_input.image:
        content = [
            {"type": "text", "text": user_text},
            {
                "type": "image_url",
                "image_url": {"url": image_data_url(food_input.image), "detail": "high"},
            },
        ]
    return [
        {"role": "system", "content": build_system_prompt(region)},
        {"role": "user", "content": content},
    ]

