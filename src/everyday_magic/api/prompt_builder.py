"""Instruction templates for the recommendation and image-analysis models.

Both builders are pure functions: the same inputs always produce
byte-identical prompts.  Each prompt is a small markdown document with a
fixed persona preamble, the user's request quoted verbatim, and output
requirements the model must follow.

Recommendation Prompt Structure::

    ## INSTRUCTIONS            persona + "generate 3 recommendations"
    ## USER REQUEST            "<user text>"
    ## OUTPUT REQUIREMENTS     JSON array of exactly 3 {title, reasoning, category}
                               [optional category focus + category guidance]
    ## EXAMPLE OUTPUT FORMAT   one literal example object
    ## IMPORTANT               JSON only, no markdown

Image Analysis Prompt Structure::

    ## INSTRUCTIONS            persona + "analyze the image"
    ## USER CONTEXT            optional request and category
    ## OUTPUT REQUIREMENTS     main_subject / details / context /
                               recommendation_ideas, 150-200 words
    ## GOAL

Usage
-----
::

    prompt = build_recommendation_prompt("Something cozy for tonight", "meals")
"""

from __future__ import annotations

import json

# ---------------------------------------------------------------------------
# Category vocabulary.
# ---------------------------------------------------------------------------

VALID_CATEGORIES: tuple[str, ...] = (
    "meals",
    "entertainment",
    "fashion",
    "fitness",
    "travel",
    "books",
    "music",
)

_CATEGORY_INSTRUCTIONS: dict[str, tuple[str, ...]] = {
    "meals": (
        "For meal recommendations, include cuisine type and approximate preparation time",
        "Consider dietary preferences if mentioned in the request",
        "Focus on dishes that match the sentiment/mood of the request",
    ),
    "entertainment": (
        "For entertainment recommendations, include genre and approximate duration",
        "Mention platform availability where applicable (Netflix, Hulu, etc.)",
        "Match the tone/mood of the content to the request",
    ),
    "fashion": (
        "For fashion recommendations, specify occasion suitability",
        "Consider seasonality and weather conditions if applicable",
        "Include styling tips or pairing suggestions",
    ),
    "fitness": (
        "For fitness recommendations, include intensity level and time requirement",
        "Specify equipment needed (if any) or mention if bodyweight only",
        "Consider experience level in recommendations",
    ),
    "travel": (
        "For travel recommendations, include location details and best season to visit",
        "Mention approximate budget category (budget, mid-range, luxury)",
        "Highlight unique experiences or attractions",
    ),
    "books": (
        "For book recommendations, include author and publication year",
        "Mention genre and approximate reading time/length",
        "Compare to similar well-known works where helpful",
    ),
    "music": (
        "For music recommendations, include artist and genre",
        "Mention album or release year where relevant",
        "Suggest specific occasions or moods when the music would be most enjoyable",
    ),
}

_PERSONA = 'You are the recommendation engine for "Everyday Magic", a personal assistant app.'
_VISION_PERSONA = 'You are the image analysis engine for "Everyday Magic", a personal assistant app.'


def _bullets(lines: tuple[str, ...] | list[str]) -> str:
    return "\n".join(f"* {line}" for line in lines)


def get_category_instructions(category: str | None) -> str:
    """Return the category-specific guidance bullets for *category*.

    Args:
        category: One of :data:`VALID_CATEGORIES`, or ``None``.

    Returns:
        Bullet lines separated by newlines, or an empty string when the
        category is absent or unrecognised.
    """
    if not category:
        return ""
    lines = _CATEGORY_INSTRUCTIONS.get(category)
    if lines is None:
        return ""
    return _bullets(lines)


def build_recommendation_prompt(user_text: str, category: str | None = None) -> str:
    """Compile the instruction prompt for three JSON recommendations.

    Args:
        user_text: The user's request, embedded verbatim inside quotes.
        category: Optional category focus.  Unrecognised values are still
            named in the prompt but contribute no category guidance.

    Returns:
        The prompt text.
    """
    example = [
        {
            "title": "Example Title Without Any Asterisks or Formatting",
            "reasoning": "Example reasoning for this recommendation",
            "category": category or "books",
        }
    ]

    requirements = [
        "Response MUST be a valid JSON array containing exactly 3 recommendation objects",
        "Each recommendation object MUST have these properties:\n"
        '  - "title": A plain text title WITHOUT any Markdown formatting '
        "(no asterisks, no bold, no formatting characters)\n"
        '  - "reasoning": Brief explanation (1-2 sentences) justifying the recommendation\n'
        f'  - "category": One of: {", ".join(VALID_CATEGORIES)}',
    ]
    if category:
        requirements.append(f'Focus recommendations on the category: "{category}"')
    formatting_rules = [
        "DO NOT include any explanatory text outside the JSON array",
        "DO NOT include any markdown formatting, especially no ** asterisks ** for emphasis",
        "DO NOT include backticks or code blocks",
        "NO formatting characters of any kind in the title field",
    ]
    requirement_block = "\n".join(
        block
        for block in (
            _bullets(requirements),
            get_category_instructions(category),
            _bullets(formatting_rules),
        )
        if block
    )

    sections = [
        "## INSTRUCTIONS",
        f"{_PERSONA}\nGenerate 3 high-quality personalized recommendations "
        "based on the user request.",
        "## USER REQUEST",
        f'"{user_text}"',
        "## OUTPUT REQUIREMENTS",
        requirement_block,
        "## EXAMPLE OUTPUT FORMAT",
        json.dumps(example, indent=2),
        "## IMPORTANT",
        "Your entire response must be ONLY the JSON array and nothing else.\n"
        "Never use asterisks, markdown, or HTML formatting in any field.",
    ]
    return "\n\n".join(sections)


def build_image_analysis_prompt(user_text: str | None = None, category: str | None = None) -> str:
    """Compile the instruction prompt for a structured image description.

    The model is asked for narrative text, not JSON.

    Args:
        user_text: Optional request that accompanies the image.
        category: Optional category to focus the analysis on.

    Returns:
        The prompt text.
    """
    context = [f'User request: "{user_text}"' if user_text else "No specific request provided."]
    if category:
        context.append(f'Focus on category: "{category}"')

    requirements = [
        "Provide a detailed analysis of the image content, focusing on relevant features",
        "Structure your response with these sections:\n"
        '  1. "main_subject": A clear description of the primary subject\n'
        '  2. "details": Important details or elements visible in the image\n'
        '  3. "context": The situation, environment, or context of the image\n'
        '  4. "recommendation_ideas": 2-3 specific ideas for recommendations '
        "based on the image",
        f"If the image is related to a specific category ({', '.join(VALID_CATEGORIES)}), "
        "mention it",
        "Keep your analysis concise but comprehensive (150-200 words total)",
        "Be observant but avoid making unfounded assumptions",
    ]

    sections = [
        "## INSTRUCTIONS",
        f"{_VISION_PERSONA}\nAnalyze the provided image and generate insightful "
        "observations that can lead to personalized recommendations.",
        "## USER CONTEXT",
        "\n".join(context),
        "## OUTPUT REQUIREMENTS",
        _bullets(requirements),
        "## GOAL",
        "Help the user get personalized recommendations based on the visual "
        "content they've shared.",
    ]
    return "\n\n".join(sections)
