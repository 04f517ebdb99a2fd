"""
Prompt Builder - Instruction text for the prompt-enhancement model.

The template is fixed; only the display name, role, visual style and one
randomly drawn power vary between calls.
"""

import random

POWERS: tuple[str, ...] = (
    "energy manipulation",
    "shadow bending",
    "light control",
    "time distortion",
    "spiritual aura projection",
    "elemental fusion",
    "dimensional blade control",
    "cosmic resonance",
    "telekinetic force",
    "soul flame awakening",
)

_TEMPLATE = """
Create a cinematic anime movie frame inspired by the {style} visual universe.

MAIN CHARACTER IDENTITY (CRITICAL):
- The main character must be an anime-style transformation of the uploaded face.
- Facial structure, proportions, and expression must match the uploaded portrait.
- The character must feel native to this universe while remaining recognizable.
- Gender, ethnicity, and age impression must remain unchanged.
- Never copy or resemble any existing anime character.

NAME & ROLE:
- Display "{name}" as "{role}" using anime-styled typography.
- Text must be cinematic and subtle, never overpowering.

UNIQUE POWER:
- The character possesses a unique power: {power}.
- Visualize through aura, energy, lighting, or environment reaction.

BACKGROUND:
- Include supporting side characters that fit the same universe.
- They must enhance depth without stealing focus.

SCENE:
- Anime movie-quality composition.
- Cinematic lighting, depth of field, dynamic camera.
- Dramatic atmosphere, high resolution, no watermark.

STRICT RULES:
- No real anime names.
- No reused anime faces.
- Prioritize uploaded face identity.
"""


def pick_power(rng: random.Random | None = None) -> str:
    """Draw one power uniformly from POWERS."""
    return (rng or random).choice(POWERS)


def build_prompt(
    name: str,
    role: str,
    style: str,
    rng: random.Random | None = None,
) -> str:
    """
    Build the instruction sent to the text model.

    Args:
        name: Display name rendered on the frame
        role: Title shown next to the name
        style: Visual universe the scene is set in
        rng: Optional random source (tests pass a seeded one)

    Returns:
        Multi-section prompt containing name, role, style and one power
    """
    return _TEMPLATE.format(
        name=name.strip(),
        role=role.strip(),
        style=style.strip(),
        power=pick_power(rng),
    )
