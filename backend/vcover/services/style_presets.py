from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

StyleId = Literal["brutalist", "vogue", "minimalist", "cyberpunk", "cinematic", "abstract"]


@dataclass(frozen=True, slots=True)
class StylePreset:
  id: StyleId
  name: str
  description: str
  prompt_modifier: str


PRESETS: dict[StyleId, StylePreset] = {
  "brutalist": StylePreset(
    id="brutalist",
    name="Modern Brutalist",
    description="Forceful oversized type with cold industrial tones.",
    prompt_modifier=(
      "brutalist graphic design, oversized grotesque bold fonts, Swiss typography, "
      "high contrast, minimalist brutalism"
    ),
  ),
  "vogue": StylePreset(
    id="vogue",
    name="Editorial Vogue",
    description="Classic serifs with magazine-style text and image interplay.",
    prompt_modifier=(
      "luxury fashion magazine cover, Didot or Bodoni fonts, elegant serif typography, "
      "Vogue editorial layout, sophisticated kerning"
    ),
  ),
  "minimalist": StylePreset(
    id="minimalist",
    name="Minimalist Luxury",
    description="Thin type and generous negative space.",
    prompt_modifier=(
      "minimalist luxury, thin sans-serif typography, clean airy layout, "
      "beige and white tones, premium studio lighting"
    ),
  ),
  "cyberpunk": StylePreset(
    id="cyberpunk",
    name="Cyberpunk Neon",
    description="Glowing effects and punchy glitch lettering.",
    prompt_modifier=(
      "cyberpunk neon aesthetic, glowing typography, tech-noir layout, "
      "digital glitch effects, futuristic UI elements"
    ),
  ),
  "cinematic": StylePreset(
    id="cinematic",
    name="Cinematic Noir",
    description="Film title sequence feel with widescreen lettering.",
    prompt_modifier=(
      "cinematic film poster credits, anamorphic cinematic framing, "
      "moody chiaroscuro lighting, classic movie titling"
    ),
  ),
  "abstract": StylePreset(
    id="abstract",
    name="Avant-Garde",
    description="Experimental distorted type for creative content.",
    prompt_modifier=(
      "avant-garde abstract design, distorted typography as art, surreal gradients, "
      "experimental poster layout"
    ),
  ),
}

DEFAULT_PRESET_ID: StyleId = "brutalist"


def get_preset(style_id: str) -> StylePreset:
  try:
    return PRESETS[style_id]  # type: ignore[index]
  except KeyError:
    raise KeyError(f"Unknown style preset: {style_id}") from None
