from __future__ import annotations

PLANNING_PROMPT = (
  "As a master designer working in New York, analyze this video still.\n"
  "1. Assess the composition: is the subject centered or placed on the rule of thirds?\n"
  "2. Choose an evocative fashion title (for example \"MANIFESTO\", \"ECHOES\", \"URBAN\").\n"
  "3. Decide the best typographic hierarchy: headline position, subheadline position, "
  "and whether the text should overlap the subject.\n"
  "Output one professional image-generation prompt that focuses on the typeface style, "
  "letter spacing and layout, combined with the style: {style}."
)

GENERATION_PROMPT = (
  "MASTER RECONSTRUCTION: 9:16 HIGH-END VIDEO COVER.\n"
  "STRICT DESIGN RULES:\n"
  "1. PERSON: Must be the identical person from the image, enhanced with professional studio lighting.\n"
  "2. TYPOGRAPHY: Overlay a masterfully designed artistic title. The text must feature premium "
  "kerning and visual hierarchy. Use fonts: {style}.\n"
  "3. LAYOUT: Place the typography strategically according to: {layout_plan}.\n"
  "4. ARTISTIC DETAIL: {instruction}.\n"
  "5. RESULT: A clean, commercial-ready magazine cover that looks like it was designed by a "
  "human creative director."
)


def build_planning_prompt(style: str) -> str:
  return PLANNING_PROMPT.format(style=style)


def build_generation_prompt(style: str, layout_plan: str, instruction: str) -> str:
  # Values are substituted verbatim; braces inside them are not re-interpreted.
  return GENERATION_PROMPT.format(style=style, layout_plan=layout_plan, instruction=instruction)
