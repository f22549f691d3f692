"""Style presets and prompt assembly for generation requests."""

STYLE_PRESETS: dict[str, str] = {
    "modern": (
        "clean modern finishes, smooth stucco or metal panel exterior, matte black window frames, "
        "flat or low-slope metal roof, minimalist landscaping, concrete walkways, matte black fixtures"
    ),
    "rustic": (
        "natural limestone and cedar exterior, heavy timber beam accents, weathered wood siding, "
        "bronze standing seam metal roof, native stone accents, oil-rubbed bronze fixtures, "
        "native wildflower landscaping"
    ),
    "hill_country": (
        "Texas limestone walls, cedar beam details, natural stone columns, standing seam metal roof, "
        "warm earth tones, native Texas landscaping with live oaks and sage"
    ),
    "traditional": (
        "brick or natural stone exterior, architectural shingle roof, classic trim details, "
        "symmetrical window placement, manicured landscaping, copper accents"
    ),
    "farmhouse": (
        "white board and batten siding, black window frames, black metal roof, simple porch columns, "
        "barn-inspired details, mixed white and natural wood tones"
    ),
    "contemporary": (
        "mixed material exterior with stone, wood, and metal panels, large glass sections, "
        "dark window frames, architectural concrete accents, sculptural landscaping"
    ),
}


def is_known_preset(preset: str) -> bool:
    """Check whether a preset key exists."""
    return preset in STYLE_PRESETS


def build_style_prompt(preset: str, image_type: str = "exterior") -> str:
    """Build the generation prompt for a style swap.

    Args:
        preset: Preset key.
        image_type: "exterior" or "interior".

    Returns:
        Prompt text.

    Raises:
        ValueError: For an unknown preset.
    """
    description = STYLE_PRESETS.get(preset)
    if description is None:
        raise ValueError(f"Unknown preset: {preset}")
    if image_type == "interior":
        return f"Restyle this interior to match a home with {description}"
    return f"Render this home in {description}"
