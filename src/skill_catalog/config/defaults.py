"""Built-in default configuration for the skill catalog."""

# Default configuration that serves as the base for all other configs
DEFAULT_CONFIG = {
    "version": "1.0",
    "settings": {
        "user_skill_dir": "~/.config/opencode/skill",
        "project_skill_dir": ".opencode/skill",
        "cache_ttl_seconds": 1800,
        "max_parallel_reads": 10,
    },
    "catalogs": [],
    "identities": [],
}

# Catalog sources that are always offered, ahead of configured ones
CURATED_SOURCES = [
    {
        "id": "anthropic",
        "label": "Anthropic",
        "description": "Anthropic's public skills repository",
        "source": "anthropics/skills",
        "subpath": "skills",
    },
]
