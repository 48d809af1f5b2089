"""
Voice and content taxonomy constants shared by profile extraction, hook generation,
expansion and scoring.
"""

# Creator archetypes a voice profile can be assigned (primary + optional secondary)
ARCHETYPES = [
    "next_door",
    "sassy_royal",
    "fitness_buff",
    "alt_creative",
    "classy_mysterious",
    "party_animal",
    "nerdy_gamer",
    "southern_charm",
    "cool_kid",
    "chaotic_unhinged",
    "soft_cozy",
    "commanding",
]

# Assumed when a profile has no primary archetype
DEFAULT_ARCHETYPE = "next_door"

# Connection tactics a creator uses with viewers
PARASOCIAL_LEVERS = [
    "direct_address",
    "relatability",
    "vulnerability",
    "confession",
    "exclusivity",
    "challenge",
    "praise",
    "authority",
    "playful_self_deprecation",
    "inside_reference",
    "aspiration",
    "pseudo_intimacy",
    "best_friend_energy",
    "protector_dynamic",
]

PARASOCIAL_LEVER_DESCRIPTIONS = {
    "direct_address": "speaking straight to \"you\"",
    "relatability": "a shared everyday experience (\"do you ever...\")",
    "vulnerability": "sharing something personal or uncomfortable",
    "confession": "admitting something surprising",
    "exclusivity": "making the viewer feel like an insider",
    "challenge": "a provocation that creates intrigue",
    "praise": "approval aimed at the viewer",
    "authority": "confident, in-charge energy",
    "playful_self_deprecation": "gentle self-mockery",
    "inside_reference": "a callback to earlier content",
    "aspiration": "a glimpse of a desirable life",
    "pseudo_intimacy": "a \"just between us\" private feeling",
    "best_friend_energy": "talking like the viewer's closest friend",
    "protector_dynamic": "\"I'll look after you\" warmth",
}

HOOK_TYPES = [
    "bold_statement",
    "question",
    "confession",
    "challenge",
    "relatable",
    "fantasy",
    "hot_take",
    "storytime",
]

HOOK_TYPE_DESCRIPTIONS = {
    "bold_statement": "a confident claim that stops the scroll",
    "question": "a direct question the viewer wants answered",
    "confession": "an admission that feels private",
    "challenge": "a dare or test aimed at the viewer",
    "relatable": "a moment the viewer has lived",
    "fantasy": "an invitation to imagine a scenario",
    "hot_take": "a polarizing opinion",
    "storytime": "the opening line of a story",
}

# Four preferred hook types per archetype; unknown archetypes use HOOK_TYPES[:4]
ARCHETYPE_HOOK_AFFINITIES = {
    "next_door": ["relatable", "confession", "question", "fantasy"],
    "sassy_royal": ["challenge", "hot_take", "bold_statement", "question"],
    "fitness_buff": ["bold_statement", "challenge", "hot_take", "relatable"],
    "alt_creative": ["confession", "storytime", "question", "hot_take"],
    "classy_mysterious": ["question", "fantasy", "bold_statement", "storytime"],
    "party_animal": ["storytime", "confession", "relatable", "bold_statement"],
    "nerdy_gamer": ["relatable", "question", "confession", "challenge"],
    "southern_charm": ["relatable", "bold_statement", "confession", "fantasy"],
    "cool_kid": ["bold_statement", "relatable", "hot_take", "question"],
    "chaotic_unhinged": ["confession", "hot_take", "storytime", "bold_statement"],
    "soft_cozy": ["fantasy", "confession", "question", "relatable"],
    "commanding": ["challenge", "bold_statement", "hot_take", "question"],
}

# Process Communication Model personality types a hook can target
PCM_TYPES = ["harmonizer", "thinker", "rebel", "persister", "imaginer", "promoter"]

VARIATION_STRATEGIES = ["angle_shift", "intensity_modulation", "opener_swap", "specificity_change"]

SWEAR_FREQUENCIES = ["high", "medium", "low", "none"]


def get_hook_types_prompt_str(hook_types: list[str] | None = None) -> str:
    """Build a bulleted 'type: description' list for use in LLM prompts."""
    types = hook_types or HOOK_TYPES
    return "\n".join(f"- {t}: {HOOK_TYPE_DESCRIPTIONS.get(t, t)}" for t in types)


def get_affinity_hook_types(archetype: str | None) -> list[str]:
    """Preferred hook types for an archetype (first four hook types when unknown)."""
    return ARCHETYPE_HOOK_AFFINITIES.get(archetype or "", HOOK_TYPES[:4])


# Why a viewer would forward a piece of content
SHARE_TRIGGERS = [
    "tag_friend",           # "send this to your friend" energy
    "self_identification",  # "this is so me"
    "controversy_bait",     # hot take that demands a reply
    "fantasy_projection",   # viewer imagines the scenario
    "validation_seeking",   # "am I the only one?"
    "humor_share",
    "educational_value",    # "you need to see this"
    "aspirational",         # "goals"
]

EMOTIONAL_RESPONSES = ["desire", "recognition", "controversy", "amusement", "validation", "curiosity", "fomo"]

VIRAL_POTENTIALS = ["low", "medium", "high", "viral"]

# Indicator phrases per share trigger (matched case-insensitively by the offline estimator)
SHARE_TRIGGER_PATTERNS = {
    "tag_friend": {
        "description": "Content one viewer sends to a specific person",
        "indicators": ["tag someone", "send this to", "if your friend", "tell your", "your bestie", "if your partner"],
        "example_hook": "Send this to the friend who always says 'five more minutes'",
    },
    "self_identification": {
        "description": "The viewer sees themselves in it",
        "indicators": ["do you ever", "am i the only one", "i cannot be the only", "pov:", "when you", "me when"],
        "example_hook": "Do you ever rehearse a phone call three times before making it?",
    },
    "controversy_bait": {
        "description": "A polarizing opinion that demands a reply",
        "indicators": ["i don't care what", "unpopular opinion", "i said what i said", "fight me", "controversial but"],
        "example_hook": "Unpopular opinion: brunch is just lunch with a cover charge",
    },
    "fantasy_projection": {
        "description": "The viewer pictures the scenario for themselves",
        "indicators": ["imagine if", "picture this", "if only", "i just want", "what if you"],
        "example_hook": "Picture this: your alarm never goes off again",
    },
    "validation_seeking": {
        "description": "Asks the audience to confirm a feeling",
        "indicators": ["is that so hard", "am i asking for too much", "is this a red flag", "am i wrong for"],
        "example_hook": "Am I wrong for leaving the group chat?",
    },
    "humor_share": {
        "description": "Pure entertainment worth passing on",
        "indicators": ["bruh", "i'm screaming", "i can't", "help", "the way i"],
        "example_hook": "The way I walked into the wrong meeting and stayed",
    },
    "educational_value": {
        "description": "Useful information the viewer wants others to have",
        "indicators": ["here's how", "the key to", "tip:", "you need to", "this is why", "let me teach you"],
        "example_hook": "Here's how I stopped losing my keys for good",
    },
    "aspirational": {
        "description": "A standard the viewer wants to reach",
        "indicators": ["goals", "that's a keeper", "never let go", "level up", "main character"],
        "example_hook": "This is your sign to become a morning person",
    },
}

# Four rubric dimensions, 0-25 points each
SHAREABILITY_RUBRIC = {
    "specificity": "Concrete, vivid detail instead of generic statements",
    "emotional_punch": "Strength of the feeling it provokes",
    "share_trigger": "How clearly it gives the viewer a reason to forward it",
    "authenticity": "Sounds like a real person, not a brand",
}

SPECIFICITY_INDICATORS = ["when he", "when she", "that moment", "the way", "imagine"]

# Spoken-length targets per duration (≈2.5 words per second)
DURATION_GUIDELINES = {
    "short": {"words": (30, 45), "sentences": (2, 3), "seconds": 12},
    "medium": {"words": (45, 65), "sentences": (4, 5), "seconds": 20},
    "long": {"words": (65, 90), "sentences": (5, 7), "seconds": 30},
}
