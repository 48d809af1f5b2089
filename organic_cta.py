"""
Organic call-to-action (closer) catalog.
Closers should read as part of the creator's speech, never as a promotional ask.
"""

CTA_TYPES = [
    "fantasy_invitation",
    "qualifier_challenge",
    "exclusivity_signal",
    "direct_desire",
    "loyalty_reward",
    "consequence_lock",
    "rhetorical_close",
    "outcome_promise",
    "emotional_bond",
    "none",
]

CTA_TEMPLATES = {
    "fantasy_invitation": {
        "description": "Invites the viewer to picture themselves in the scenario",
        "pattern": "If you can picture [scenario], you already know",
        "examples": ["If you can already picture it, you get it", "Imagine that being your Saturday"],
        "use_when": "fantasy hooks and direct address",
    },
    "qualifier_challenge": {
        "description": "Dares the viewer to prove they belong to the in-group",
        "pattern": "Only [type of person] will understand this",
        "examples": ["If you argued with this, it's not for you", "Real ones already agree"],
        "use_when": "hot takes, challenges and bold statements",
    },
    "exclusivity_signal": {
        "description": "Signals the viewer is part of a small club",
        "pattern": "Not everyone gets this, but you do",
        "examples": ["This one's just for the people who stayed", "You're one of like five people who get this"],
        "use_when": "exclusivity lever or relatable hooks",
    },
    "direct_desire": {
        "description": "Names what the creator wants from the viewer in plain terms",
        "pattern": "I want you to [action]",
        "examples": ["I want you to try this tonight", "Be the person who actually does it"],
        "use_when": "challenge hooks and strong direct address",
    },
    "loyalty_reward": {
        "description": "Thanks long-time viewers in a way new viewers want in on",
        "pattern": "If you've been here since [moment], this one's yours",
        "examples": ["If you've been here since the first video, you earned this"],
        "use_when": "vulnerability or exclusivity levers",
    },
    "consequence_lock": {
        "description": "Ends on the stakes so the story lingers",
        "pattern": "And that's why I'll never [action] again",
        "examples": ["And that's why I don't answer unknown numbers anymore"],
        "use_when": "storytime and confession hooks",
    },
    "rhetorical_close": {
        "description": "Closes on a question the viewer answers in their head",
        "pattern": "Am I wrong?",
        "examples": ["Tell me I'm wrong", "Or is that just me?"],
        "use_when": "questions, hot takes and relatable hooks",
    },
    "outcome_promise": {
        "description": "Promises the payoff the viewer gets from following along",
        "pattern": "Do this and [outcome]",
        "examples": ["Do this once and you'll never go back"],
        "use_when": "fantasy and storytime hooks",
    },
    "emotional_bond": {
        "description": "Ends on warmth that makes the viewer feel seen",
        "pattern": "You deserve [feeling]",
        "examples": ["You deserve someone who notices that", "Anyway, I'm glad you're here"],
        "use_when": "confessions, vulnerability and relatable hooks",
    },
    "none": {
        "description": "No closer; the payload is the ending",
        "pattern": "",
        "examples": [],
        "use_when": "hot takes that land harder without a tail",
    },
}

CTA_ANTI_PATTERNS = [
    # Promotional language
    "Link in bio",
    "Follow for more",
    "Subscribe to my",
    "Check out my",
    "Click the link",
    "Swipe up",
    "See more on",
    # Forced engagement asks
    "Don't forget to follow",
    "Make sure to like",
    "Comment below",
    "Let me know in the comments",
    "Share this with",
    "Tag a friend who",
    # Sales language
    "Limited time",
    "Don't miss out",
    "Subscribe now",
    "Join my",
    "Get access to",
    # Generic influencer CTAs
    "Hit that follow button",
    "Turn on notifications",
    "Like and subscribe",
    "Follow for part 2",
]

# Hook types and parasocial levers -> recommended closers
CTA_SELECTION_GUIDE = {
    "bold_statement": ["qualifier_challenge", "rhetorical_close", "exclusivity_signal"],
    "question": ["rhetorical_close", "fantasy_invitation", "emotional_bond"],
    "confession": ["emotional_bond", "consequence_lock", "rhetorical_close"],
    "challenge": ["qualifier_challenge", "direct_desire", "exclusivity_signal"],
    "relatable": ["emotional_bond", "exclusivity_signal", "rhetorical_close"],
    "fantasy": ["fantasy_invitation", "direct_desire", "outcome_promise"],
    "hot_take": ["qualifier_challenge", "rhetorical_close", "none"],
    "storytime": ["consequence_lock", "outcome_promise", "emotional_bond"],
    "vulnerability": ["emotional_bond", "rhetorical_close", "loyalty_reward"],
    "direct_address": ["fantasy_invitation", "direct_desire", "emotional_bond"],
    "exclusivity": ["exclusivity_signal", "loyalty_reward", "consequence_lock"],
    "pseudo_intimacy": ["emotional_bond", "fantasy_invitation", "loyalty_reward"],
}

DEFAULT_CTAS = ["fantasy_invitation", "emotional_bond", "none"]


def get_recommended_ctas(hook_type: str, parasocial_levers: list[str] | None) -> list[str]:
    """Closers suggested by the hook type and levers, in first-seen order."""
    recommendations: list[str] = []
    for key in [hook_type, *(parasocial_levers or [])]:
        for cta in CTA_SELECTION_GUIDE.get(key, []):
            if cta not in recommendations:
                recommendations.append(cta)
    return recommendations or list(DEFAULT_CTAS)


def find_cta_anti_patterns(text: str) -> list[str]:
    """Salesy closers present in text (case-insensitive)."""
    lowered = text.lower()
    return [p for p in CTA_ANTI_PATTERNS if p.lower() in lowered]


def build_cta_guidance(
    hook_type: str,
    parasocial_levers: list[str] | None,
    preferred_cta_type: str = "auto",
    voice_traits: dict | None = None,
) -> str:
    """Prompt block describing which closers fit this hook and which to avoid."""
    if preferred_cta_type and preferred_cta_type != "auto":
        recommended = [preferred_cta_type]
    else:
        recommended = get_recommended_ctas(hook_type, parasocial_levers)

    sections = []
    for cta in recommended:
        if cta == "none" or cta not in CTA_TEMPLATES:
            continue
        data = CTA_TEMPLATES[cta]
        examples = "\n".join(f'- "{e}"' for e in data["examples"][:2])
        sections.append(
            f"### {cta.upper()}\n{data['description']}\nPattern: {data['pattern']}\n"
            f"Examples:\n{examples}\nUse when: {data['use_when']}"
        )

    anti = "\n".join(f'- "{p}"' for p in CTA_ANTI_PATTERNS[:10])

    voice_notes = ""
    if voice_traits:
        closers = voice_traits.get("typical_closers") or []
        voice_notes = (
            "\n\nVOICE ADAPTATION:\n"
            f"Energy: {voice_traits.get('energy_level', 'medium')}\n"
            f"Humor: {voice_traits.get('humor_style', 'unspecified')}"
        )
        if closers:
            voice_notes += f"\nTypical closers: {', '.join(closers)}"

    return f"""ORGANIC CLOSER (CTA):
The closer continues the creator's speech. The viewer should feel chosen, not sold to.
If none of these fit, set cta_type to "none" and end on the payload.

RECOMMENDED CLOSERS:
{chr(10).join(sections) if sections else "- none (end on the payload)"}

NEVER USE:
{anti}{voice_notes}"""
