"""
Rule-based replies used when the remote assistant cannot answer.

Rules are checked top to bottom and the first keyword hit wins, so the
order of RULES is policy: crisis wording must always beat every other
category.
"""
from typing import NamedTuple, Optional, Tuple


class Rule(NamedTuple):
    category: str
    keywords: Tuple[str, ...]
    response: str


CRISIS_RESPONSE = (
    "I'm really glad you reached out. If you're in crisis or having thoughts of self-harm, "
    "please contact emergency services immediately. In the US, you can call 988 "
    "(Suicide & Crisis Lifeline) or text 'HELLO' to 741741 (Crisis Text Line). These services "
    "are free, confidential, and available 24/7. You matter, and there are people ready to help. "
    "Would you like to talk about what's happening?"
)

GRATITUDE_RESPONSE = (
    "You're very welcome. Remember, reaching out and taking care of your mental health is a sign "
    "of strength, not weakness. I'm here whenever you need to talk. Don't hesitate to reach out to "
    "our community or professional mental health resources as well. How are you feeling right now?"
)

ANXIETY_RESPONSE = (
    "I understand you're feeling anxious. That's a very real experience, and it's brave of you to "
    "share it. Anxiety is a common response our bodies have, and there are effective techniques to "
    "manage it. Try this simple breathing exercise: breathe in for 4 counts, hold for 4, and exhale "
    "for 4. This can help calm your nervous system. What specifically is making you feel anxious "
    "today? I'm here to listen."
)

SADNESS_RESPONSE = (
    "I hear that you're feeling down, and I'm genuinely glad you reached out. These feelings are "
    "valid and you're not alone. Depression can make everything feel heavier, but remember that "
    "these feelings can change. Have you been able to talk to anyone close to you about what you're "
    "experiencing? Sometimes sharing with friends, family, or a mental health professional can "
    "really help. What's been weighing on you?"
)

STRESS_RESPONSE = (
    "Stress can feel overwhelming, and I appreciate you opening up about it. Here are some things "
    "that might help: Take short breaks throughout your day to breathe and reset. Engage in "
    "activities you enjoy, even for 10 minutes. Exercise, even a short walk, can release "
    "stress-relieving endorphins. Talk to someone you trust. If stress is affecting your daily life, "
    "speaking with a professional could provide great support. What's been your biggest stressor lately?"
)

SLEEP_RESPONSE = (
    "Sleep difficulties can really impact how you feel overall. Here are some science-backed "
    "suggestions: Maintain a consistent sleep schedule, avoid screens 30 minutes before bed, keep "
    "your room cool and dark, and try relaxation techniques like meditation. If sleep problems "
    "persist for weeks, it's worth discussing with a healthcare provider. Are you dealing with "
    "racing thoughts, physical restlessness, or something else keeping you awake?"
)

DEFAULT_RESPONSE = (
    "Thank you for sharing that with me. I'm here to listen and support you on your mental wellness "
    "journey. What you're feeling is important. Could you tell me more about what's on your mind? "
    "I'm genuinely interested in understanding your situation better."
)

DEFAULT_CATEGORY = "default"

RULES: Tuple[Rule, ...] = (
    Rule("crisis", ("help", "crisis", "harm", "suicid"), CRISIS_RESPONSE),
    # Checked before the mood rules; "thanks, I've been anxious" gets this one
    Rule("gratitude", ("thank",), GRATITUDE_RESPONSE),
    Rule("anxiety", ("anxious", "anxiety"), ANXIETY_RESPONSE),
    Rule("sadness", ("sad", "depressed"), SADNESS_RESPONSE),
    Rule("stress", ("stress",), STRESS_RESPONSE),
    Rule("sleep", ("sleep", "insomnia"), SLEEP_RESPONSE),
)


def _match(user_message: Optional[str]) -> Optional[Rule]:
    text = str(user_message or "").lower()
    for rule in RULES:
        if any(keyword in text for keyword in rule.keywords):
            return rule
    return None


def classify(user_message: Optional[str]) -> str:
    """Name of the first matching rule, or "default"."""
    rule = _match(user_message)
    return rule.category if rule else DEFAULT_CATEGORY


def respond(user_message: Optional[str]) -> str:
    """Supportive canned reply for a single user message. Never raises."""
    rule = _match(user_message)
    return rule.response if rule else DEFAULT_RESPONSE
