"""
Topic prompts - System prompt construction for the selected chat topics.
"""

from typing import Optional, Sequence

from ..models.chat import ChatTopic

TOPIC_PROMPTS = {
    ChatTopic.HEALTH: (
        "You are a helpful health assistant. Provide accurate, evidence-based health "
        "information while emphasizing that you cannot replace professional medical advice. "
        "Always recommend consulting healthcare professionals for serious concerns."
    ),
    ChatTopic.EDUCATION: (
        "You are an educational assistant. Help users learn new concepts, explain complex "
        "topics in simple terms, and provide study guidance. Encourage critical thinking "
        "and lifelong learning."
    ),
}

GENERIC_PROMPT = "You are a helpful assistant."


def build_system_prompt(topics: Sequence[ChatTopic]) -> str:
    """
    One topic uses its instruction as is; two topics get a combined
    specialization line followed by both instructions in topic order.
    """
    topics = [ChatTopic(t) for t in topics]
    if not topics:
        return GENERIC_PROMPT
    if len(topics) == 1:
        return TOPIC_PROMPTS[topics[0]]

    names = " and ".join(t.value for t in topics)
    instructions = " ".join(TOPIC_PROMPTS[t] for t in topics)
    return f"You are a helpful assistant specializing in {names}. {instructions}"


def build_user_prompt(prompt: str, context: Optional[str] = None) -> str:
    """Prefix the user's message with the session memory context, if any."""
    if not context:
        return prompt
    return f"Context from previous conversation:\n{context}\n\nCurrent message: {prompt}"
