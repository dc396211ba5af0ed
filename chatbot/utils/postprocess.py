import re

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def clean_reply(text: str) -> str:
    """
    Tidy a model reply: collapse runs of blank lines and spaces and drop
    sentences the model repeated word for word. Paragraph breaks are kept.
    """
    if not text:
        return ""

    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)

    seen = set()
    paragraphs = []
    for paragraph in text.split("\n\n"):
        kept = []
        for sentence in _SENTENCE_SPLIT.split(paragraph.strip()):
            key = sentence.strip().lower()
            if key and key not in seen:
                seen.add(key)
                kept.append(sentence.strip())
        if kept:
            paragraphs.append(" ".join(kept))

    return "\n\n".join(paragraphs).strip()
