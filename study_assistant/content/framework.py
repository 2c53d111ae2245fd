from __future__ import annotations

from typing import Dict, Optional

from .models import StudyPacket, QuizItem, PacketSource
from .synthesizer import split_sentences

FRAMEWORK_NAME = "7 W's and How"
QUIZ_EXCERPT_LENGTH = 60


def build_framework(topic: str, extract: str) -> Dict[str, str]:
    """Map extract sentences onto What/Why/When/How; the other W's are fixed templates."""
    s = split_sentences(extract)
    return {
        'what': f"{topic} is {s[0] if s else 'a concept that requires further study'}.",
        'why': f"Understanding {topic} is important because it {s[1].lower() if len(s) > 1 else 'helps in various applications'}.",
        'when': s[2] if len(s) > 2 else f'The concept of {topic} has evolved over time.',
        'where': f'{topic} can be found or applied in various contexts and fields.',
        'who': f'Researchers, professionals, and students study {topic}.',
        'which': f'Different aspects and types of {topic} exist depending on the context.',
        'whom': f'{topic} affects and benefits various groups of people and organizations.',
        'how': s[3] if len(s) > 3 else f'{topic} works through specific mechanisms and processes.',
    }


def build_framework_packet(topic: str, extract: str, wikipedia_url: Optional[str] = None) -> StudyPacket:
    fw = build_framework(topic, extract)
    quiz = [
        QuizItem(
            question=f'What is {topic}?',
            options=[
                f"A) {fw['what'][:QUIZ_EXCERPT_LENGTH]}...",
                'B) A type of food or cuisine',
                'C) A geographical location',
                'D) A fictional character',
            ],
            correct_answer='A',
        ),
        QuizItem(
            question=f'Why is understanding {topic} important?',
            options=[
                'A) It has no practical use',
                f"B) {fw['why'][:QUIZ_EXCERPT_LENGTH]}...",
                "C) It's only for entertainment",
                "D) It's a historical artifact",
            ],
            correct_answer='B',
        ),
        QuizItem(
            question=f'Who studies or uses {topic}?',
            options=[
                'A) Only children',
                'B) Only celebrities',
                'C) Researchers, professionals, and students',
                'D) Nobody studies it',
            ],
            correct_answer='C',
        ),
    ]
    return StudyPacket(
        topic=topic,
        wikipedia_url=wikipedia_url,
        summary=[f"WHAT: {fw['what']}", f"WHY: {fw['why']}", f"HOW: {fw['how']}"],
        quiz=quiz,
        study_tip=(
            f"To understand {topic} better, use the {FRAMEWORK_NAME} framework: What it is, Why it matters, "
            "When it's used, Where it applies, Who uses it, Which types exist, Whom it affects, and How it works."
        ),
        framework=fw,
        source=PacketSource.FRAMEWORK,
    )
